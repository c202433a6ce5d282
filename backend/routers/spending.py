"""
Spending Router

GET /api/spending/categories  — all-time spending per category, one entry per currency
GET /api/spending/monthly     — spending by category for last N months
"""
from fastapi import APIRouter, Depends, Query
import aiosqlite

from db.database import get_db
from models.schemas import CategorySpending, MonthSummary
from services.spending_service import monthly_spending, spending_by_category

router = APIRouter()


@router.get("/categories", response_model=list[CategorySpending])
async def categories(db: aiosqlite.Connection = Depends(get_db)):
    return await spending_by_category(db)


@router.get("/monthly", response_model=list[MonthSummary])
async def monthly(
    months: int = Query(default=6, ge=1, le=24),
    db: aiosqlite.Connection = Depends(get_db),
):
    return await monthly_spending(db, months)
