"""
Lookup Router

GET /api/meal-types           — meal types for the recipe filter
GET /api/dietary-preferences  — dietary preferences for the recipe filter
"""
from fastapi import APIRouter, Depends
import aiosqlite

from db.database import get_db
from models.schemas import DietaryPreference, MealType
from services.recipe_service import get_dietary_preferences, get_meal_types

router = APIRouter()


@router.get("/meal-types", response_model=list[MealType])
async def list_meal_types(db: aiosqlite.Connection = Depends(get_db)):
    return await get_meal_types(db)


@router.get("/dietary-preferences", response_model=list[DietaryPreference])
async def list_dietary_preferences(db: aiosqlite.Connection = Depends(get_db)):
    return await get_dietary_preferences(db)
