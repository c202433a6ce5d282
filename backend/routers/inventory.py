"""
Inventory Router

GET    /api/inventory            — active inventory items
POST   /api/inventory            — add an item by hand
GET    /api/inventory/expiring   — active items expiring within N days
GET    /api/inventory/summary    — counts and value of active items
GET    /api/inventory/{id}       — a single item (including removed ones)
PATCH  /api/inventory/{id}       — edit an item
DELETE /api/inventory/{id}       — take an item out of the inventory
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
import aiosqlite

from db.database import get_db
from models.schemas import InventoryItem, InventoryItemCreate, InventoryItemUpdate, InventorySummary
from services.inventory_service import (
    create_inventory_item, get_inventory_item, inventory_summary, list_expiring_soon,
    list_inventory, remove_inventory_item, update_inventory_item,
)
from services.money import InvalidMoneyError

router = APIRouter()


@router.get("", response_model=list[InventoryItem])
async def get_inventory(db: aiosqlite.Connection = Depends(get_db)):
    return await list_inventory(db)


@router.post("", response_model=InventoryItem, status_code=201)
async def add_inventory_item(
    body: InventoryItemCreate,
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        return await create_inventory_item(db, body)
    except InvalidMoneyError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/expiring", response_model=list[InventoryItem])
async def get_expiring(
    days: int = Query(default=3, ge=0, le=365),
    db: aiosqlite.Connection = Depends(get_db),
):
    return await list_expiring_soon(db, days)


@router.get("/summary", response_model=InventorySummary)
async def get_summary(db: aiosqlite.Connection = Depends(get_db)):
    return await inventory_summary(db)


@router.get("/{item_id}", response_model=InventoryItem)
async def get_item(item_id: int, db: aiosqlite.Connection = Depends(get_db)):
    item = await get_inventory_item(db, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


@router.patch("/{item_id}", response_model=InventoryItem)
async def edit_item(
    item_id: int,
    body: InventoryItemUpdate,
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        item = await update_inventory_item(db, item_id, body)
    except InvalidMoneyError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


@router.delete("/{item_id}", status_code=204)
async def remove_item(item_id: int, db: aiosqlite.Connection = Depends(get_db)):
    if not await remove_inventory_item(db, item_id):
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return Response(status_code=204)
