"""
Inventory Service

Food inventory CRUD plus the receipt → inventory conversion, which guesses
an expiry date from the item's category.  Removing an item moves it to
state 'removed'; removed rows never show up in listings or totals but can
still be fetched by id.
"""
import logging
from datetime import date, timedelta
from typing import Optional

import aiosqlite

from models.schemas import (
    InventoryItem, InventoryItemCreate, InventoryItemUpdate, InventoryState, InventorySummary,
)
from services.money import DEFAULT_CURRENCY, Money, format_cents
from services.receipt_service import ReceiptNotFoundError

logger = logging.getLogger("larder.inventory")

# Receipt lines that are charges, not things you can put in the fridge
NON_FOOD_CATEGORIES = {"tax", "fee", "deposit", "total", "subtotal"}

# Evaluated in order: the first rule whose keyword appears in the
# lower-cased category wins.
EXPIRY_RULES: list[tuple[tuple[str, ...], int]] = [
    (("produce", "fruit", "vegetable", "vegetables", "dairy", "meat", "seafood"), 7),
    (("bakery", "bread"), 3),
    (("frozen",), 90),
]


def expiry_days_for_category(category: Optional[str]) -> Optional[int]:
    lowered = (category or "").lower()
    for keywords, days in EXPIRY_RULES:
        if any(k in lowered for k in keywords):
            return days
    return None


def expiry_for_category(category: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """ISO expiry date for an item of this category, or None if it keeps."""
    days = expiry_days_for_category(category)
    if days is None:
        return None
    return ((today or date.today()) + timedelta(days=days)).isoformat()


def is_inventory_category(category: Optional[str]) -> bool:
    return (category or "").lower() not in NON_FOOD_CATEGORIES


def row_to_inventory_item(row) -> InventoryItem:
    return InventoryItem(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        quantity=row["quantity"],
        category=row["category"],
        price=format_cents(row["price_cents"], row["currency"]),
        expiry_date=row["expiry_date"],
        state=InventoryState(row["state"]),
        receipt_id=row["receipt_id"],
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


async def _insert_item(db: aiosqlite.Connection, *, name, description, quantity, category,
                       price: Optional[Money], expiry_date, receipt_id) -> int:
    cur = await db.execute(
        """INSERT INTO inventory_items
           (name, description, quantity, category, price_cents, currency,
            expiry_date, receipt_id, state)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'active')""",
        (name, description, quantity, category,
         price.cents if price else None,
         price.currency if price else None,
         expiry_date, receipt_id),
    )
    return cur.lastrowid


async def get_inventory_item(db: aiosqlite.Connection, item_id: int) -> Optional[InventoryItem]:
    """Fetch an item by id in any state (removed items stay addressable)."""
    async with db.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)) as cur:
        row = await cur.fetchone()
    return row_to_inventory_item(row) if row else None


async def _items_by_ids(db: aiosqlite.Connection, ids: list[int]) -> list[InventoryItem]:
    if not ids:
        return []
    placeholders = ",".join("?" * len(ids))
    async with db.execute(
        f"SELECT * FROM inventory_items WHERE id IN ({placeholders}) ORDER BY id", ids
    ) as cur:
        rows = await cur.fetchall()
    return [row_to_inventory_item(r) for r in rows]


async def list_inventory(db: aiosqlite.Connection) -> list[InventoryItem]:
    """Active items, soonest expiry first; items that don't expire come last."""
    async with db.execute(
        """SELECT * FROM inventory_items
           WHERE state = 'active'
           ORDER BY expiry_date IS NULL, expiry_date, id"""
    ) as cur:
        rows = await cur.fetchall()
    return [row_to_inventory_item(r) for r in rows]


async def list_expiring_soon(
    db: aiosqlite.Connection, days: int = 3, today: Optional[date] = None
) -> list[InventoryItem]:
    """Active items whose expiry date falls within the next `days` days (or has passed)."""
    cutoff = ((today or date.today()) + timedelta(days=days)).isoformat()
    async with db.execute(
        """SELECT * FROM inventory_items
           WHERE state = 'active'
             AND expiry_date IS NOT NULL
             AND expiry_date <= ?
           ORDER BY expiry_date, id""",
        (cutoff,),
    ) as cur:
        rows = await cur.fetchall()
    return [row_to_inventory_item(r) for r in rows]


async def active_item_names(db: aiosqlite.Connection) -> list[str]:
    """Lower-cased names of everything currently in the inventory."""
    async with db.execute(
        "SELECT name FROM inventory_items WHERE state = 'active'"
    ) as cur:
        rows = await cur.fetchall()
    return [r["name"].lower() for r in rows]


async def inventory_summary(db: aiosqlite.Connection) -> InventorySummary:
    """
    Item count, per-category counts and total value over active items.
    The value is summed per currency; unpriced items are counted but add no value.
    """
    async with db.execute(
        """SELECT category, price_cents, currency FROM inventory_items
           WHERE state = 'active' ORDER BY id"""
    ) as cur:
        rows = await cur.fetchall()

    by_category: dict[str, int] = {}
    value_cents: dict[str, int] = {}
    for r in rows:
        by_category[r["category"]] = by_category.get(r["category"], 0) + 1
        if r["price_cents"] is not None:
            currency = r["currency"] or DEFAULT_CURRENCY
            value_cents[currency] = value_cents.get(currency, 0) + r["price_cents"]

    return InventorySummary(
        item_count=len(rows),
        total_value={c: Money(v, c).format() for c, v in value_cents.items()},
        by_category=by_category,
    )


async def create_inventory_item(db: aiosqlite.Connection, body: InventoryItemCreate) -> InventoryItem:
    """Raises InvalidMoneyError if a price is given but unreadable."""
    price = Money.parse(body.price) if body.price else None
    item_id = await _insert_item(
        db,
        name=body.name.strip(),
        description=body.description,
        quantity=body.quantity or "1",
        category=body.category or "Other",
        price=price,
        expiry_date=body.expiry_date,
        receipt_id=body.receipt_id,
    )
    await db.commit()
    return await get_inventory_item(db, item_id)


async def update_inventory_item(
    db: aiosqlite.Connection, item_id: int, body: InventoryItemUpdate
) -> Optional[InventoryItem]:
    """Apply the fields that were sent.  Returns None if the item doesn't exist."""
    existing = await get_inventory_item(db, item_id)
    if existing is None:
        return None

    changes = body.model_dump(exclude_unset=True)
    assignments: list[str] = []
    params: list = []
    for field in ("name", "description", "quantity", "category", "expiry_date"):
        if field in changes:
            assignments.append(f"{field} = ?")
            params.append(changes[field])
    if "price" in changes:
        price = Money.parse(changes["price"]) if changes["price"] else None
        assignments.extend(["price_cents = ?", "currency = ?"])
        params.extend([price.cents if price else None, price.currency if price else None])

    if assignments:
        assignments.append("updated_at = datetime('now')")
        await db.execute(
            f"UPDATE inventory_items SET {', '.join(assignments)} WHERE id = ?",
            params + [item_id],
        )
        await db.commit()
    return await get_inventory_item(db, item_id)


async def remove_inventory_item(db: aiosqlite.Connection, item_id: int) -> bool:
    """
    Take an item out of the inventory (state → removed).
    Returns False if there is no active item with that id.
    """
    cur = await db.execute(
        """UPDATE inventory_items
           SET state = 'removed', updated_at = datetime('now')
           WHERE id = ? AND state = 'active'""",
        (item_id,),
    )
    await db.commit()
    return cur.rowcount > 0


async def add_receipt_items_to_inventory(
    db: aiosqlite.Connection, receipt_id: int, today: Optional[date] = None
) -> list[InventoryItem]:
    """
    Turn a receipt's food lines into inventory items.

    Tax / fee / deposit / total / subtotal lines are skipped.  Everything else
    gets quantity "1" and an expiry date guessed from its category.  All rows
    are written in one transaction.
    """
    async with db.execute("SELECT id FROM receipts WHERE id = ?", (receipt_id,)) as cur:
        if not await cur.fetchone():
            raise ReceiptNotFoundError(receipt_id)

    async with db.execute(
        "SELECT * FROM receipt_items WHERE receipt_id = ? ORDER BY id", (receipt_id,)
    ) as cur:
        rows = await cur.fetchall()

    created: list[int] = []
    skipped = 0
    try:
        for row in rows:
            if not is_inventory_category(row["category"]):
                skipped += 1
                continue
            created.append(await _insert_item(
                db,
                name=row["name"],
                description=row["description"] or "",
                quantity="1",
                category=row["category"] or "Other",
                price=Money(row["price_cents"], row["currency"]),
                expiry_date=expiry_for_category(row["category"], today),
                receipt_id=receipt_id,
            ))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Receipt %s → inventory: %d added, %d non-food lines skipped",
                receipt_id, len(created), skipped)
    return await _items_by_ids(db, created)
