"""
Receipt persistence — receipts and their line items.

Prices arrive as Money values and are stored as (cents, currency) pairs;
rows are turned back into display strings on the way out.
"""
import logging
from typing import Optional

import aiosqlite

from models.schemas import Receipt, ReceiptItem, ReceiptSummary, ReceiptWithItems
from services.money import Money, format_cents

logger = logging.getLogger("larder.receipts")


class ReceiptNotFoundError(LookupError):
    def __init__(self, receipt_id: int):
        super().__init__(f"Receipt {receipt_id} not found")
        self.receipt_id = receipt_id


def row_to_receipt_item(row) -> ReceiptItem:
    return ReceiptItem(
        id=row["id"],
        receipt_id=row["receipt_id"],
        name=row["name"],
        description=row["description"],
        price=format_cents(row["price_cents"], row["currency"]),
        price_cents=row["price_cents"],
        currency=row["currency"],
        category=row["category"],
        created_at=row["created_at"] or "",
    )


def _receipt_fields(row) -> dict:
    return dict(
        id=row["id"],
        store_name=row["store_name"],
        total_amount=format_cents(row["total_cents"], row["currency"]),
        receipt_date=row["receipt_date"],
        created_at=row["created_at"] or "",
    )


async def create_receipt_with_items(
    db: aiosqlite.Connection,
    store_name: Optional[str],
    total: Optional[Money],
    items: list[dict],   # [{name, description, price: Money, category}, ...]
) -> ReceiptWithItems:
    """
    Insert a receipt and all of its items in a single transaction.
    If any insert fails the receipt row is rolled back too.
    """
    try:
        cur = await db.execute(
            "INSERT INTO receipts (store_name, total_cents, currency) VALUES (?, ?, ?)",
            (store_name,
             total.cents if total else None,
             total.currency if total else "$"),
        )
        receipt_id = cur.lastrowid

        for item in items:
            price: Money = item["price"]
            await db.execute(
                """INSERT INTO receipt_items
                   (receipt_id, name, description, price_cents, currency, category)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (receipt_id, item["name"], item.get("description"),
                 price.cents, price.currency, item.get("category")),
            )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Saving receipt with %d items failed — rolled back", len(items))
        raise

    logger.info("Saved receipt id=%s with %d items", receipt_id, len(items))
    return await get_receipt_with_items(db, receipt_id)


async def get_receipt_with_items(db: aiosqlite.Connection, receipt_id: int) -> ReceiptWithItems:
    async with db.execute("SELECT * FROM receipts WHERE id = ?", (receipt_id,)) as cur:
        row = await cur.fetchone()
    if not row:
        raise ReceiptNotFoundError(receipt_id)

    async with db.execute(
        "SELECT * FROM receipt_items WHERE receipt_id = ? ORDER BY id", (receipt_id,)
    ) as cur:
        items = await cur.fetchall()

    return ReceiptWithItems(
        **_receipt_fields(row),
        items=[row_to_receipt_item(i) for i in items],
    )


async def list_receipts(
    db: aiosqlite.Connection, limit: int = 50, offset: int = 0
) -> list[ReceiptSummary]:
    async with db.execute(
        """
        SELECT r.*, COUNT(ri.id) AS item_count
        FROM receipts r
        LEFT JOIN receipt_items ri ON ri.receipt_id = r.id
        GROUP BY r.id
        ORDER BY r.created_at DESC, r.id DESC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    ) as cur:
        rows = await cur.fetchall()
    return [ReceiptSummary(**_receipt_fields(r), item_count=r["item_count"]) for r in rows]


async def list_receipt_items(db: aiosqlite.Connection) -> list[ReceiptItem]:
    """All receipt items, newest first."""
    async with db.execute(
        "SELECT * FROM receipt_items ORDER BY created_at DESC, id DESC"
    ) as cur:
        rows = await cur.fetchall()
    return [row_to_receipt_item(r) for r in rows]


async def delete_receipt(db: aiosqlite.Connection, receipt_id: int):
    """Delete a receipt; its items go with it (ON DELETE CASCADE)."""
    async with db.execute("SELECT id FROM receipts WHERE id = ?", (receipt_id,)) as cur:
        if not await cur.fetchone():
            raise ReceiptNotFoundError(receipt_id)
    await db.execute("DELETE FROM receipts WHERE id = ?", (receipt_id,))
    await db.commit()
