"""
Shared fixtures for backend tests.

Every test gets a fresh in-memory SQLite database built from the production
schema in db/database.py.  Lookup tables (meal types, dietary preferences)
are seeded; receipts, inventory and recipes start empty unless a test adds
rows.
"""
import pytest
import aiosqlite
from httpx import ASGITransport, AsyncClient

from db.database import SEED, TABLES, get_db


@pytest.fixture
async def db():
    """Yield a fresh in-memory SQLite connection with the full schema."""
    async with aiosqlite.connect(":memory:") as conn:
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.executescript(TABLES)
        await conn.executescript(SEED)
        await conn.commit()
        yield conn


def make_app(db, router, prefix):
    """Bare FastAPI app with one router mounted and get_db pointed at the test DB."""
    from fastapi import FastAPI

    test_app = FastAPI()
    test_app.include_router(router, prefix=prefix)

    async def override_get_db():
        yield db
    test_app.dependency_overrides[get_db] = override_get_db
    return test_app


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ── Row helpers ──────────────────────────────────────────────────────────────

async def insert_receipt(db, *, store_name="TestMart", total_cents=None,
                         currency="$", receipt_date=None, created_at=None):
    cur = await db.execute(
        """INSERT INTO receipts (store_name, total_cents, currency, receipt_date, created_at)
           VALUES (?, ?, ?, COALESCE(?, datetime('now')), COALESCE(?, datetime('now')))""",
        (store_name, total_cents, currency, receipt_date, created_at),
    )
    await db.commit()
    return cur.lastrowid


async def insert_receipt_item(db, receipt_id, *, name="Item", description=None,
                              price_cents=500, currency="$", category="Produce"):
    cur = await db.execute(
        """INSERT INTO receipt_items
           (receipt_id, name, description, price_cents, currency, category)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (receipt_id, name, description, price_cents, currency, category),
    )
    await db.commit()
    return cur.lastrowid


async def insert_inventory_item(db, *, name="Milk", category="Dairy", price_cents=None,
                                currency=None, expiry_date=None, state="active",
                                quantity="1", receipt_id=None):
    cur = await db.execute(
        """INSERT INTO inventory_items
           (name, description, quantity, category, price_cents, currency,
            expiry_date, state, receipt_id)
           VALUES (?, '', ?, ?, ?, ?, ?, ?, ?)""",
        (name, quantity, category, price_cents, currency, expiry_date, state, receipt_id),
    )
    await db.commit()
    return cur.lastrowid


async def insert_recipe(db, *, title="Test Recipe", meal_type_id=None,
                        ingredients=(), diet_ids=(), image_url=None):
    cur = await db.execute(
        """INSERT INTO recipes (title, instructions, prep_time, cook_time, servings,
                                calories, meal_type_id, image_url)
           VALUES (?, 'Cook it', 5, 10, 2, 300, ?, ?)""",
        (title, meal_type_id, image_url),
    )
    recipe_id = cur.lastrowid
    for name in ingredients:
        await db.execute(
            "INSERT INTO recipe_ingredients (recipe_id, name, amount, unit, optional) VALUES (?, ?, '1', 'whole', 0)",
            (recipe_id, name),
        )
    for pref_id in diet_ids:
        await db.execute(
            "INSERT INTO recipe_dietary_restrictions (recipe_id, dietary_preference_id) VALUES (?, ?)",
            (recipe_id, pref_id),
        )
    await db.commit()
    return recipe_id
