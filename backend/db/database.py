import logging
import aiosqlite
import os

logger = logging.getLogger("larder.db")
DB_PATH = os.environ.get("DB_PATH", "/data/larder.db")

async def get_db() -> aiosqlite.Connection:
    """Dependency: yields an open DB connection."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        yield db

async def init_db(db_path: str = None):
    """Create all tables if they don't exist, seed lookup tables and sample recipes."""
    path = db_path or DB_PATH
    if os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    async with aiosqlite.connect(path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        await db.executescript(TABLES)
        await db.executescript(SEED)
        await seed_sample_recipes(db)
        await db.commit()
    logger.info("Initialized at %s", path)


TABLES = """
-- Scanned receipts
CREATE TABLE IF NOT EXISTS receipts (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    store_name      TEXT,
    total_cents     INTEGER,               -- NULL when no total line was found
    currency        TEXT NOT NULL DEFAULT '$',
    receipt_date    TEXT DEFAULT (datetime('now')),
    created_at      TEXT DEFAULT (datetime('now'))
);

-- Individual line items on a receipt
CREATE TABLE IF NOT EXISTS receipt_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    receipt_id      INTEGER REFERENCES receipts(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    description     TEXT,
    price_cents     INTEGER NOT NULL,
    currency        TEXT NOT NULL DEFAULT '$',
    category        TEXT,                  -- free-form label (Produce, Tax, Household, ...)
    created_at      TEXT DEFAULT (datetime('now'))
);

-- Food inventory; rows are never deleted, only moved to state 'removed'
CREATE TABLE IF NOT EXISTS inventory_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    quantity        TEXT NOT NULL DEFAULT '1',
    category        TEXT NOT NULL DEFAULT 'Other',
    price_cents     INTEGER,
    currency        TEXT,
    expiry_date     TEXT,                  -- ISO date, NULL = does not expire
    state           TEXT NOT NULL DEFAULT 'active'
                    CHECK (state IN ('active', 'removed')),
    receipt_id      INTEGER REFERENCES receipts(id) ON DELETE SET NULL,
    created_at      TEXT DEFAULT (datetime('now')),
    updated_at      TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS meal_types (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    description TEXT
);

CREATE TABLE IF NOT EXISTS dietary_preferences (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    description TEXT
);

CREATE TABLE IF NOT EXISTS recipes (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    title           TEXT NOT NULL,
    instructions    TEXT NOT NULL DEFAULT '',
    prep_time       INTEGER,               -- minutes
    cook_time       INTEGER,               -- minutes
    servings        INTEGER,
    calories        REAL,
    image_url       TEXT,
    source_url      TEXT,
    meal_type_id    INTEGER REFERENCES meal_types(id),
    created_at      TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS recipe_ingredients (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id   INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    amount      TEXT,
    unit        TEXT,
    optional    INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS recipe_dietary_restrictions (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id               INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    dietary_preference_id   INTEGER NOT NULL REFERENCES dietary_preferences(id),
    UNIQUE(recipe_id, dietary_preference_id)
);
"""

# INSERT OR IGNORE so re-runs are safe
SEED = """
INSERT OR IGNORE INTO meal_types (name, description) VALUES
    ('Breakfast', 'Morning meals'),
    ('Lunch',     'Midday meals'),
    ('Dinner',    'Evening meals'),
    ('Dessert',   'Sweet treats'),
    ('Snack',     'Between-meal bites');

INSERT OR IGNORE INTO dietary_preferences (name, description) VALUES
    ('Vegetarian',  'No meat, may include eggs and dairy'),
    ('Vegan',       'No animal products'),
    ('Gluten-Free', 'No wheat, barley, or rye'),
    ('Dairy-Free',  'No milk products'),
    ('Nut-Free',    'No nuts'),
    ('Keto',        'Low carb, high fat'),
    ('Paleo',       'Based on foods similar to what might have been eaten during the Paleolithic era');
"""

# (title, instructions, prep, cook, servings, calories, meal type,
#  [(ingredient, amount, unit, optional)], [dietary preferences])
SAMPLE_RECIPES = [
    (
        "Avocado Toast with Poached Eggs",
        "1. Toast bread\n2. Mash avocado and spread on toast\n3. Poach eggs\n"
        "4. Place eggs on top\n5. Season with salt, pepper, and red pepper flakes",
        10, 5, 1, 320, "Breakfast",
        [("Whole grain bread", "1", "slice", False), ("Avocado", "1/2", "whole", False),
         ("Eggs", "2", "whole", False), ("Salt", "1/4", "tsp", False),
         ("Black pepper", "1/8", "tsp", False), ("Red pepper flakes", "1/8", "tsp", True)],
        ["Vegetarian", "Gluten-Free"],
    ),
    (
        "Quinoa Salad with Roasted Vegetables",
        "1. Cook quinoa according to package instructions\n2. Roast bell peppers, zucchini, and onions\n"
        "3. Mix quinoa and vegetables\n4. Dress with olive oil and lemon juice\n5. Season with salt and pepper",
        15, 20, 2, 380, "Lunch",
        [("Quinoa", "1", "cup", False), ("Bell peppers", "2", "whole", False),
         ("Zucchini", "1", "whole", False), ("Red onion", "1/2", "whole", False),
         ("Olive oil", "2", "tbsp", False), ("Lemon juice", "1", "tbsp", False),
         ("Salt", "1/2", "tsp", False), ("Black pepper", "1/4", "tsp", False)],
        ["Vegetarian", "Vegan", "Gluten-Free"],
    ),
    (
        "Grilled Salmon with Asparagus",
        "1. Season salmon with salt, pepper, and lemon zest\n2. Grill salmon for 4-5 minutes per side\n"
        "3. Trim asparagus and toss with olive oil, salt, and pepper\n4. Grill asparagus for 3-4 minutes\n"
        "5. Serve salmon with asparagus and lemon wedges",
        10, 15, 2, 420, "Dinner",
        [("Salmon fillets", "2", "fillets", False), ("Asparagus", "1", "bunch", False),
         ("Olive oil", "2", "tbsp", False), ("Lemon", "1", "whole", False),
         ("Salt", "1", "tsp", False), ("Black pepper", "1/2", "tsp", False)],
        ["Gluten-Free", "Dairy-Free"],
    ),
]


async def seed_sample_recipes(db: aiosqlite.Connection):
    """Insert the sample recipes, but only into an empty recipes table."""
    async with db.execute("SELECT COUNT(*) FROM recipes") as cur:
        if (await cur.fetchone())[0] > 0:
            logger.debug("Recipes already seeded, skipping")
            return

    async with db.execute("SELECT id, name FROM meal_types") as cur:
        meal_types = {row[1]: row[0] async for row in cur}
    async with db.execute("SELECT id, name FROM dietary_preferences") as cur:
        preferences = {row[1]: row[0] async for row in cur}

    for (title, instructions, prep, cook, servings, calories, meal_type,
         ingredients, diets) in SAMPLE_RECIPES:
        cur = await db.execute(
            """INSERT INTO recipes
               (title, instructions, prep_time, cook_time, servings, calories, meal_type_id)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (title, instructions, prep, cook, servings, calories, meal_types.get(meal_type)),
        )
        recipe_id = cur.lastrowid
        await db.executemany(
            "INSERT INTO recipe_ingredients (recipe_id, name, amount, unit, optional) VALUES (?, ?, ?, ?, ?)",
            [(recipe_id, name, amount, unit, 1 if optional else 0)
             for name, amount, unit, optional in ingredients],
        )
        await db.executemany(
            "INSERT OR IGNORE INTO recipe_dietary_restrictions (recipe_id, dietary_preference_id) VALUES (?, ?)",
            [(recipe_id, preferences[d]) for d in diets if d in preferences],
        )
    logger.info("Seeded %d sample recipes", len(SAMPLE_RECIPES))
