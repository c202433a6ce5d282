"""
Recipe Service — the local recipe catalogue and "use what I have" matching.

Inventory matching is a plain bidirectional substring test on lower-cased
names: an ingredient matches if it contains an inventory name or is
contained in one.  "egg" therefore matches "eggs" and also "eggplant".
"""
import logging
import random
from typing import Iterable, Optional

import aiosqlite

from models.schemas import DietaryPreference, MealType, Recipe, RecipeIngredient
from services.inventory_service import active_item_names

logger = logging.getLogger("larder.recipes")


def ingredient_matches(ingredient: str, inventory_names: Iterable[str]) -> bool:
    ingredient = ingredient.lower()
    return any(name in ingredient or ingredient in name for name in inventory_names if name)


def recipe_uses_inventory(recipe: Recipe, inventory_names: list[str]) -> bool:
    """True if at least one ingredient matches at least one inventory name."""
    return any(ingredient_matches(i.name, inventory_names) for i in recipe.ingredients)


def title_mentions_inventory(title: str, inventory_names: list[str]) -> bool:
    """
    Looser check for API recipes, where only the title is reliable: the title
    mentions an inventory name, or its singular form ("tomatoes" → "tomatoe").
    """
    title = title.lower()
    return any(
        name in title or (name.endswith("s") and name[:-1] in title)
        for name in inventory_names if name
    )


async def _load_recipes(db: aiosqlite.Connection, rows) -> list[Recipe]:
    if not rows:
        return []
    ids = [r["id"] for r in rows]
    placeholders = ",".join("?" * len(ids))

    ingredients: dict[int, list[RecipeIngredient]] = {i: [] for i in ids}
    async with db.execute(
        f"SELECT * FROM recipe_ingredients WHERE recipe_id IN ({placeholders}) ORDER BY id", ids
    ) as cur:
        async for row in cur:
            ingredients[row["recipe_id"]].append(RecipeIngredient(
                id=row["id"],
                name=row["name"],
                amount=row["amount"],
                unit=row["unit"],
                optional=bool(row["optional"]),
            ))

    diets: dict[int, list[int]] = {i: [] for i in ids}
    async with db.execute(
        f"""SELECT recipe_id, dietary_preference_id FROM recipe_dietary_restrictions
            WHERE recipe_id IN ({placeholders}) ORDER BY dietary_preference_id""", ids
    ) as cur:
        async for row in cur:
            diets[row["recipe_id"]].append(row["dietary_preference_id"])

    return [
        Recipe(
            id=r["id"],
            title=r["title"],
            instructions=r["instructions"] or "",
            prep_time=r["prep_time"],
            cook_time=r["cook_time"],
            servings=r["servings"],
            calories=r["calories"],
            image_url=r["image_url"],
            source_url=r["source_url"],
            meal_type_id=r["meal_type_id"],
            ingredients=ingredients[r["id"]],
            dietary_preference_ids=diets[r["id"]],
        )
        for r in rows
    ]


async def get_recipes(
    db: aiosqlite.Connection,
    meal_type_id: Optional[int] = None,
    dietary_restrictions: Optional[list[int]] = None,
    search_term: Optional[str] = None,
    inventory_based: bool = False,
) -> list[Recipe]:
    """
    Local recipes matching every given filter.  A recipe must carry all of the
    requested dietary preferences.  With inventory_based set, only recipes
    sharing an ingredient with the active inventory are returned.
    """
    where: list[str] = []
    params: list = []

    if meal_type_id is not None:
        where.append("r.meal_type_id = ?")
        params.append(meal_type_id)

    if search_term:
        where.append("LOWER(r.title) LIKE ?")
        params.append(f"%{search_term.lower()}%")

    for pref_id in dietary_restrictions or []:
        where.append(
            "EXISTS (SELECT 1 FROM recipe_dietary_restrictions d "
            "WHERE d.recipe_id = r.id AND d.dietary_preference_id = ?)"
        )
        params.append(pref_id)

    where_sql = (" WHERE " + " AND ".join(where)) if where else ""
    async with db.execute(f"SELECT r.* FROM recipes r{where_sql} ORDER BY r.id", params) as cur:
        rows = await cur.fetchall()
    recipes = await _load_recipes(db, rows)

    if inventory_based:
        names = await active_item_names(db)
        recipes = [r for r in recipes if recipe_uses_inventory(r, names)]
        logger.debug("Inventory filter (%d items) kept %d recipes", len(names), len(recipes))

    return recipes


async def get_random_recipe(db: aiosqlite.Connection, **filters) -> Optional[Recipe]:
    recipes = await get_recipes(db, **filters)
    return random.choice(recipes) if recipes else None


async def get_recipe_by_id(db: aiosqlite.Connection, recipe_id: int) -> Optional[Recipe]:
    async with db.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,)) as cur:
        rows = await cur.fetchall()
    recipes = await _load_recipes(db, rows)
    return recipes[0] if recipes else None


async def get_meal_types(db: aiosqlite.Connection) -> list[MealType]:
    async with db.execute("SELECT * FROM meal_types ORDER BY id") as cur:
        rows = await cur.fetchall()
    return [MealType(id=r["id"], name=r["name"], description=r["description"]) for r in rows]


async def get_dietary_preferences(db: aiosqlite.Connection) -> list[DietaryPreference]:
    async with db.execute("SELECT * FROM dietary_preferences ORDER BY id") as cur:
        rows = await cur.fetchall()
    return [DietaryPreference(id=r["id"], name=r["name"], description=r["description"]) for r in rows]
