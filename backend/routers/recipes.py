"""
Recipes Router

GET /api/recipes          — search recipes (Spoonacular, falling back to the local catalogue)
GET /api/recipes/random   — one random recipe matching the filters
GET /api/recipes/{id}     — a recipe from the local catalogue

Query parameters keep the names the frontend sends (searchTerm, mealTypeId,
dietaryRestrictions, servings, allergies, inventoryBased, useApi).
"""
import logging
import random
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
import aiosqlite

from db.database import get_db
from models.schemas import Recipe
from services.image_service import get_cached_image_for_recipe
from services.inventory_service import active_item_names
from services.recipe_service import (
    get_random_recipe, get_recipe_by_id, get_recipes, title_mentions_inventory,
)
from services.spoonacular_service import (
    SpoonacularError, diet_for_spoonacular, get_random_recipes, map_recipe,
    meal_type_for_spoonacular, search_recipes,
)

logger = logging.getLogger("larder.recipes")
router = APIRouter()


class RecipeQuery:
    """Shared query parameters for the list and random endpoints."""

    def __init__(
        self,
        search_term: Optional[str] = Query(None, alias="searchTerm"),
        meal_type_id: Optional[str] = Query(None, alias="mealTypeId"),
        dietary_restrictions: Optional[str] = Query(None, alias="dietaryRestrictions"),
        servings: Optional[int] = Query(None, ge=1),
        allergies: Optional[str] = None,
        inventory_based: bool = Query(False, alias="inventoryBased"),
        use_api: bool = Query(True, alias="useApi"),
    ):
        self.search_term = search_term
        self.meal_type = None if meal_type_id in (None, "", "all") else meal_type_id
        self.dietary = [d.strip() for d in (dietary_restrictions or "").split(",") if d.strip()]
        self.servings = servings
        self.allergies = ",".join(
            a.strip() for a in (allergies or "").split(",") if a.strip()
        ) or None
        self.inventory_based = inventory_based
        self.use_api = use_api

    def local_filters(self, with_search: bool = True) -> dict:
        try:
            meal_type_id = int(self.meal_type) if self.meal_type else None
            dietary = [int(d) for d in self.dietary]
        except ValueError:
            raise HTTPException(status_code=400, detail="mealTypeId and dietaryRestrictions must be numeric ids")
        filters = dict(
            meal_type_id=meal_type_id,
            dietary_restrictions=dietary or None,
            inventory_based=self.inventory_based,
        )
        if with_search:
            filters["search_term"] = self.search_term
        return filters


async def _with_image(recipe: Recipe) -> Recipe:
    if not recipe.image_url:
        recipe.image_url = await get_cached_image_for_recipe(
            recipe.title, [i.name for i in recipe.ingredients]
        )
    return recipe


async def _filter_by_inventory_titles(db: aiosqlite.Connection, recipes: list[dict]) -> tuple[list[dict], bool]:
    """Returns (recipes, filtered). Nothing is filtered when the inventory is empty."""
    names = await active_item_names(db)
    if not names:
        return recipes, False
    kept = [r for r in recipes if title_mentions_inventory(r["title"], names)]
    logger.info("Filtered %d API recipes to %d that match inventory items", len(recipes), len(kept))
    return kept, True


async def _local_recipes(db: aiosqlite.Connection, q: RecipeQuery) -> list[Recipe]:
    recipes = await get_recipes(db, **q.local_filters())
    return [await _with_image(r) for r in recipes]


async def _local_random(db: aiosqlite.Connection, q: RecipeQuery) -> Recipe:
    recipe = await get_random_recipe(db, **q.local_filters(with_search=False))
    if recipe is None:
        raise HTTPException(status_code=404, detail="No recipes found with the given criteria")
    return await _with_image(recipe)


@router.get("", response_model=list[Recipe])
async def list_recipes(
    q: RecipeQuery = Depends(),
    db: aiosqlite.Connection = Depends(get_db),
):
    if not q.use_api:
        return await _local_recipes(db, q)

    try:
        data = await search_recipes(
            q.search_term or "",
            diet=diet_for_spoonacular(q.dietary) or None,
            meal_type=meal_type_for_spoonacular(q.meal_type) or None,
            max_ready_time=q.servings * 10 if q.servings else None,
            intolerances=q.allergies,
        )
        recipes = [map_recipe(r) for r in data.get("results") or []]
    except SpoonacularError as e:
        logger.warning("Spoonacular unavailable (%s) — using local recipes", e)
        return await _local_recipes(db, q)

    if q.inventory_based:
        recipes, _ = await _filter_by_inventory_titles(db, recipes)
    return recipes


@router.get("/random", response_model=Recipe)
async def random_recipe(
    q: RecipeQuery = Depends(),
    db: aiosqlite.Connection = Depends(get_db),
):
    if not q.use_api:
        return await _local_random(db, q)

    tags: list[str] = []
    meal_tag = meal_type_for_spoonacular(q.meal_type)
    if meal_tag:
        tags.append(meal_tag.split(",")[0])
    diet_tag = diet_for_spoonacular(q.dietary)
    if diet_tag:
        tags.append(diet_tag)

    try:
        data = await get_random_recipes(tags, 1, q.allergies)
        recipes = [map_recipe(r) for r in data.get("recipes") or []]
    except SpoonacularError as e:
        logger.warning("Spoonacular unavailable (%s) — using local recipes", e)
        return await _local_random(db, q)

    if not recipes:
        logger.info("No recipes returned from Spoonacular, falling back to local catalogue")
        return await _local_random(db, q)

    if q.inventory_based:
        recipes, filtered = await _filter_by_inventory_titles(db, recipes)
        if filtered:
            if not recipes:
                return await _local_random(db, q)
            return random.choice(recipes)
    return recipes[0]


@router.get("/{recipe_id}", response_model=Recipe)
async def get_recipe(recipe_id: int, db: aiosqlite.Connection = Depends(get_db)):
    recipe = await get_recipe_by_id(db, recipe_id)
    if recipe is None:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return await _with_image(recipe)
