"""
Spoonacular client — recipe search, random recipes and recipe details.

Every failure (missing key, quota, HTTP error, network) surfaces as
SpoonacularError so callers can fall back to the local catalogue.
"""
import logging
import os
from typing import Optional

import httpx

logger = logging.getLogger("larder.spoonacular")

BASE_URL = "https://api.spoonacular.com"
TIMEOUT = httpx.Timeout(15.0, connect=5.0)

# Local meal_types ids → Spoonacular "type" values
MEAL_TYPE_MAP = {
    1: "breakfast",
    2: "lunch",
    3: "dinner,main course",
    4: "dessert",
    5: "snack,appetizer",
}


class SpoonacularError(Exception):
    pass


def meal_type_for_spoonacular(meal_type_id) -> str:
    try:
        return MEAL_TYPE_MAP.get(int(meal_type_id), "")
    except (TypeError, ValueError):
        return ""


def diet_for_spoonacular(dietary_ids: list) -> str:
    """Map local dietary preference ids to a single Spoonacular diet."""
    ids = set()
    for i in dietary_ids:
        try:
            ids.add(int(i))
        except (TypeError, ValueError):
            continue
    if 1 in ids:
        return "vegetarian"
    if 2 in ids:
        return "vegan"
    if 3 in ids:
        return "gluten free"
    return ""


async def _get(path: str, params: dict) -> dict:
    api_key = os.environ.get("SPOONACULAR_API_KEY", "")
    if not api_key:
        raise SpoonacularError("SPOONACULAR_API_KEY not set")

    try:
        async with httpx.AsyncClient(base_url=BASE_URL, timeout=TIMEOUT) as client:
            resp = await client.get(path, params={"apiKey": api_key, **params})
    except httpx.HTTPError as e:
        raise SpoonacularError(f"Spoonacular request failed: {e}") from e

    if resp.status_code == 402:
        raise SpoonacularError(
            "Spoonacular API daily quota exceeded. Try again tomorrow or upgrade the API plan."
        )
    if resp.status_code >= 400:
        logger.error("Spoonacular API responded with %s for %s", resp.status_code, path)
        raise SpoonacularError(f"Spoonacular API error: {resp.status_code} {resp.reason_phrase}")
    try:
        data = resp.json()
    except ValueError as e:
        raise SpoonacularError(f"Spoonacular returned a non-JSON response for {path}") from e
    if not isinstance(data, dict):
        raise SpoonacularError(f"Unexpected Spoonacular response for {path}")
    return data


async def search_recipes(
    query: str = "",
    diet: Optional[str] = None,
    meal_type: Optional[str] = None,
    max_ready_time: Optional[int] = None,
    intolerances: Optional[str] = None,
) -> dict:
    params = {
        "query": query or "main dish",
        "number": 8,
        "addRecipeInformation": "true",
        "fillIngredients": "true",
        "sort": "popularity",
        "instructionsRequired": "true",
    }
    if diet:
        params["diet"] = diet
    if meal_type:
        params["type"] = meal_type
    if max_ready_time:
        params["maxReadyTime"] = max_ready_time
    if intolerances:
        params["intolerances"] = intolerances

    logger.info("Searching Spoonacular: %r type=%s diet=%s", params["query"], meal_type, diet)
    data = await _get("/recipes/complexSearch", params)
    logger.info("Spoonacular returned %d recipes", len(data.get("results") or []))
    return data


async def get_random_recipes(
    tags: Optional[list[str]] = None, number: int = 3, intolerances: Optional[str] = None
) -> dict:
    params = {
        "number": number,
        "addRecipeInformation": "true",
        "fillIngredients": "true",
        "instructionsRequired": "true",
    }
    if tags:
        params["tags"] = ",".join(tags)
    if intolerances:
        params["intolerances"] = intolerances
    return await _get("/recipes/random", params)


async def get_recipe_by_id(recipe_id: int) -> dict:
    return await _get(f"/recipes/{recipe_id}/information", {"includeNutrition": "true"})


def _meal_type_id(dish_types: list) -> Optional[int]:
    if not dish_types:
        return None
    dish = str(dish_types[0]).lower()
    if "breakfast" in dish:
        return 1
    if "lunch" in dish:
        return 2
    if "dinner" in dish or "main course" in dish:
        return 3
    if "dessert" in dish:
        return 4
    if "snack" in dish or "appetizer" in dish:
        return 5
    return None


def map_recipe(raw: dict) -> dict:
    """Convert a Spoonacular recipe payload into the app's Recipe shape."""
    if not isinstance(raw, dict) or raw.get("id") is None:
        raise SpoonacularError("Malformed recipe in Spoonacular response")
    ready = raw.get("readyInMinutes")
    calories = None
    for nutrient in (raw.get("nutrition") or {}).get("nutrients") or []:
        if nutrient.get("name") == "Calories":
            calories = nutrient.get("amount")
            break

    return {
        "id": raw["id"],
        "title": raw.get("title") or "",
        "instructions": raw.get("instructions") or "",
        "prep_time": ready // 3 if ready else None,
        "cook_time": ready * 2 // 3 if ready else None,
        "servings": raw.get("servings") or 2,
        "calories": calories,
        "image_url": raw.get("image"),
        "source_url": raw.get("sourceUrl"),
        "meal_type_id": _meal_type_id(raw.get("dishTypes") or []),
        "ingredients": [
            {
                "id": ing.get("id"),
                "name": ing.get("name") or "",
                "amount": str(ing.get("amount", "")),
                "unit": ing.get("unit"),
                "original": ing.get("original"),
                "optional": False,
            }
            for ing in raw.get("extendedIngredients") or []
        ],
        "dietary_preference_ids": [],
    }
