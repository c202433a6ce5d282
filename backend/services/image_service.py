"""
Image Service

Recipe photos come from Pexels; DeepAI is used to colourise or upscale an
image on request.  Neither is allowed to break a page: Pexels failures
resolve to a placeholder photo and DeepAI failures return the original URL.
"""
import logging
import os
import random
import re
from typing import Optional

import httpx

from services.cache import LRUCache

logger = logging.getLogger("larder.images")

PEXELS_URL = "https://api.pexels.com/v1"
DEEPAI_URL = "https://api.deepai.org/api"
TIMEOUT = httpx.Timeout(10.0, connect=5.0)

PLACEHOLDER_IMAGE_URL = os.environ.get(
    "PLACEHOLDER_IMAGE_URL",
    "https://images.pexels.com/photos/1640777/pexels-photo-1640777.jpeg",
)
CURATED_QUERIES = ["healthy food", "delicious meal", "home cooking", "fresh ingredients"]

_image_cache: LRUCache[str] = LRUCache(int(os.environ.get("IMAGE_CACHE_SIZE", "256")))


async def search_images(query: str, per_page: int = 1, _retry: bool = True) -> list[str]:
    """
    Search Pexels and return large-image URLs.  An empty result for a query
    without "food"/"meal" in it is retried once as "<query> food".
    Returns [] on any error.
    """
    api_key = os.environ.get("PEXELS_API_KEY", "")
    if not api_key:
        return []

    try:
        async with httpx.AsyncClient(timeout=TIMEOUT) as client:
            resp = await client.get(
                f"{PEXELS_URL}/search",
                params={"query": query, "per_page": per_page},
                headers={"Authorization": api_key},
            )
        resp.raise_for_status()
        photos = resp.json().get("photos") or []
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Pexels search failed for %r: %s", query, e)
        return []

    if not photos:
        lowered = query.lower()
        if _retry and "food" not in lowered and "meal" not in lowered:
            return await search_images(f"{query} food", per_page, _retry=False)
        return []
    return [p["src"]["large"] for p in photos if p.get("src", {}).get("large")]


async def get_curated_food_image() -> Optional[str]:
    images = await search_images(random.choice(CURATED_QUERIES), 1)
    return images[0] if images else None


async def get_image_for_recipe(title: str, ingredients: Optional[list[str]] = None) -> Optional[str]:
    """
    Find a photo for a recipe, narrowing the query step by step:
    title + two main ingredients → title → first ingredient → any food photo.
    """
    ingredients = [i for i in (ingredients or []) if i and i.strip()]
    cleaned = re.sub(r'[^\w\s]', '', title).strip()

    query = cleaned
    if ingredients:
        query = f"{cleaned} with {' '.join(ingredients[:2])}"
    images = await search_images(query, 1)
    if images:
        return images[0]

    images = await search_images(cleaned, 1)
    if images:
        return images[0]

    if ingredients:
        images = await search_images(f"{ingredients[0]} food", 1)
        if images:
            return images[0]

    return await get_curated_food_image()


def _cache_key(title: str, ingredients: list[str]) -> str:
    return "_".join([title, *ingredients[:3]]) if ingredients else title


async def get_cached_image_for_recipe(title: str, ingredients: Optional[list[str]] = None) -> str:
    """Recipe photo URL, memoised; the placeholder is returned (not cached) when nothing is found."""
    ingredients = ingredients or []
    key = _cache_key(title, ingredients)
    cached = _image_cache.get(key)
    if cached:
        return cached

    try:
        url = await get_image_for_recipe(title, ingredients)
    except Exception as e:
        logger.warning("Image lookup for %r failed: %s", title, e)
        url = None

    if not url:
        return PLACEHOLDER_IMAGE_URL
    _image_cache.put(key, url)
    return url


async def enhance_image(image_url: str, enhancement_type: str = "color") -> str:
    """
    Run a DeepAI enhancement ('color' → colorizer, 'resolution' → torch-srgan)
    and return the output URL, or the original URL if anything goes wrong.
    """
    api_key = os.environ.get("DEEPAI_API_KEY", "")
    if not api_key:
        logger.warning("DEEPAI_API_KEY not set — returning original image")
        return image_url

    endpoint = "torch-srgan" if enhancement_type == "resolution" else "colorizer"
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=5.0)) as client:
            resp = await client.post(
                f"{DEEPAI_URL}/{endpoint}",
                data={"image": image_url},
                headers={"api-key": api_key},
            )
        resp.raise_for_status()
        return resp.json().get("output_url") or image_url
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("DeepAI %s failed: %s", endpoint, e)
        return image_url
