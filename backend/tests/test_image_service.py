"""
Tests for the LRU cache and services.image_service (Pexels lookups and
DeepAI enhancement), with HTTP answered by httpx.MockTransport.
"""
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import client_for
from services import image_service
from services.cache import LRUCache
from services.image_service import (
    PLACEHOLDER_IMAGE_URL, enhance_image, get_cached_image_for_recipe, get_image_for_recipe,
    search_images,
)

_RealAsyncClient = httpx.AsyncClient


def mock_client(handler):
    def factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return factory


def pexels_photos(*urls):
    return {"photos": [{"src": {"large": u}} for u in urls]}


@pytest.fixture(autouse=True)
def empty_cache():
    image_service._image_cache.clear()
    yield
    image_service._image_cache.clear()


# ── LRUCache ─────────────────────────────────────────────────────────────────

class TestLRUCache:

    def test_evicts_least_recently_used(self):
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_put_existing_key_refreshes(self):
        cache = LRUCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        cache.put("c", 3)
        assert cache.get("a") == 10
        assert cache.get("b") is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            LRUCache(0)


# ── search_images ────────────────────────────────────────────────────────────

class TestSearchImages:

    @pytest.mark.asyncio
    async def test_no_key_returns_empty(self, monkeypatch):
        monkeypatch.delenv("PEXELS_API_KEY", raising=False)
        assert await search_images("pasta") == []

    @pytest.mark.asyncio
    async def test_returns_large_urls(self, monkeypatch):
        monkeypatch.setenv("PEXELS_API_KEY", "px-key")

        def handler(request):
            assert request.headers["Authorization"] == "px-key"
            return httpx.Response(200, json=pexels_photos("https://px.test/1.jpg"))

        with patch("services.image_service.httpx.AsyncClient", mock_client(handler)):
            assert await search_images("pasta") == ["https://px.test/1.jpg"]

    @pytest.mark.asyncio
    async def test_retries_with_food_suffix(self, monkeypatch):
        monkeypatch.setenv("PEXELS_API_KEY", "px-key")
        queries = []

        def handler(request):
            queries.append(request.url.params["query"])
            if len(queries) == 1:
                return httpx.Response(200, json={"photos": []})
            return httpx.Response(200, json=pexels_photos("https://px.test/2.jpg"))

        with patch("services.image_service.httpx.AsyncClient", mock_client(handler)):
            result = await search_images("gnocchi")

        assert queries == ["gnocchi", "gnocchi food"]
        assert result == ["https://px.test/2.jpg"]

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self, monkeypatch):
        monkeypatch.setenv("PEXELS_API_KEY", "px-key")
        handler = lambda request: httpx.Response(500)
        with patch("services.image_service.httpx.AsyncClient", mock_client(handler)):
            assert await search_images("pasta food") == []


# ── get_image_for_recipe ─────────────────────────────────────────────────────

class TestImageForRecipe:

    @pytest.mark.asyncio
    async def test_narrows_query_step_by_step(self):
        with patch("services.image_service.search_images", new_callable=AsyncMock,
                   side_effect=[[], [], ["https://px.test/basil.jpg"]]) as mock_search:
            url = await get_image_for_recipe("Pesto Pasta!", ["basil", "pine nuts", "garlic"])

        assert url == "https://px.test/basil.jpg"
        queries = [c.args[0] for c in mock_search.call_args_list]
        assert queries == ["Pesto Pasta with basil pine nuts", "Pesto Pasta", "basil food"]

    @pytest.mark.asyncio
    async def test_curated_photo_last(self):
        with patch("services.image_service.search_images", new_callable=AsyncMock,
                   side_effect=[[], [], ["https://px.test/meal.jpg"]]) as mock_search:
            assert await get_image_for_recipe("Mystery") == "https://px.test/meal.jpg"

        assert mock_search.call_args_list[-1].args[0] in image_service.CURATED_QUERIES


# ── get_cached_image_for_recipe ──────────────────────────────────────────────

class TestCachedRecipeImage:

    @pytest.mark.asyncio
    async def test_result_is_cached(self):
        with patch("services.image_service.get_image_for_recipe",
                   new_callable=AsyncMock, return_value="https://px.test/curry.jpg") as mock_lookup:
            first = await get_cached_image_for_recipe("Curry", ["rice", "chicken"])
            second = await get_cached_image_for_recipe("Curry", ["rice", "chicken"])

        assert first == second == "https://px.test/curry.jpg"
        assert mock_lookup.call_count == 1

    @pytest.mark.asyncio
    async def test_placeholder_not_cached(self):
        with patch("services.image_service.get_image_for_recipe",
                   new_callable=AsyncMock, return_value=None) as mock_lookup:
            assert await get_cached_image_for_recipe("Curry") == PLACEHOLDER_IMAGE_URL
            assert await get_cached_image_for_recipe("Curry") == PLACEHOLDER_IMAGE_URL

        assert mock_lookup.call_count == 2

    @pytest.mark.asyncio
    async def test_lookup_error_gives_placeholder(self):
        with patch("services.image_service.get_image_for_recipe",
                   new_callable=AsyncMock, side_effect=RuntimeError("boom")):
            assert await get_cached_image_for_recipe("Curry") == PLACEHOLDER_IMAGE_URL


# ── enhance_image ────────────────────────────────────────────────────────────

class TestEnhanceImage:

    @pytest.mark.asyncio
    async def test_no_key_returns_original(self, monkeypatch):
        monkeypatch.delenv("DEEPAI_API_KEY", raising=False)
        assert await enhance_image("https://img.test/a.jpg") == "https://img.test/a.jpg"

    @pytest.mark.asyncio
    async def test_resolution_uses_srgan(self, monkeypatch):
        monkeypatch.setenv("DEEPAI_API_KEY", "dp-key")
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"output_url": "https://deepai.test/out.jpg"})

        with patch("services.image_service.httpx.AsyncClient", mock_client(handler)):
            result = await enhance_image("https://img.test/a.jpg", "resolution")

        assert result == "https://deepai.test/out.jpg"
        assert paths == ["/api/torch-srgan"]

    @pytest.mark.asyncio
    async def test_failure_returns_original(self, monkeypatch):
        monkeypatch.setenv("DEEPAI_API_KEY", "dp-key")
        handler = lambda request: httpx.Response(401, json={"err": "bad key"})
        with patch("services.image_service.httpx.AsyncClient", mock_client(handler)):
            assert await enhance_image("https://img.test/a.jpg") == "https://img.test/a.jpg"


class TestEnhanceRouter:

    @pytest.fixture
    def app(self):
        from fastapi import FastAPI
        from routers.images import router
        test_app = FastAPI()
        test_app.include_router(router, prefix="/api/images")
        return test_app

    @pytest.mark.asyncio
    async def test_requires_url(self, app):
        async with client_for(app) as client:
            resp = await client.post("/api/images/enhance", json={})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_returns_both_urls(self, app):
        with patch("routers.images.enhance_image",
                   new_callable=AsyncMock, return_value="https://deepai.test/out.jpg"):
            async with client_for(app) as client:
                resp = await client.post(
                    "/api/images/enhance",
                    json={"image_url": "https://img.test/a.jpg", "enhancement_type": "color"},
                )
        assert resp.json() == {
            "original_url": "https://img.test/a.jpg",
            "enhanced_url": "https://deepai.test/out.jpg",
        }
