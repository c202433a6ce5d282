"""
Tests for services.extraction_service — recovering a JSON array from the
vision model's reply, and the call into the Anthropic client.
"""
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from services.extraction_service import (
    ExtractionParseError, VisionUnavailableError, VISION_MAX_DIM,
    _prepare_image_for_vision, extract_json_array, request_vision_extraction,
)

ITEMS_JSON = '[{"name": "Milk", "price": "$3.00", "category": "Dairy"}]'


# ── extract_json_array ───────────────────────────────────────────────────────

class TestExtractJsonArray:

    def test_bare_array(self):
        assert extract_json_array(ITEMS_JSON) == [
            {"name": "Milk", "price": "$3.00", "category": "Dairy"}
        ]

    def test_markdown_fence(self):
        raw = f"```json\n{ITEMS_JSON}\n```"
        assert extract_json_array(raw)[0]["name"] == "Milk"

    def test_plain_fence(self):
        raw = f"```\n{ITEMS_JSON}\n```"
        assert len(extract_json_array(raw)) == 1

    def test_prose_around_array(self):
        raw = f"Here are the items I found:\n{ITEMS_JSON}\nLet me know if you need more."
        assert extract_json_array(raw)[0]["price"] == "$3.00"

    def test_empty_array(self):
        assert extract_json_array("[]") == []

    def test_no_array_raises_with_raw_text(self):
        raw = "I couldn't read this receipt, sorry."
        with pytest.raises(ExtractionParseError) as exc:
            extract_json_array(raw)
        assert exc.value.raw_text == raw

    def test_broken_json_raises(self):
        with pytest.raises(ExtractionParseError):
            extract_json_array('[{"name": "Milk", "price": }]')

    def test_object_instead_of_array_raises(self):
        with pytest.raises(ExtractionParseError, match="expected a JSON array"):
            extract_json_array('{"name": "Milk", "price": "$3.00"}')

    def test_none_raises(self):
        with pytest.raises(ExtractionParseError):
            extract_json_array(None)


# ── _prepare_image_for_vision ────────────────────────────────────────────────

def _png_bytes(size):
    buf = io.BytesIO()
    Image.new("RGBA", size, (255, 0, 0, 255)).save(buf, format="PNG")
    return buf.getvalue()


class TestPrepareImage:

    def test_large_image_is_downscaled_to_jpeg(self):
        data, media_type = _prepare_image_for_vision(_png_bytes((3000, 1000)), "image/png")
        assert media_type == "image/jpeg"
        img = Image.open(io.BytesIO(data))
        assert max(img.size) == VISION_MAX_DIM

    def test_downscale_rounds_to_nearest_pixel(self):
        data, _ = _prepare_image_for_vision(_png_bytes((1000, 3000)), "image/png")
        assert Image.open(io.BytesIO(data)).size == (523, VISION_MAX_DIM)

    def test_small_image_keeps_size(self):
        data, _ = _prepare_image_for_vision(_png_bytes((200, 100)), "image/png")
        assert Image.open(io.BytesIO(data)).size == (200, 100)

    def test_unreadable_bytes_returned_unchanged(self):
        data, media_type = _prepare_image_for_vision(b"not an image", "image/jpeg")
        assert data == b"not an image"
        assert media_type == "image/jpeg"


# ── request_vision_extraction ────────────────────────────────────────────────

class TestRequestVisionExtraction:

    @pytest.mark.asyncio
    async def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(VisionUnavailableError, match="ANTHROPIC_API_KEY not set"):
            await request_vision_extraction(_png_bytes((10, 10)), "image/png")

    @pytest.mark.asyncio
    async def test_returns_stripped_reply_text(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test-key")
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(
            return_value=MagicMock(content=[MagicMock(text=f"  {ITEMS_JSON}\n")])
        )

        with patch("services.extraction_service.anthropic.AsyncAnthropic",
                   return_value=mock_client):
            text = await request_vision_extraction(_png_bytes((10, 10)), "image/png")

        assert text == ITEMS_JSON
        content = mock_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["media_type"] == "image/jpeg"
        assert content[1]["type"] == "text"

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test-key")
        mock_client = MagicMock()
        mock_client.messages.create = AsyncMock(side_effect=RuntimeError("Connection refused"))

        with patch("services.extraction_service.anthropic.AsyncAnthropic",
                   return_value=mock_client):
            with pytest.raises(RuntimeError, match="Connection refused"):
                await request_vision_extraction(_png_bytes((10, 10)), "image/png")
