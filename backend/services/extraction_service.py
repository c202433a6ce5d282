"""
Extraction Service — sends a receipt photo to Claude Vision and turns the
reply into a list of candidate line items.

The model is asked for a bare JSON array, but replies sometimes arrive in
Markdown fences or with a sentence of prose around them.  A narrow recovery
step handles that; anything it can't fix is reported as a parse failure
together with the raw reply so it can be inspected.
"""
import base64
import io
import json
import logging
import os
import re

import anthropic

logger = logging.getLogger("larder.extraction")

try:
    from PIL import Image, ImageOps
    PILLOW_AVAILABLE = True
except ImportError:
    PILLOW_AVAILABLE = False
    logger.warning("Pillow not available — images are sent to Vision unmodified")

ALLOWED_MEDIA_TYPES = {"image/jpeg", "image/png"}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
VISION_MAX_DIM = 1568
DEFAULT_VISION_MODEL = "claude-sonnet-4-5"

EXTRACTION_PROMPT = """Analyze this receipt and extract the items, GST (tax), and total in a simple JSON format.

Format each regular item as:
{"name": "Item Name", "description": "Details if any", "price": "$XX.XX", "category": "Produce/Dairy/Bakery/Frozen/Pantry/Household/etc"}

Be sure to include GST/tax (very important):
{"name": "GST", "description": "Goods and Services Tax", "price": "$X.XX", "category": "Tax"}

And the total:
{"name": "TOTAL", "description": "Total Payment", "price": "$XX.XX", "category": "Total"}

Return ONLY a properly formatted JSON array with no explanations:
[
  {"name": "First Item", "description": "Description", "price": "$10.00", "category": "Produce"},
  {"name": "GST", "description": "Goods and Services Tax", "price": "$1.00", "category": "Tax"},
  {"name": "TOTAL", "description": "Total Payment", "price": "$11.00", "category": "Total"}
]"""

_FENCE_RE = re.compile(r'```(?:json)?', re.IGNORECASE)


class ExtractionParseError(Exception):
    """The model reply could not be turned into a JSON array."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class VisionUnavailableError(RuntimeError):
    """Raised when the vision model can't be called at all (e.g. no API key)."""
    pass


def extract_json_array(raw_text: str) -> list:
    """
    Recover a JSON array from a model reply.

    Code-fence markers are removed; if what's left isn't wrapped in [ ], the
    text between the first '[' and the last ']' is used.  Raises
    ExtractionParseError if the result isn't a JSON array.
    """
    text = _FENCE_RE.sub('', raw_text or '').strip()

    if not (text.startswith('[') and text.endswith(']')):
        start = text.find('[')
        end = text.rfind(']')
        if start != -1 and end > start:
            text = text[start:end + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable extraction output: %r", raw_text)
        raise ExtractionParseError(
            "Could not parse extraction output", raw_text
        ) from e

    if not isinstance(data, list):
        raise ExtractionParseError(
            "Could not parse extraction output: expected a JSON array", raw_text
        )
    return data


def _prepare_image_for_vision(image_bytes: bytes, media_type: str) -> tuple[bytes, str]:
    """
    Normalise EXIF orientation and shrink the long side to VISION_MAX_DIM.
    Returns (bytes, media_type); the original bytes are returned if Pillow
    can't read the image.
    """
    if not PILLOW_AVAILABLE:
        return image_bytes, media_type

    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        w, h = img.size
        long_side = max(w, h)
        if long_side > VISION_MAX_DIM:
            scale = VISION_MAX_DIM / long_side
            img = img.resize((max(1, round(w * scale)), max(1, round(h * scale))), Image.LANCZOS)
            logger.debug("Resized image %d×%d → %d×%d", w, h, img.size[0], img.size[1])

        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=92, optimize=True)
        return buf.getvalue(), "image/jpeg"
    except Exception as e:
        logger.warning("Image prep failed (%s), sending original", e)
        return image_bytes, media_type


async def request_vision_extraction(image_bytes: bytes, media_type: str) -> str:
    """Send the receipt image to Claude Vision and return its raw text reply."""
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    if not api_key:
        raise VisionUnavailableError("ANTHROPIC_API_KEY not set — receipt analysis unavailable")

    vision_bytes, vision_type = _prepare_image_for_vision(image_bytes, media_type)
    b64 = base64.standard_b64encode(vision_bytes).decode()
    model = os.environ.get("VISION_MODEL", DEFAULT_VISION_MODEL)
    logger.info("Sending %d KB b64 (%s) to %s", len(b64) // 1024, vision_type, model)

    client = anthropic.AsyncAnthropic(api_key=api_key)
    message = await client.messages.create(
        model=model,
        max_tokens=4096,
        messages=[{
            "role": "user",
            "content": [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": vision_type,
                        "data": b64,
                    },
                },
                {"type": "text", "text": EXTRACTION_PROMPT},
            ],
        }],
    )
    return message.content[0].text.strip()
