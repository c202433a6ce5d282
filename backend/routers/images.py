"""
Images Router

POST /api/images/enhance  — colourise or upscale an image through DeepAI
"""
import logging

from fastapi import APIRouter, HTTPException

from models.schemas import EnhanceImageRequest, EnhanceImageResult
from services.image_service import enhance_image

logger = logging.getLogger("larder.images")
router = APIRouter()


@router.post("/enhance", response_model=EnhanceImageResult)
async def enhance(body: EnhanceImageRequest):
    if not body.image_url:
        raise HTTPException(status_code=400, detail="Image URL is required")
    enhanced = await enhance_image(body.image_url, body.enhancement_type)
    if enhanced == body.image_url:
        logger.info("Enhancement returned the original image")
    return EnhanceImageResult(original_url=body.image_url, enhanced_url=enhanced)
