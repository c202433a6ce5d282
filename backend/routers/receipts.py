"""
Receipts Router

POST   /api/receipts/analyze            — upload image, extract + reconcile line items (nothing saved)
POST   /api/receipts/items              — save reviewed items as a new receipt
GET    /api/receipts/items              — all saved receipt items, newest first
GET    /api/receipts                    — list receipts (summary)
GET    /api/receipts/{id}               — receipt with its items
DELETE /api/receipts/{id}               — remove a receipt and its items
POST   /api/receipts/{id}/to-inventory  — copy a receipt's food items into the inventory
"""
import logging
from typing import Any, Optional

import aiosqlite
import anthropic
from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile

from db.database import get_db
from models.schemas import CandidateItem, InventoryItem, ReceiptItem, ReceiptSummary, ReceiptWithItems
from services.extraction_service import (
    ALLOWED_MEDIA_TYPES, MAX_UPLOAD_BYTES, ExtractionParseError, extract_json_array,
    VisionUnavailableError, request_vision_extraction,
)
from services.inventory_service import add_receipt_items_to_inventory
from services.money import Money
from services.receipt_service import (
    ReceiptNotFoundError, create_receipt_with_items, delete_receipt as delete_receipt_row,
    get_receipt_with_items, list_receipt_items, list_receipts as list_receipt_rows,
)
from services.reconcile_service import is_total_item, reconcile_tax
from services.validate_service import CandidateValidationError, candidate_price, validate_candidates

logger = logging.getLogger("larder.receipts")
router = APIRouter()

UNKNOWN_STORE = "Unknown Store"


# ── Analyze ───────────────────────────────────────────────────────────────────

@router.post("/analyze", response_model=list[CandidateItem])
async def analyze_receipt(receipt: Optional[UploadFile] = File(None)):
    """
    Run the receipt photo through Claude Vision and return candidate items for
    the review screen.  A GST line is added when the model skipped the tax but
    the total says there was some.
    """
    if receipt is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if receipt.content_type not in ALLOWED_MEDIA_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type. Only JPEG and PNG are allowed.",
        )

    contents = await receipt.read()
    if len(contents) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large (max 5MB)")

    try:
        raw_text = await request_vision_extraction(contents, receipt.content_type)
    except VisionUnavailableError as e:
        logger.error("Receipt analysis unavailable: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except anthropic.APIError:
        logger.exception("Vision model request failed")
        raise HTTPException(status_code=500, detail="Vision model request failed")

    try:
        candidates = extract_json_array(raw_text)
    except ExtractionParseError as e:
        logger.warning("Could not parse extraction output (%d chars)", len(e.raw_text or ""))
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "raw_response": e.raw_text},
        )

    candidates = reconcile_tax(candidates)

    try:
        items = validate_candidates(candidates)
    except CandidateValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "field": e.field_path},
        )

    logger.info("Extracted %d candidate items", len(items))
    return items


# ── Save reviewed items ───────────────────────────────────────────────────────

@router.post("/items", response_model=ReceiptWithItems, status_code=201)
async def save_receipt_items(
    payload: Any = Body(...),
    store_name: Optional[str] = None,
    db: aiosqlite.Connection = Depends(get_db),
):
    """
    Save a reviewed batch of candidates.  The batch is validated as a whole;
    the TOTAL line becomes the receipt's total and every other line is stored
    as a receipt item.  Receipt and items are written in one transaction.
    """
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail="Expected an array of receipt items")

    try:
        candidates = validate_candidates(payload)
        total: Optional[Money] = None
        items: list[dict] = []
        for index, c in enumerate(candidates):
            if is_total_item(c.model_dump()):
                if total is None:
                    total = candidate_price(c, index)
                continue
            items.append({
                "name": c.name,
                "description": c.description or None,
                "price": candidate_price(c, index),
                "category": c.category or "Others",
            })
    except CandidateValidationError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "field": e.field_path})

    return await create_receipt_with_items(db, store_name or UNKNOWN_STORE, total, items)


@router.get("/items", response_model=list[ReceiptItem])
async def get_receipt_items(db: aiosqlite.Connection = Depends(get_db)):
    return await list_receipt_items(db)


# ── List / Get / Delete ───────────────────────────────────────────────────────

@router.get("", response_model=list[ReceiptSummary])
async def list_receipts(
    limit: int = 50,
    offset: int = 0,
    db: aiosqlite.Connection = Depends(get_db),
):
    results = await list_receipt_rows(db, limit, offset)
    logger.debug("list_receipts returning %d receipts", len(results))
    return results


@router.get("/{receipt_id}", response_model=ReceiptWithItems)
async def get_receipt(
    receipt_id: int,
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        return await get_receipt_with_items(db, receipt_id)
    except ReceiptNotFoundError:
        raise HTTPException(status_code=404, detail="Receipt not found")


@router.delete("/{receipt_id}")
async def delete_receipt(
    receipt_id: int,
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        await delete_receipt_row(db, receipt_id)
    except ReceiptNotFoundError:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return {"status": "deleted"}


# ── Receipt → Inventory ───────────────────────────────────────────────────────

@router.post("/{receipt_id}/to-inventory", response_model=list[InventoryItem], status_code=201)
async def receipt_to_inventory(
    receipt_id: int,
    db: aiosqlite.Connection = Depends(get_db),
):
    try:
        return await add_receipt_items_to_inventory(db, receipt_id)
    except ReceiptNotFoundError:
        raise HTTPException(status_code=404, detail="Receipt not found")
