"""
Reconciliation Service

Vision models often list the receipt TOTAL but skip the GST / tax line.
When that happens the difference between the stated total and the sum of
the regular items is assumed to be tax, and a synthetic "GST" line is added
so the review screen (and the saved receipt) adds up.
"""
import logging
from decimal import Decimal
from enum import Enum
from typing import Any

from services.money import DEFAULT_CURRENCY, Money, currency_symbol, parse_amount

logger = logging.getLogger("larder.reconcile")

TAX_NAMES = {"GST", "TAX", "VAT"}
TOTAL_NAMES = {"TOTAL", "AMOUNT", "PAYMENT"}


class ItemKind(str, Enum):
    TAX = "tax"
    TOTAL = "total"
    REGULAR = "regular"


def _field(item: Any, key: str) -> str:
    if not isinstance(item, dict):
        return ""
    value = item.get(key)
    return "" if value is None else str(value)


def classify_item(item: Any) -> ItemKind:
    """Tax, Total or Regular.  Category is compared exactly, name case-insensitively."""
    category = _field(item, "category")
    name = _field(item, "name").upper()
    if category == "Tax" or name in TAX_NAMES:
        return ItemKind.TAX
    if category == "Total" or name in TOTAL_NAMES:
        return ItemKind.TOTAL
    return ItemKind.REGULAR


def is_total_item(item: Any) -> bool:
    return classify_item(item) is ItemKind.TOTAL


def reconcile_tax(items: list) -> list:
    """
    Ensure a tax line is present, synthesizing one from total − subtotal.

    Returns a new list; the input is not modified.  No item is added when a
    tax line already exists, when there is no total line, or when the total
    does not exceed the subtotal.
    """
    items = list(items)
    kinds = [classify_item(i) for i in items]

    if ItemKind.TAX in kinds:
        return items

    regular = [i for i, k in zip(items, kinds) if k is ItemKind.REGULAR]
    total_item = next((i for i, k in zip(items, kinds) if k is ItemKind.TOTAL), None)
    if total_item is None:
        return items

    subtotal = sum((parse_amount(_field(i, "price")) for i in regular), Decimal(0))
    total_value = parse_amount(_field(total_item, "price"))

    if total_value <= subtotal:
        return items

    symbol = currency_symbol(_field(regular[0], "price")) if regular else DEFAULT_CURRENCY
    gst = Money.from_amount(total_value - subtotal, symbol)
    logger.info("No tax line found — adding GST %s (total %s, subtotal %s)",
                gst, total_value, subtotal)
    items.append({
        "name": "GST",
        "description": "Goods and Services Tax",
        "price": gst.format(),
        "category": "Tax",
    })
    return items
