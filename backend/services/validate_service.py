"""
Validation gate for candidate line items.

A batch is accepted or rejected as a whole: the first offending field is
reported and nothing from the batch is kept.
"""
from typing import Any

from pydantic import TypeAdapter, ValidationError

from models.schemas import CandidateItem
from services.money import InvalidMoneyError, Money

_CANDIDATES = TypeAdapter(list[CandidateItem])


class CandidateValidationError(ValueError):
    def __init__(self, field_path: str, message: str):
        super().__init__(f"{field_path}: {message}" if field_path else message)
        self.field_path = field_path
        self.message = message


def validate_candidates(payload: Any) -> list[CandidateItem]:
    """Validate a parsed batch of candidates.  Raises CandidateValidationError."""
    try:
        return _CANDIDATES.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(p) for p in first["loc"])
        raise CandidateValidationError(path, first["msg"]) from e


def candidate_price(item: CandidateItem, index: int) -> Money:
    """Convert a candidate's display price, failing the batch if it has no amount."""
    try:
        return Money.parse(item.price)
    except InvalidMoneyError as e:
        raise CandidateValidationError(f"{index}.price", str(e)) from e
