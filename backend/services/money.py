"""
Money — prices as integer minor units plus a currency symbol.

Receipt text and client payloads carry prices as display strings ("$3.49",
"€1,20 ", "N/A").  Those strings are converted here, once, at the edge of the
system; everything stored or summed afterwards is a Money value.
"""
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

DEFAULT_CURRENCY = "$"

_NON_NUMERIC_RE = re.compile(r'[^\d.\-]')
# Leading decimal number, the way a lenient float parser reads it
# ("3.00-1" → 3.00, "-.5" → -0.5, "5." → 5).
_LEADING_NUMBER_RE = re.compile(r'^-?(?:\d+\.?\d*|\.\d+)')
_SYMBOL_STRIP_RE = re.compile(r'[\d.,\-\s]')

_CENT = Decimal("0.01")


class InvalidMoneyError(ValueError):
    """Raised when a price string holds no readable amount."""

    def __init__(self, text: str):
        super().__init__(f"Could not read a price from {text!r}")
        self.text = text


def _read_amount(text) -> Optional[Decimal]:
    cleaned = _NON_NUMERIC_RE.sub('', str(text))
    m = _LEADING_NUMBER_RE.match(cleaned)
    if not m:
        return None
    return Decimal(m.group(0))


def parse_amount(text) -> Decimal:
    """
    Lenient amount parse used for summing.

    Strips everything but digits, dots and minus signs, then reads the leading
    number.  Text with no number in it ("N/A") counts as zero.
    """
    amount = _read_amount(text)
    return amount if amount is not None else Decimal(0)


def currency_symbol(text, default: str = DEFAULT_CURRENCY) -> str:
    """Return the currency symbol of a price string ("$3.00" → "$")."""
    symbol = _SYMBOL_STRIP_RE.sub('', str(text or ''))
    return symbol or default


@dataclass(frozen=True)
class Money:
    cents: int
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def from_amount(cls, amount: Decimal, currency: str = DEFAULT_CURRENCY) -> "Money":
        cents = int((Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP) * 100))
        return cls(cents=cents, currency=currency or DEFAULT_CURRENCY)

    @classmethod
    def parse(cls, text) -> "Money":
        """Strict parse; raises InvalidMoneyError when there is no amount."""
        amount = _read_amount(text)
        if amount is None:
            raise InvalidMoneyError(str(text))
        return cls.from_amount(amount, currency_symbol(text))

    @property
    def amount(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(_CENT)

    def format(self) -> str:
        return f"{self.currency}{self.amount}"

    def __str__(self) -> str:
        return self.format()


def format_cents(cents: Optional[int], currency: Optional[str]) -> Optional[str]:
    """Render a stored (cents, currency) pair, or None when no price is stored."""
    if cents is None:
        return None
    return Money(cents=cents, currency=currency or DEFAULT_CURRENCY).format()
