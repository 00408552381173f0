"""Decimal money helpers shared by models and services."""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

GST_RATE = Decimal("0.18")
TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert a loosely typed numeric value to Decimal.

    Floats go through str() so 0.1 stays 0.1. Empty strings, None and
    non-finite values (NaN, Infinity) map to ``default``.
    """
    if value is None or value == "":
        return default
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return number if number.is_finite() else default


def money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def gst_for(amount: Decimal) -> Decimal:
    """18% GST on a pre-tax amount: round(amount x 0.18, 2)."""
    return money(amount * GST_RATE)


def total_with_gst(amount: Decimal) -> Decimal:
    """Pre-tax amount grossed up by GST: round(amount x 1.18, 2)."""
    return money(amount * (1 + GST_RATE))
