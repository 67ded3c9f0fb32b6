from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any


_DECIMAL_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps the shortest repr of a float, so 1.005 stays 1.005 instead of 1.00499...
    return Decimal(str(value))


def round2(value: Any) -> float:
    """Round half-up at the cent and return a plain float."""
    return float(to_decimal(value).quantize(_DECIMAL_PLACES, rounding=ROUND_HALF_UP))
