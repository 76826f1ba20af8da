# Overview: Decimal helpers for money, quantity and unit-cost values.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
COST_PLACES = Decimal("0.0001")

# Upper bound for any single amount; keeps Numeric(14, x) columns from overflowing
MAX_AMOUNT = Decimal("999999999")


def to_decimal(value: Any, field: str, *, places: Decimal = MONEY_PLACES) -> Decimal:
    """
    Strictly coerce a JSON/CLI value into a quantized Decimal.

    Accepts int, float, Decimal and numeric strings. Rejects bools, blanks,
    NaN/Infinity and anything beyond MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} is out of range")
    return amount.quantize(places, rounding=ROUND_HALF_UP)


def money(value: Any, field: str = "amount") -> Decimal:
    return to_decimal(value, field, places=MONEY_PLACES)


def quantity(value: Any, field: str = "quantity") -> Decimal:
    return to_decimal(value, field, places=QUANTITY_PLACES)


def as_number(value: Decimal | None) -> float | None:
    """JSON representation of a Numeric column."""
    if value is None:
        return None
    return float(value)
