"""Decimal helpers shared by the ledger and the reports.

Every monetary figure is held as a ``Decimal`` rounded half-up to cents so
sums of stored values never drift the way floats do.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal(100)


def to_decimal(value: Any) -> Decimal:
    """Best-effort conversion of incoming values to Decimal for currency math."""

    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    if isinstance(value, bool):
        raise TypeError("booleans are not amounts")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return Decimal("0")
        cleaned = cleaned.replace("R", "").replace("$", "").replace(",", "").strip()
        try:
            return Decimal(cleaned)
        except InvalidOperation as exc:
            raise ValueError(f"not an amount: {value!r}") from exc
    raise TypeError(f"unsupported amount type: {type(value).__name__}")


def quantize_currency(value: Any) -> Decimal:
    amount = to_decimal(value)
    return amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP) if amount else ZERO


def sum_currency(values: Iterable[Any]) -> Decimal:
    total = Decimal("0")
    for value in values:
        total += to_decimal(value)
    return quantize_currency(total)


def percentage(part: Any, whole: Any) -> Decimal:
    """``part / whole * 100``; a zero or missing ``whole`` yields 0, never NaN."""

    denominator = to_decimal(whole)
    if not denominator:
        return ZERO
    return quantize_currency(to_decimal(part) / denominator * HUNDRED)


__all__ = ["TWOPLACES", "ZERO", "to_decimal", "quantize_currency", "sum_currency", "percentage"]
