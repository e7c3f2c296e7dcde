"""
Domain: Currency arithmetic.

Every money operation rounds its *result* to 2 decimal places, half away
from zero, on the value scaled by 100. Derived ledger fields (margins,
VAT, commission) must be computed through these helpers so that repeated
arithmetic cannot drift by sub-penny amounts (e.g. 24999.999996 must
settle at 25000.00).

Values are carried as `Decimal`. Inputs are coerced tolerantly: None, empty
strings and unparsable values count as zero.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce any value to a Decimal, treating missing or malformed input as 0.

    Floats go through `str()` so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """

    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    if isinstance(value, int):
        return Decimal(value)

    text = str(value).strip()
    if not text:
        return Decimal(0)
    try:
        result = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    return result if result.is_finite() else Decimal(0)


def round_currency(value: Any) -> Decimal:
    """Round to 2 dp, half away from zero (ROUND_HALF_UP on Decimal)."""

    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def add(*values: Any) -> Decimal:
    total = sum((to_decimal(v) for v in values), Decimal(0))
    return round_currency(total)


def subtract(a: Any, b: Any) -> Decimal:
    return round_currency(to_decimal(a) - to_decimal(b))


def multiply(a: Any, b: Any) -> Decimal:
    return round_currency(to_decimal(a) * to_decimal(b))


def divide(a: Any, b: Any) -> Decimal:
    """Quotient rounded to 2 dp; dividing by zero yields 0 instead of raising."""

    divisor = to_decimal(b)
    if divisor == 0:
        return ZERO
    return round_currency(to_decimal(a) / divisor)


def percent_of(amount: Any, percentage: Any) -> Decimal:
    """`percentage` is whole-number percent, e.g. 20 for 20%."""

    return round_currency(to_decimal(amount) * to_decimal(percentage) / Decimal(100))


def differs_by_more_than(a: Any, b: Any, tolerance: Optional[Decimal] = None) -> bool:
    """True when |a - b| exceeds the tolerance (one penny unless given)."""

    limit = _CENT if tolerance is None else tolerance
    return abs(to_decimal(a) - to_decimal(b)) > limit


__all__ = [
    "ZERO",
    "add",
    "differs_by_more_than",
    "divide",
    "multiply",
    "percent_of",
    "round_currency",
    "subtract",
    "to_decimal",
]
