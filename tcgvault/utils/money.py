"""
TCG Vault — Money Helpers

All money values use Decimal, never float. Upstream payloads arrive as
floats, strings, or integer minor units (cents); these helpers normalize
them to two-decimal major units.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal | None:
    """
    Convert an upstream price value to Decimal.

    Returns None for missing or unparseable values ("", "N/A", None, NaN).

    Examples:
        >>> to_decimal(12.5)
        Decimal('12.5')
        >>> to_decimal("N/A") is None
        True
    """
    if value is None or value == "" or value == "N/A" or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def cents_to_decimal(value: Any) -> Decimal | None:
    """
    Convert integer minor units to major units, rounded half-up to cents.

    Examples:
        >>> cents_to_decimal(12999)
        Decimal('129.99')
        >>> cents_to_decimal(0) is None
        True
    """
    cents = to_decimal(value)
    if cents is None or cents <= 0:
        return None
    return (cents / _HUNDRED).quantize(_CENT, rounding=ROUND_HALF_UP)


def first_price(*values: Decimal | None) -> Decimal | None:
    """First non-None, positive value; used for field fallbacks."""
    for value in values:
        if value is not None and value > 0:
            return value
    return None
