"""Decimal helpers for meters, rates and rupee amounts.

All quantities are held at two decimal places; products are rounded
half-up, the same way the ledger columns store them.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't drag binary noise along
    return Decimal(str(value))


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_earnings(meters, rate) -> Decimal:
    """meters × rate, rounded to paise."""
    return quantize(to_decimal(meters) * to_decimal(rate))
