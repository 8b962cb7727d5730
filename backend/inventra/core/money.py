"""
Decimal helpers for money and quantities
"""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Coerce ints, floats and strings to Decimal without float artefacts"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    """Round to cents, the precision every ledger column stores"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
