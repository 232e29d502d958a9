"""
Money helpers.

Amounts are fixed-point Decimals with two fractional digits.
Totals are compared exactly; there is no tolerance.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """
    Convert an int, str, float or Decimal to a two-place Decimal.

    Floats go through str() first so 0.1 becomes 0.10, not
    0.1000000000000000055511151231257827.
    """
    if value is None:
        raise ValueError("amount is required")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValueError(f"invalid amount: {value!r}")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"invalid amount: {value!r}") from e
