"""
Money helpers.

All monetary values are ``Decimal`` quantized to the currency quantum
(0.01 by default) with ROUND_HALF_UP.  Inputs arriving as int, str or
float are converted through ``str`` so that binary float noise never
reaches a stored amount.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
DEFAULT_QUANTUM = Decimal("0.01")


def to_decimal(value: object) -> Decimal:
    """Convert a numeric input to Decimal.

    Raises:
        ValueError: if the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a numeric amount: {value!r}") from None


def quantize_money(value: Decimal, quantum: Decimal = DEFAULT_QUANTUM) -> Decimal:
    """Round to the currency quantum, half up."""
    return value.quantize(quantum, rounding=ROUND_HALF_UP)
