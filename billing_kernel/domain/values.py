"""
Numeric coercion for line data.

coerce_decimal() is the single place where loosely-typed numeric input
(form strings, None, floats, NaN) becomes a Decimal.  It never raises:
anything that is not a finite number becomes zero.  round_money() is the
rounding applied to stored totals.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

ZERO = Decimal("0")


def coerce_decimal(value: Any) -> Decimal:
    """
    Coerce ``value`` to a finite Decimal, defaulting to zero.

    Booleans are not numbers here.  Floats go through ``str`` so that 0.1
    becomes Decimal("0.1"), not its binary expansion.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def optional_decimal(value: Any) -> Decimal | None:
    """Like coerce_decimal(), but keeps an absent value (None or "") absent."""
    if value is None or value == "":
        return None
    return coerce_decimal(value)


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    The only sanctioned rounding for stored totals.  Quantizing needs one
    digit of precision per digit of the result, so the context precision is
    widened for values too large for the default 28 digits.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        return value.quantize(Decimal(quantize_str), rounding=rounding)
