"""
Decimal helpers for currency and percentage math.

Every amount entering a calculation goes through to_decimal() so floats are
converted via their string form (Decimal(str(x))), never their binary value.
"""
from decimal import Decimal, ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_UP
from typing import Iterable, Union

from app.core.settings import get_settings

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Coerce an int/float/str/Decimal to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric amount")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _exponent(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def quantize_currency(value: Number, places: int = None) -> Decimal:
    """Round a currency amount half-up to CURRENCY_DECIMAL_PLACES."""
    if places is None:
        places = get_settings().CURRENCY_DECIMAL_PLACES
    return to_decimal(value).quantize(_exponent(places), rounding=ROUND_HALF_UP)


def quantize_percentage(value: Number, places: int = None) -> Decimal:
    """Round a percentage half-up to PERCENTAGE_DECIMAL_PLACES."""
    if places is None:
        places = get_settings().PERCENTAGE_DECIMAL_PLACES
    return to_decimal(value).quantize(_exponent(places), rounding=ROUND_HALF_UP)


def floor_whole(value: Number) -> Decimal:
    """Floor to whole currency units (year-end allocations credit whole dollars)."""
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_FLOOR)


def truncate(value: Number, places: int) -> Decimal:
    """Truncate toward zero at the given number of places."""
    return to_decimal(value).quantize(_exponent(places), rounding=ROUND_DOWN)


def to_cents(value: Number) -> int:
    """Express a currency amount as an integer number of cents (half-up)."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def decimal_sum(values: Iterable[Number]) -> Decimal:
    """Sum as Decimal, starting from Decimal zero."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total


def safe_divide(numerator: Number, denominator: Number, default: Decimal = ZERO) -> Decimal:
    """Divide, returning default instead of raising when the denominator is zero."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return default
    return to_decimal(numerator) / denominator
