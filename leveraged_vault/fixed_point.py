"""Integer fixed-point helpers with explicit rounding direction."""
from __future__ import annotations

from enum import Enum

LTV_SCALE = 1_000_000  # 6 decimals, 1_000_000 == 100%
FEE_SCALE = 10**18  # annual fee rate precision
RAY = 10**27  # lending market index precision
BPS_SCALE = 10_000
REFERENCE_DECIMALS = 8  # oracle reference unit precision
YEAR_IN_SECONDS = 365 * 24 * 60 * 60
MAX_UINT256 = 2**256 - 1


class Rounding(Enum):
    DOWN = "down"
    UP = "up"


def mul_div(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    """Compute ``x * y / denominator`` on non-negative integers.

    Raises ZeroDivisionError when ``denominator`` is 0, as integer
    division does.
    """
    if x < 0 or y < 0 or denominator < 0:
        raise ValueError("mul_div operands must be non-negative")
    product = x * y
    quotient, remainder = divmod(product, denominator)
    if rounding is Rounding.UP and remainder:
        quotient += 1
    return quotient


def ratio_of(numerator: int, denominator: int, rounding: Rounding) -> int:
    """Express ``numerator / denominator`` on the LTV scale."""
    return mul_div(numerator, LTV_SCALE, denominator, rounding)


def apply_ratio(value: int, ratio: int, rounding: Rounding) -> int:
    """Multiply ``value`` by an LTV-scaled ratio."""
    return mul_div(value, ratio, LTV_SCALE, rounding)


def lerp_ratio(current: int, target: int, weight: int) -> int:
    """Move ``current`` toward ``target`` by ``weight`` (LTV scale).

    Each term is rounded down independently.
    """
    return apply_ratio(current, LTV_SCALE - weight, Rounding.DOWN) + apply_ratio(
        target, weight, Rounding.DOWN
    )


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


def value_to_amount(value: int, price: int, decimals: int, rounding: Rounding) -> int:
    """Convert a reference-unit value into token base units at ``price``."""
    return mul_div(value, 10**decimals, price, rounding)


def amount_to_value(amount: int, price: int, decimals: int, rounding: Rounding) -> int:
    """Convert token base units into reference units at ``price``."""
    return mul_div(amount, price, 10**decimals, rounding)


def ray_mul(a: int, b: int, rounding: Rounding = Rounding.DOWN) -> int:
    return mul_div(a, b, RAY, rounding)


def ray_div(a: int, b: int, rounding: Rounding = Rounding.DOWN) -> int:
    return mul_div(a, RAY, b, rounding)


def format_ratio(ratio: int) -> str:
    """Render an LTV-scaled ratio as a percentage string, e.g. ``'51.20%'``."""
    return f"{ratio * 100 / LTV_SCALE:.2f}%"
