"""
Money helpers. Everything stored is an integer in minor units; rates and
percentages are basis points (hundredths of a percent). Both are
``major * 100`` so the same conversion serves either.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
_HUNDRED = Decimal(100)
_BASIS_POINTS = Decimal(10000)


def to_minor(value: Union[Decimal, int, float, str]) -> int:
    """Convert a major-unit amount (e.g. Decimal("103.99")) to minor units (10399)."""
    amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(amount * _HUNDRED)


def to_major(value: int) -> Decimal:
    return (Decimal(value) / _HUNDRED).quantize(CENT)


def format_major(value: int) -> str:
    """Decimal string as gateways expect it, e.g. 10399 -> "103.99"."""
    return str(to_major(value))


def percentage_of(base: int, basis_points: int) -> int:
    """Apply a basis-point rate to a minor-unit base, rounding half up."""
    if base <= 0 or basis_points <= 0:
        return 0
    share = Decimal(base) * Decimal(basis_points) / _BASIS_POINTS
    return int(share.quantize(Decimal(1), rounding=ROUND_HALF_UP))
