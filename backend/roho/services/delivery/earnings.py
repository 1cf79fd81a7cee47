"""
Money helpers. Amounts are integer minor units; rates are basis points.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

BASIS_POINTS = 10_000
MINOR_PER_MAJOR = 100


def to_minor(amount: Union[int, str, Decimal]) -> int:
    """Convert a major-unit amount (e.g. KES 320) to minor units"""
    value = Decimal(str(amount)) * MINOR_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rate_to_basis_points(rate: Union[str, Decimal]) -> int:
    """0.15 -> 1500"""
    bp = Decimal(str(rate)) * BASIS_POINTS
    if bp < 0 or bp > BASIS_POINTS:
        raise ValueError(f"Rate must be between 0 and 1, got {rate}")
    return int(bp.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rider_cut_minor(price_minor: int, rate_bp: int) -> int:
    """
    Rider earnings for an order, rounded half-up to the nearest minor unit.
    Integer arithmetic only, so repeated bookings never drift.
    """
    if price_minor < 0:
        raise ValueError("price_minor must be >= 0")
    if not 0 <= rate_bp <= BASIS_POINTS:
        raise ValueError("rate_bp must be between 0 and 10000")
    return (price_minor * rate_bp + BASIS_POINTS // 2) // BASIS_POINTS


def format_money(amount_minor: int, currency: str = "KES") -> str:
    """4800 -> 'KES 48.00'"""
    major = Decimal(amount_minor) / MINOR_PER_MAJOR
    return f"{currency} {major:,.2f}"
