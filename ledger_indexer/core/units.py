"""Base-unit conversion and fee splitting.

All money in the entity graph is stored as integer base units (the
ledger's smallest indivisible unit, 10**18 per display unit).  Display
values are derived on the way out and never fed back into aggregates.

Fee arithmetic has to match the ledger contracts bit-for-bit:

    platform_fee = floor(amount * bps / 10_000)
    payee        = amount - platform_fee

Python ints are arbitrary precision, so `//` on non-negative operands is
exactly the contract's truncating uint256 division.  No rounding step,
no Decimal in the money path.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Context, Decimal, Inexact

BASE_UNITS_PER_DISPLAY_UNIT = 10**18
DISPLAY_DECIMALS = 18
BASIS_POINTS = 10_000
RATING_SCALE = 10_000

# uint256 needs 78 significant digits; leave headroom for the 18 decimals.
_CONTEXT = Context(prec=100, traps=[Inexact])
_ZERO = Decimal(0)


@dataclass(frozen=True, slots=True)
class FeeSplit:
    amount: int
    platform_fee: int
    payee_revenue: int


def to_display(base_units: int) -> Decimal:
    """Convert integer base units to a display-unit Decimal (exact)."""
    return Decimal(base_units).scaleb(-DISPLAY_DECIMALS, _CONTEXT)


def to_base_units(amount: Decimal | int | str) -> int:
    """Convert a display-unit amount back to integer base units.

    Raises ValueError when the amount has more than 18 decimal places.
    """
    scaled = Decimal(amount).scaleb(DISPLAY_DECIMALS, _CONTEXT)
    integral = scaled.to_integral_value(context=_CONTEXT)
    if integral != scaled:
        raise ValueError(f"{amount} is not representable in base units")
    return int(integral)


def split_fee(amount: int, fee_bps: int) -> FeeSplit:
    """Split `amount` into (platform fee, payee revenue) at `fee_bps`."""
    if amount < 0:
        raise ValueError(f"amount must be non-negative (got {amount})")
    if not 0 <= fee_bps <= BASIS_POINTS:
        raise ValueError(f"fee_bps must be within 0..{BASIS_POINTS} (got {fee_bps})")
    platform_fee = amount * fee_bps // BASIS_POINTS
    return FeeSplit(
        amount=amount,
        platform_fee=platform_fee,
        payee_revenue=amount - platform_fee,
    )


def percent_floor(numerator: int, denominator: int) -> int:
    """floor(numerator * 100 / denominator); zero when the denominator is zero."""
    if denominator <= 0:
        return 0
    return numerator * 100 // denominator


def ratio_percent(numerator: int, denominator: int) -> Decimal:
    """numerator / denominator * 100 as a Decimal, for display-only rates."""
    if denominator <= 0:
        return _ZERO
    return (Decimal(numerator) * 100 / Decimal(denominator)).quantize(Decimal("0.0001"))


def unscale_rating(scaled: int) -> Decimal:
    """Ratings arrive pre-scaled by 10**4 (45000 -> 4.5)."""
    return Decimal(scaled).scaleb(-4, _CONTEXT)


def mean(total: int, count: int) -> Decimal:
    if count <= 0:
        return _ZERO
    return (Decimal(total) / Decimal(count)).quantize(Decimal("0.0001"))
