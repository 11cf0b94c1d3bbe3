"""Two-way cost split between the household members."""

from dataclasses import dataclass
from decimal import Decimal

ZERO = Decimal("0")
MAJOR_SHARE = Decimal("0.6")
MINOR_SHARE = Decimal("0.4")


@dataclass(frozen=True)
class SplitResult:
    walker: Decimal
    dea: Decimal


def split_by_attribution(attribution: str, amount: Decimal) -> SplitResult:
    """Split an amount according to an attribution tag.

    WALKER and DEA take the whole amount, AMBOS splits 60/40 and AMBOS_I
    splits 40/60 (walker/dea). Unknown tags split to zero for both.
    """
    if attribution == "WALKER":
        return SplitResult(walker=amount, dea=ZERO)
    if attribution == "DEA":
        return SplitResult(walker=ZERO, dea=amount)
    if attribution == "AMBOS":
        return SplitResult(walker=amount * MAJOR_SHARE, dea=amount * MINOR_SHARE)
    if attribution == "AMBOS_I":
        return SplitResult(walker=amount * MINOR_SHARE, dea=amount * MAJOR_SHARE)
    return SplitResult(walker=ZERO, dea=ZERO)


def debt_to_walker(attribution: str, amount: Decimal) -> Decimal:
    """Share of an amount DEA owes WALKER when WALKER paid it."""
    return split_by_attribution(attribution, amount).dea


def debt_to_dea(attribution: str, amount: Decimal) -> Decimal:
    """Share of an amount WALKER owes DEA when DEA paid it."""
    return split_by_attribution(attribution, amount).walker
