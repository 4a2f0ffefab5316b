"""VAT-aware amount resolution.

Every path that sums or compares expense amounts goes through
resolve_amount so reconciliation and P&L totals cannot drift apart.
"""

from decimal import Decimal
from typing import Optional, Protocol

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class HasAmounts(Protocol):
    amount: Optional[Decimal]
    amount_with_vat: Optional[Decimal]
    amount_without_vat: Optional[Decimal]
    vat_deductible: bool


def pick_amount(
    vat_deductible: bool,
    amount: Optional[Decimal],
    amount_with_vat: Optional[Decimal] = None,
    amount_without_vat: Optional[Decimal] = None,
) -> Decimal:
    """Select the amount that feeds financial totals.

    Deductible VAT means the net (without-VAT) figure is the cost; otherwise
    the gross figure is. Missing figures fall back to the flat amount, and a
    missing flat amount counts as zero.
    """
    preferred = amount_without_vat if vat_deductible else amount_with_vat
    if preferred is not None:
        return Decimal(preferred)
    if amount is not None:
        return Decimal(amount)
    return ZERO


def resolve_amount(row: HasAmounts) -> Decimal:
    """Apply pick_amount to any object carrying the amount fields."""
    return pick_amount(
        bool(row.vat_deductible),
        row.amount,
        amount_with_vat=row.amount_with_vat,
        amount_without_vat=row.amount_without_vat,
    )


def diff_percent(expected: Decimal, actual: Decimal) -> float:
    """Absolute difference between actual and expected, in percent of expected.

    Returns 0 when nothing was expected.
    """
    if expected == ZERO:
        return 0.0
    return float(abs(actual - expected) / expected * HUNDRED)
