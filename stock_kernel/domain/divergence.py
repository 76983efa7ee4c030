"""
Divergence -- Pure inventory-count arithmetic.

Responsibility:
    Compares counted quantities with system balances: per-item difference,
    percentage divergence, and the batch summary used for operator review.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from stock_kernel.domain.dtos import Divergence, DivergenceSummary

PERCENT_PLACES = Decimal("0.01")


def percentage_divergence(system_balance: int, counted_quantity: int) -> Decimal:
    """
    Difference relative to the system balance, in percent.

    With no positive system balance there is nothing to compare against:
    any counted stock is reported as 100% divergent, none as 0%.
    """
    if system_balance > 0:
        difference = counted_quantity - system_balance
        value = Decimal(difference) / Decimal(system_balance) * 100
        return value.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)
    if counted_quantity > 0:
        return Decimal("100.00")
    return Decimal("0.00")


def compute_divergence(
    equipment_type_id,
    system_balance: int,
    counted_quantity: int,
) -> Divergence:
    return Divergence(
        equipment_type_id=equipment_type_id,
        system_balance=system_balance,
        counted_quantity=counted_quantity,
        difference=counted_quantity - system_balance,
        percentage=percentage_divergence(system_balance, counted_quantity),
    )


def summarize(total_items: int, divergences: Iterable[Divergence]) -> DivergenceSummary:
    """
    Summary over the divergent items of a count.

    largest/smallest are absolute differences; both are 0 when nothing
    diverged.
    """
    magnitudes = [abs(d.difference) for d in divergences if d.difference != 0]
    return DivergenceSummary(
        total_items=total_items,
        items_without_divergence=total_items - len(magnitudes),
        items_with_divergence=len(magnitudes),
        largest_divergence=max(magnitudes, default=0),
        smallest_divergence=min(magnitudes, default=0),
    )
