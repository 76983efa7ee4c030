"""
MovementRules -- Classification of movement types and reversal planning.

Responsibility:
    Answers two questions without touching the database:
      1. Does a movement of type T increase or decrease its stock item?
      2. Given an existing movement, which stock item does its reversal
         touch and how?

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by MovementLedger (classification) and ReversalService (plans).

Classification:

    Movement type           | Effect
    ------------------------|-----------------------------------
    ENTRADA_NOTA            | increase
    SAIDA_ENTREGA           | decrease
    SAIDA_TRANSFERENCIA     | decrease (source side)
    ENTRADA_TRANSFERENCIA   | increase (destination side)
    SAIDA_DESCARTE          | decrease
    ENTRADA_DEVOLUCAO       | increase
    AJUSTE_POSITIVO         | increase
    AJUSTE_NEGATIVO         | decrease
    ESTORNO                 | inverse of the original (planned below)

Reversal targets are not always the row the original touched:

    Original                | Reversal
    ------------------------|-----------------------------------------------
    ENTRADA_NOTA            | decrease AVAILABLE of the same warehouse/type
    SAIDA_DESCARTE          | increase AVAILABLE of the same warehouse/type
    AJUSTE_POSITIVO/NEGATIVO| set the same row back to original balance_before
    SAIDA_TRANSFERENCIA     | increase the same row
    ENTRADA_TRANSFERENCIA   | decrease the same row
    SAIDA_ENTREGA           | increase the same row
    ENTRADA_DEVOLUCAO       | decrease the same row
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.domain.values import MovementType, StockKey, StockStatus


class Direction(int, Enum):
    INCREASE = 1
    DECREASE = -1

    @property
    def inverse(self) -> Direction:
        return Direction(-self.value)


_DIRECTIONS: dict[MovementType, Direction] = {
    MovementType.ENTRY_FROM_NOTE: Direction.INCREASE,
    MovementType.EXIT_TO_DELIVERY: Direction.DECREASE,
    MovementType.EXIT_TO_TRANSFER: Direction.DECREASE,
    MovementType.ENTRY_FROM_TRANSFER: Direction.INCREASE,
    MovementType.EXIT_TO_DISCARD: Direction.DECREASE,
    MovementType.RETURN_ENTRY: Direction.INCREASE,
    MovementType.POSITIVE_ADJUSTMENT: Direction.INCREASE,
    MovementType.NEGATIVE_ADJUSTMENT: Direction.DECREASE,
}

ADJUSTMENT_TYPES = frozenset(
    {MovementType.POSITIVE_ADJUSTMENT, MovementType.NEGATIVE_ADJUSTMENT}
)

# Reversals of these always land on the AVAILABLE partition
_AVAILABLE_TARGET_TYPES = frozenset(
    {MovementType.ENTRY_FROM_NOTE, MovementType.EXIT_TO_DISCARD}
)


def direction_of(movement_type: MovementType) -> Direction:
    """
    Classify a recordable movement type.

    Raises:
        ValueError: For ESTORNO, whose direction depends on the original.
    """
    try:
        return _DIRECTIONS[movement_type]
    except KeyError:
        raise ValueError(
            f"Movement type {movement_type.value} has no fixed direction"
        ) from None


def apply_direction(balance: int, direction: Direction, quantity: int) -> int:
    """New balance after moving ``quantity`` units in ``direction``."""
    return balance + direction.value * quantity


def adjustment_type_for(difference: int) -> MovementType | None:
    """AJUSTE_POSITIVO / AJUSTE_NEGATIVO for a signed difference, None for zero."""
    if difference > 0:
        return MovementType.POSITIVE_ADJUSTMENT
    if difference < 0:
        return MovementType.NEGATIVE_ADJUSTMENT
    return None


@dataclass(frozen=True, slots=True)
class OriginalMovement:
    """The facts of a movement that reversal planning needs."""

    movement_type: str
    key: StockKey
    quantity_moved: int
    balance_before: int
    balance_after: int


@dataclass(frozen=True, slots=True)
class ReversalPlan:
    """
    How to undo one movement.

    Exactly one of ``direction`` (relative change by ``quantity``) or
    ``restore_to`` (absolute target balance) is set.
    """

    target: StockKey
    direction: Direction | None = None
    quantity: int = 0
    restore_to: int | None = None

    @property
    def is_restore(self) -> bool:
        return self.restore_to is not None

    def resulting_balance(self, current: int) -> int:
        if self.restore_to is not None:
            return self.restore_to
        return apply_direction(current, self.direction, self.quantity)


def plan_reversal(original: OriginalMovement) -> ReversalPlan | None:
    """
    Build the reversal plan for a movement.

    Returns None when the movement type has no reversal rule (an ESTORNO,
    or a code this ledger does not know).  Callers must treat None as a
    hard failure.
    """
    movement_type = MovementType.parse(original.movement_type)
    if movement_type is None or movement_type is MovementType.REVERSAL:
        return None

    if movement_type in ADJUSTMENT_TYPES:
        return ReversalPlan(target=original.key, restore_to=original.balance_before)

    target = original.key
    if movement_type in _AVAILABLE_TARGET_TYPES:
        target = original.key.with_status(StockStatus.AVAILABLE)

    return ReversalPlan(
        target=target,
        direction=direction_of(movement_type).inverse,
        quantity=original.quantity_moved,
    )
