"""
DTOs -- Immutable results and inputs of the stock ledger.

Responsibility:
    Defines the frozen data structures that cross the service boundary:
    movement records, stock positions, adjustment/simulation results,
    inventory count inputs and results, divergence reports, and adjustment
    history.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from
    services and selectors.

Invariants enforced:
    - Callers never receive ORM instances; every public result is one of
      these frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from stock_kernel.domain.values import AdjustmentKind

if TYPE_CHECKING:
    from stock_kernel.models.movement import StockMovement
    from stock_kernel.models.stock_item import StockItem


@dataclass(frozen=True, slots=True)
class MovementRecord:
    """Read-only view of one persisted stock movement."""

    id: UUID
    seq: int
    stock_item_id: UUID
    warehouse_id: UUID
    equipment_type_id: UUID
    status: str
    movement_type: str
    quantity_moved: int
    balance_before: int
    balance_after: int
    responsible_user_id: UUID
    occurred_at: datetime
    source_document_type: str | None = None
    source_document_id: str | None = None
    reversal_of_id: UUID | None = None
    notes: str | None = None

    @property
    def delta(self) -> int:
        return self.balance_after - self.balance_before

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @classmethod
    def from_model(cls, movement: StockMovement) -> MovementRecord:
        item = movement.stock_item
        return cls(
            id=movement.id,
            seq=movement.seq,
            stock_item_id=movement.stock_item_id,
            warehouse_id=item.warehouse_id,
            equipment_type_id=item.equipment_type_id,
            status=item.status,
            movement_type=movement.movement_type,
            quantity_moved=movement.quantity_moved,
            balance_before=movement.balance_before,
            balance_after=movement.balance_after,
            responsible_user_id=movement.responsible_user_id,
            occurred_at=movement.occurred_at,
            source_document_type=movement.source_document_type,
            source_document_id=movement.source_document_id,
            reversal_of_id=movement.reversal_of_id,
            notes=movement.notes,
        )


@dataclass(frozen=True, slots=True)
class StockPosition:
    """Read-only view of one stock item."""

    stock_item_id: UUID
    warehouse_id: UUID
    equipment_type_id: UUID
    status: str
    quantity: int
    unit_cost: Decimal | None = None

    @classmethod
    def from_model(cls, item: StockItem) -> StockPosition:
        return cls(
            stock_item_id=item.id,
            warehouse_id=item.warehouse_id,
            equipment_type_id=item.equipment_type_id,
            status=item.status,
            quantity=item.quantity,
            unit_cost=item.unit_cost,
        )


@dataclass(frozen=True, slots=True)
class AdjustmentResult:
    """
    Outcome of one direct adjustment.

    movement_id is None when the target already matched the balance and
    no movement was recorded.
    """

    movement_id: UUID | None
    equipment_type_id: UUID
    balance_before: int
    balance_after: int
    difference: int
    notes: str
    estimated_financial_impact: Decimal | None = None

    @property
    def kind(self) -> AdjustmentKind:
        return AdjustmentKind.of(self.difference)


@dataclass(frozen=True, slots=True)
class SimulationResult:
    """Preview of an adjustment; nothing was persisted."""

    warehouse_id: UUID
    equipment_type_id: UUID
    status: str
    current_balance: int
    new_quantity: int
    difference: int
    kind: AdjustmentKind
    estimated_financial_impact: Decimal | None = None


@dataclass(frozen=True, slots=True)
class CountedItem:
    """One line of a physical inventory count."""

    equipment_type_id: UUID
    counted_quantity: int
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class InventoryResult:
    """
    Outcome of a whole inventory count.

    count_id identifies the count as the source document of its movements.
    """

    count_id: UUID
    warehouse_id: UUID
    adjustments: tuple[AdjustmentResult, ...]
    total_items_processed: int
    positive_adjustments: int
    negative_adjustments: int
    total_quantity_adjusted: int
    estimated_financial_impact: Decimal

    @property
    def adjusted_items(self) -> int:
        return len(self.adjustments)


@dataclass(frozen=True, slots=True)
class Divergence:
    """Counted quantity against system balance for one equipment type."""

    equipment_type_id: UUID
    system_balance: int
    counted_quantity: int
    difference: int
    percentage: Decimal


@dataclass(frozen=True, slots=True)
class DivergenceSummary:
    total_items: int
    items_without_divergence: int
    items_with_divergence: int
    largest_divergence: int
    smallest_divergence: int


@dataclass(frozen=True, slots=True)
class DivergenceReport:
    """
    Read-only review of an inventory count.

    ``divergences`` lists only the items whose count differs from the
    system balance.
    """

    warehouse_id: UUID
    divergences: tuple[Divergence, ...]
    summary: DivergenceSummary


@dataclass(frozen=True, slots=True)
class AdjustmentHistorySummary:
    total_adjustments: int
    positive_adjustments: int
    negative_adjustments: int
    total_positive_quantity: int
    total_negative_quantity: int

    @property
    def net_change(self) -> int:
        return self.total_positive_quantity - self.total_negative_quantity


@dataclass(frozen=True, slots=True)
class AdjustmentHistory:
    """Adjustment movements, newest first, with a summary."""

    adjustments: tuple[MovementRecord, ...]
    summary: AdjustmentHistorySummary
