"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read-only queries over the movement ledger: single movements,
    reversal lookup, movements of a source document, the kardex (movement
    history) of one stock item, movements still eligible for reversal, and
    adjustment history with its summary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ledger order is seq order.  The kardex is returned ascending so the
      balance_before of each row equals the balance_after of the previous
      one; adjustment history is returned newest first.
    - No locks are taken and nothing is written.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import aliased

from stock_kernel.domain.dtos import (
    AdjustmentHistory,
    AdjustmentHistorySummary,
    MovementRecord,
)
from stock_kernel.domain.movement_rules import ADJUSTMENT_TYPES
from stock_kernel.domain.values import MovementType, StockKey
from stock_kernel.models.movement import StockMovement
from stock_kernel.models.stock_item import StockItem
from stock_kernel.selectors.base import BaseSelector

_REVERSIBLE_TYPES = tuple(
    mt.value for mt in MovementType if mt is not MovementType.REVERSAL
)
_ADJUSTMENT_CODES = tuple(sorted(mt.value for mt in ADJUSTMENT_TYPES))


class MovementSelector(BaseSelector):
    """Read-only access to stock movements."""

    def get_movement(self, movement_id: UUID) -> MovementRecord | None:
        movement = self.session.execute(
            select(StockMovement).where(StockMovement.id == movement_id)
        ).scalar_one_or_none()

        if movement is None:
            return None

        return MovementRecord.from_model(movement)

    def find_by_original(self, movement_id: UUID) -> MovementRecord | None:
        """The ESTORNO movement that reversed ``movement_id``, if any."""
        reversal = self.session.execute(
            select(StockMovement).where(StockMovement.reversal_of_id == movement_id)
        ).scalar_one_or_none()

        if reversal is None:
            return None

        return MovementRecord.from_model(reversal)

    def find_by_source(
        self,
        source_type: str,
        source_id: str,
        include_reversals: bool = True,
    ) -> list[MovementRecord]:
        """
        Movements recorded for one source document, in ledger order.

        Reversals carry the source document of the movement they reverse,
        so they are included unless ``include_reversals`` is False.
        """
        query = select(StockMovement).where(
            StockMovement.source_document_type == getattr(source_type, "value", source_type),
            StockMovement.source_document_id == str(source_id),
        )
        if not include_reversals:
            query = query.where(StockMovement.reversal_of_id.is_(None))

        movements = self.session.execute(
            query.order_by(StockMovement.seq)
        ).scalars().all()
        return [MovementRecord.from_model(m) for m in movements]

    def kardex(
        self,
        key: StockKey,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MovementRecord]:
        """
        Movement history of one stock item, oldest first.

        Args:
            key: The stock item.
            start: Inclusive lower bound on occurred_at.
            end: Inclusive upper bound on occurred_at.
        """
        query = (
            select(StockMovement)
            .join(StockItem, StockMovement.stock_item_id == StockItem.id)
            .where(
                StockItem.warehouse_id == key.warehouse_id,
                StockItem.equipment_type_id == key.equipment_type_id,
                StockItem.status == key.status.value,
            )
        )
        query = _within(query, start, end)

        movements = self.session.execute(
            query.order_by(StockMovement.seq)
        ).scalars().all()
        return [MovementRecord.from_model(m) for m in movements]

    def list_reversible(
        self,
        warehouse_id: UUID | None = None,
        limit: int = 100,
    ) -> list[MovementRecord]:
        """
        Movements that can still be reversed, newest first.

        A movement is listed when it is not itself a reversal, has not been
        reversed, and has a known movement type.  Adjustments are listed even
        though a later movement on the same row would block their reversal.
        """
        reversal = aliased(StockMovement)
        query = (
            select(StockMovement)
            .join(StockItem, StockMovement.stock_item_id == StockItem.id)
            .where(
                StockMovement.reversal_of_id.is_(None),
                StockMovement.movement_type.in_(_REVERSIBLE_TYPES),
                ~select(reversal.id)
                .where(reversal.reversal_of_id == StockMovement.id)
                .exists(),
            )
        )
        if warehouse_id is not None:
            query = query.where(StockItem.warehouse_id == warehouse_id)

        movements = self.session.execute(
            query.order_by(StockMovement.seq.desc()).limit(limit)
        ).scalars().all()
        return [MovementRecord.from_model(m) for m in movements]

    def adjustment_history(
        self,
        warehouse_id: UUID | None = None,
        equipment_type_id: UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AdjustmentHistory:
        """
        AJUSTE_POSITIVO / AJUSTE_NEGATIVO movements, newest first, with totals.

        Direct adjustments and inventory-count adjustments are both included.
        """
        query = (
            select(StockMovement)
            .join(StockItem, StockMovement.stock_item_id == StockItem.id)
            .where(StockMovement.movement_type.in_(_ADJUSTMENT_CODES))
        )
        if warehouse_id is not None:
            query = query.where(StockItem.warehouse_id == warehouse_id)
        if equipment_type_id is not None:
            query = query.where(StockItem.equipment_type_id == equipment_type_id)
        query = _within(query, start, end)

        movements = self.session.execute(
            query.order_by(StockMovement.seq.desc())
        ).scalars().all()
        records = tuple(MovementRecord.from_model(m) for m in movements)

        positive = [r for r in records if r.movement_type == MovementType.POSITIVE_ADJUSTMENT.value]
        negative = [r for r in records if r.movement_type == MovementType.NEGATIVE_ADJUSTMENT.value]

        return AdjustmentHistory(
            adjustments=records,
            summary=AdjustmentHistorySummary(
                total_adjustments=len(records),
                positive_adjustments=len(positive),
                negative_adjustments=len(negative),
                total_positive_quantity=sum(r.quantity_moved for r in positive),
                total_negative_quantity=sum(r.quantity_moved for r in negative),
            ),
        )


def _within(query, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.where(StockMovement.occurred_at >= start)
    if end is not None:
        query = query.where(StockMovement.occurred_at <= end)
    return query
