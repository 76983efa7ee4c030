"""
ReversalService -- estornos of stock movements.

Responsibility:
    Validates reversal preconditions, plans the inverse effect with
    ``domain.movement_rules.plan_reversal`` and writes one ESTORNO movement
    through MovementLedger, atomically.

Architecture position:
    Kernel > Services -- entry point.  Consumes MovementLedger.

Invariants enforced:
    - Movements are never changed; reversal state is derived from the
      reversal_of_id link only.
    - At most one reversal per movement (service check under a row lock,
      backed by the UNIQUE constraint on reversal_of_id).
    - A reversal cannot be reversed.
    - Adjustment reversals restore the original balance_before, and only
      while no later movement touched the same stock item.

Failure modes:
    - MovementNotFoundError: unknown movement id.
    - ReversalOfReversalError: the movement is an ESTORNO.
    - MovementAlreadyReversedError: a reversal already exists.
    - UnsupportedReversalError: no rule for the movement type.
    - InterveningMovementsError: adjustment row moved after the adjustment.
    - SourceDocumentNotReversibleError: document has no movements to reverse.
    - InsufficientStockError: the inverse effect would leave a negative
      balance and negative stock is not allowed.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.domain.movement_rules import OriginalMovement, plan_reversal
from stock_kernel.domain.validation import require_present, require_text
from stock_kernel.domain.values import MovementType, StockKey, StockStatus
from stock_kernel.exceptions import (
    InterveningMovementsError,
    MovementAlreadyReversedError,
    MovementNotFoundError,
    ReversalOfReversalError,
    SourceDocumentNotReversibleError,
    UnsupportedReversalError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import StockMovement
from stock_kernel.services.base import TransactionalService
from stock_kernel.services.configuration_service import ConfigurationService
from stock_kernel.services.movement_ledger import MovementLedger

logger = get_logger("services.reversal")


class ReversalService(TransactionalService):
    """
    Reverses stock movements.

    Usage:
        reversals = ReversalService(session, configuration=config, clock=clock)
        estorno = reversals.reverse(movement_id, user_id, "Delivery cancelled")
    """

    _logger = logger

    def __init__(
        self,
        session: Session,
        ledger: MovementLedger | None = None,
        configuration: ConfigurationService | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._ledger = ledger or MovementLedger(
            session, configuration, self._clock, auto_commit=False
        )

    def reverse(
        self,
        movement_id: UUID,
        responsible_user_id: UUID,
        reason: str,
    ) -> MovementRecord:
        """
        Reverse one movement.

        Returns:
            The ESTORNO movement.
        """
        require_present(movement_id, "movement_id")
        require_present(responsible_user_id, "responsible_user_id")
        reason = require_text(reason, "reason")

        with self._operation(
            "stock_movement_reverse",
            actor_id=responsible_user_id,
            movement_id=movement_id,
        ) as outcome:
            reversal = self._reverse_one(movement_id, responsible_user_id, reason)
            outcome.update(
                reversal_movement_id=str(reversal.id),
                balance_before=reversal.balance_before,
                balance_after=reversal.balance_after,
            )

        return MovementRecord.from_model(reversal)

    def reverse_source_document(
        self,
        source_type: str,
        source_id: str,
        responsible_user_id: UUID,
        reason: str,
    ) -> tuple[MovementRecord, ...]:
        """
        Reverse every movement recorded for one source document.

        Used when a completed note (or an inventory count) is cancelled.
        Movements are reversed newest first.  Either all of them are
        reversed or none is.

        Returns:
            The ESTORNO movements, in the order they were written.
        """
        source_type = require_text(getattr(source_type, "value", source_type), "source_type")
        source_id = require_text(source_id, "source_id")
        require_present(responsible_user_id, "responsible_user_id")
        reason = require_text(reason, "reason")

        with self._operation(
            "source_document_reverse",
            actor_id=responsible_user_id,
            source_type=source_type,
            source_id=source_id,
        ) as outcome:
            movement_ids = self.session.execute(
                select(StockMovement.id)
                .where(
                    StockMovement.source_document_type == source_type,
                    StockMovement.source_document_id == source_id,
                    StockMovement.reversal_of_id.is_(None),
                )
                .order_by(StockMovement.seq.desc())
            ).scalars().all()

            if not movement_ids:
                raise SourceDocumentNotReversibleError(
                    source_type, source_id, "no movements recorded for the document"
                )

            reversals = [
                self._reverse_one(movement_id, responsible_user_id, reason)
                for movement_id in movement_ids
            ]
            outcome.update(reversal_count=len(reversals))

        return tuple(MovementRecord.from_model(r) for r in reversals)

    def _reverse_one(
        self,
        movement_id: UUID,
        responsible_user_id: UUID,
        reason: str,
    ) -> StockMovement:
        original = self._load_and_validate(movement_id)

        item = original.stock_item
        plan = plan_reversal(
            OriginalMovement(
                movement_type=original.movement_type,
                key=StockKey(
                    item.warehouse_id,
                    item.equipment_type_id,
                    StockStatus(item.status),
                ),
                quantity_moved=original.quantity_moved,
                balance_before=original.balance_before,
                balance_after=original.balance_after,
            )
        )
        if plan is None:
            raise UnsupportedReversalError(str(original.id), original.movement_type)

        if plan.is_restore:
            self._ledger.positions.get_for_update(plan.target)
            intervening = self.session.execute(
                select(func.count(StockMovement.id)).where(
                    StockMovement.stock_item_id == original.stock_item_id,
                    StockMovement.seq > original.seq,
                )
            ).scalar_one()
            if intervening:
                raise InterveningMovementsError(str(original.id), intervening)

        reversal = self._ledger.post_reversal(
            original, plan, responsible_user_id, notes=reason
        )

        logger.info(
            "stock_movement_reversed",
            extra={
                "original_movement_id": str(original.id),
                "original_movement_type": original.movement_type,
                "reversal_movement_id": str(reversal.id),
                "restore": plan.is_restore,
            },
        )
        return reversal

    def _load_and_validate(self, movement_id: UUID) -> StockMovement:
        # Row lock serializes concurrent reversals of the same movement
        original = self.session.execute(
            select(StockMovement)
            .where(StockMovement.id == movement_id)
            .with_for_update(of=StockMovement)
        ).scalar_one_or_none()

        if original is None:
            raise MovementNotFoundError(str(movement_id))

        if original.is_reversal or original.movement_type == MovementType.REVERSAL.value:
            raise ReversalOfReversalError(str(original.id))

        existing_reversal = self.session.execute(
            select(StockMovement.id).where(StockMovement.reversal_of_id == original.id)
        ).scalar_one_or_none()

        if existing_reversal is not None:
            raise MovementAlreadyReversedError(str(original.id), str(existing_reversal))

        return original
