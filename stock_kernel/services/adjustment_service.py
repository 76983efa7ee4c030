"""
AdjustmentService -- direct (forced) stock adjustments.

Responsibility:
    Lets an authorized operator set a stock item to an explicit quantity.
    The difference to the current balance is recorded as one
    AJUSTE_POSITIVO or AJUSTE_NEGATIVO movement through MovementLedger.
    ``simulate_adjustment`` previews the same computation without writing.

Architecture position:
    Kernel > Services -- entry point.  Also the adjustment collaborator of
    InventoryCountService (``adjust_to``).

Invariants enforced:
    - A zero difference records no movement.
    - quantity_moved is |new_quantity - current balance|; the movement type
      carries the sign.
    - A negative target is accepted only when ALLOW_NEGATIVE_STOCK is on.

Failure modes:
    - ValidationError: non-integer target, empty reason, missing user.
    - BusinessError: negative target while ALLOW_NEGATIVE_STOCK is off.
    - ForcedAdjustmentsDisabledError: ALLOW_FORCED_ADJUSTMENTS is off and
      the permission check was requested.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.types import round_money
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import AdjustmentResult, SimulationResult
from stock_kernel.domain.movement_rules import adjustment_type_for
from stock_kernel.domain.validation import (
    require_int,
    require_present,
    require_stock_key,
    require_text,
)
from stock_kernel.domain.values import AdjustmentKind, SourceRef, StockKey, StockStatus
from stock_kernel.exceptions import BusinessError, ForcedAdjustmentsDisabledError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import TransactionalService
from stock_kernel.services.configuration_service import ConfigurationService
from stock_kernel.services.movement_ledger import MovementLedger

logger = get_logger("services.adjustment")


def estimated_impact(unit_cost: Decimal | None, difference: int) -> Decimal | None:
    """difference x unit cost, or None when the unit cost is unknown."""
    if unit_cost is None:
        return None
    return round_money(Decimal(difference) * unit_cost)


class AdjustmentService(TransactionalService):
    """
    Direct adjustments and adjustment previews.

    Usage:
        adjustments = AdjustmentService(session, configuration=config, clock=clock)
        result = adjustments.apply_direct_adjustment(
            warehouse_id, equipment_type_id, new_quantity=45,
            reason="Recount after audit", user_id=user_id,
        )
    """

    _logger = logger

    def __init__(
        self,
        session: Session,
        configuration: ConfigurationService | None = None,
        ledger: MovementLedger | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._config = configuration or ConfigurationService(session)
        self._ledger = ledger or MovementLedger(
            session, self._config, self._clock, auto_commit=False
        )

    def apply_direct_adjustment(
        self,
        warehouse_id: UUID,
        equipment_type_id: UUID,
        new_quantity: int,
        reason: str,
        user_id: UUID,
        require_permission_check: bool = True,
        status: StockStatus | str = StockStatus.AVAILABLE,
    ) -> AdjustmentResult:
        """
        Set a stock item to ``new_quantity``.

        Returns:
            AdjustmentResult; movement_id is None when nothing changed.
        """
        key = require_stock_key(warehouse_id, equipment_type_id, status)
        require_int(new_quantity, "new_quantity")
        reason = require_text(reason, "reason")
        require_present(user_id, "user_id")

        with self._operation(
            "direct_adjustment_apply",
            actor_id=user_id,
            warehouse_id=warehouse_id,
            equipment_type_id=str(equipment_type_id),
            new_quantity=new_quantity,
        ) as outcome:
            if require_permission_check:
                self.check_permission()
            self.check_target(new_quantity, "new_quantity")

            result = self.adjust_to(
                key,
                new_quantity,
                notes=f"Direct adjustment: {reason}",
                user_id=user_id,
            )
            outcome.update(
                movement_id=str(result.movement_id) if result.movement_id else None,
                difference=result.difference,
                balance_after=result.balance_after,
            )

        return result

    def simulate_adjustment(
        self,
        warehouse_id: UUID,
        equipment_type_id: UUID,
        new_quantity: int,
        status: StockStatus | str = StockStatus.AVAILABLE,
    ) -> SimulationResult:
        """Preview an adjustment.  Never writes, never creates stock items."""
        key = require_stock_key(warehouse_id, equipment_type_id, status)
        require_int(new_quantity, "new_quantity")

        item = self._find(key)
        current = item.quantity if item is not None else 0
        difference = new_quantity - current

        return SimulationResult(
            warehouse_id=key.warehouse_id,
            equipment_type_id=key.equipment_type_id,
            status=key.status.value,
            current_balance=current,
            new_quantity=new_quantity,
            difference=difference,
            kind=AdjustmentKind.of(difference),
            estimated_financial_impact=estimated_impact(
                item.unit_cost if item is not None else None, difference
            ),
        )

    # ------------------------------------------------------------------
    # Collaborator API
    # ------------------------------------------------------------------

    def check_permission(self) -> None:
        if not self._config.allow_forced_adjustments():
            raise ForcedAdjustmentsDisabledError()

    def check_target(self, quantity: int, field: str) -> None:
        if quantity < 0 and not self._config.allow_negative_stock():
            raise BusinessError(
                f"{field} {quantity} would leave a negative balance and "
                "negative stock is not allowed"
            )

    def adjust_to(
        self,
        key: StockKey,
        new_quantity: int,
        notes: str,
        user_id: UUID,
        source_ref: SourceRef | None = None,
    ) -> AdjustmentResult:
        """Record the adjustment movement inside the caller's operation."""
        item = self._ledger.positions.find_for_update(key)
        current = item.quantity if item is not None else 0
        difference = new_quantity - current

        movement_type = adjustment_type_for(difference)
        if movement_type is None:
            logger.info(
                "adjustment_skipped_no_difference",
                extra={"equipment_type_id": str(key.equipment_type_id), "balance": current},
            )
            return AdjustmentResult(
                movement_id=None,
                equipment_type_id=key.equipment_type_id,
                balance_before=current,
                balance_after=current,
                difference=0,
                notes=notes,
                estimated_financial_impact=estimated_impact(
                    item.unit_cost if item is not None else None, 0
                ),
            )

        movement = self._ledger.post(
            movement_type,
            key,
            abs(difference),
            user_id,
            source_ref=source_ref,
            notes=notes,
        )
        return AdjustmentResult(
            movement_id=movement.id,
            equipment_type_id=key.equipment_type_id,
            balance_before=movement.balance_before,
            balance_after=movement.balance_after,
            difference=difference,
            notes=notes,
            estimated_financial_impact=estimated_impact(
                movement.stock_item.unit_cost, difference
            ),
        )

    def _find(self, key: StockKey) -> StockItem | None:
        return self.session.execute(
            select(StockItem).where(
                StockItem.warehouse_id == key.warehouse_id,
                StockItem.equipment_type_id == key.equipment_type_id,
                StockItem.status == key.status.value,
            )
        ).scalar_one_or_none()

