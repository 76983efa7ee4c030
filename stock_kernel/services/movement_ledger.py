"""
MovementLedger -- the single write path for stock quantities.

Responsibility:
    Records every stock-affecting event as an immutable StockMovement with
    balance_before / balance_after, and applies the same change to the
    stock item, in one transaction.

Architecture position:
    Kernel > Services -- entry point.  Also used as a collaborator by
    ReversalService, AdjustmentService and InventoryCountService, which
    call ``post()`` / ``post_reversal()`` inside their own operations.

Invariants enforced:
    - The stock item change and the movement insert are flushed together;
      the ORM guard rejects one without the other.
    - Movement seq comes from the locked sequence counter.
    - A resulting negative balance is rejected unless ALLOW_NEGATIVE_STOCK.
    - ESTORNO is never recorded directly; reversals go through
      ReversalService.

Failure modes:
    - ValidationError: non-positive or non-integer quantity, unknown
      movement type or status, missing user, ESTORNO via record().
    - InsufficientStockError: balance would go below zero.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.domain.movement_rules import (
    Direction,
    ReversalPlan,
    apply_direction,
    direction_of,
)
from stock_kernel.domain.validation import (
    coerce_enum,
    require_positive_int,
    require_present,
    require_stock_key,
    require_unit_cost,
)
from stock_kernel.domain.values import (
    ItemCondition,
    MovementType,
    SourceRef,
    StockKey,
    StockStatus,
)
from stock_kernel.exceptions import InsufficientStockError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import StockMovement
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import TransactionalService
from stock_kernel.services.configuration_service import ConfigurationService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_position_service import StockPositionService

logger = get_logger("services.movement_ledger")

_HOLDING_STATUSES = frozenset(
    {StockStatus.AWAITING_INSPECTION, StockStatus.QUARANTINE}
)


class MovementLedger(TransactionalService):
    """
    Records stock movements.

    Usage:
        ledger = MovementLedger(session, configuration, clock)
        record = ledger.record(
            MovementType.ENTRY_FROM_NOTE,
            warehouse_id, equipment_type_id, StockStatus.AVAILABLE,
            quantity=50, responsible_user_id=user_id,
            source_ref=SourceRef("NOTA", note_id),
        )
    """

    _logger = logger

    def __init__(
        self,
        session: Session,
        configuration: ConfigurationService | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._config = configuration or ConfigurationService(session)
        self._positions = StockPositionService(session)
        self._sequences = SequenceService(session)

    @property
    def positions(self) -> StockPositionService:
        return self._positions

    @property
    def configuration(self) -> ConfigurationService:
        return self._config

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def record(
        self,
        movement_type: MovementType | str,
        warehouse_id: UUID,
        equipment_type_id: UUID,
        status: StockStatus | str,
        quantity: int,
        responsible_user_id: UUID,
        source_ref: SourceRef | None = None,
        notes: str | None = None,
        unit_cost: Decimal | None = None,
    ) -> MovementRecord:
        """
        Record one movement and apply it to the stock item.

        The stock item is created with a zero balance on first use.
        ``unit_cost`` is only accepted on ENTRADA_NOTA; it replaces the
        item's unit cost used for adjustment impact estimates.

        Raises:
            ValidationError: on malformed input or an ESTORNO movement type.
            InsufficientStockError: if the balance would go below zero and
                negative stock is not allowed.
        """
        movement_type = coerce_enum(MovementType, movement_type, "movement_type")
        if movement_type is MovementType.REVERSAL:
            raise ValidationError(
                "Reversal movements cannot be recorded directly; use reverse()",
                field="movement_type",
            )
        key = require_stock_key(warehouse_id, equipment_type_id, status)
        require_positive_int(quantity, "quantity")
        require_present(responsible_user_id, "responsible_user_id")
        if unit_cost is not None:
            if movement_type is not MovementType.ENTRY_FROM_NOTE:
                raise ValidationError(
                    "unit_cost can only be given on a note entry",
                    field="unit_cost",
                )
            unit_cost = require_unit_cost(unit_cost)

        with self._operation(
            "stock_movement_record",
            actor_id=responsible_user_id,
            warehouse_id=warehouse_id,
            movement_type=movement_type.value,
            equipment_type_id=str(equipment_type_id),
            status=key.status.value,
            quantity=quantity,
        ) as outcome:
            movement = self.post(
                movement_type,
                key,
                quantity,
                responsible_user_id,
                source_ref=source_ref,
                notes=notes,
            )
            if unit_cost is not None:
                self._positions.set_unit_cost(movement.stock_item, unit_cost)
                self.session.flush()
                outcome.update(unit_cost=unit_cost)
            outcome.update(_movement_fields(movement))

        return MovementRecord.from_model(movement)

    def record_transfer(
        self,
        source_warehouse_id: UUID,
        destination_warehouse_id: UUID,
        equipment_type_id: UUID,
        quantity: int,
        responsible_user_id: UUID,
        source_ref: SourceRef | None = None,
        notes: str | None = None,
    ) -> tuple[MovementRecord, MovementRecord]:
        """
        Move available stock between two warehouses.

        Records SAIDA_TRANSFERENCIA on the source and ENTRADA_TRANSFERENCIA
        on the destination in one transaction.

        Returns:
            (exit movement, entry movement)
        """
        require_present(source_warehouse_id, "source_warehouse_id")
        require_present(destination_warehouse_id, "destination_warehouse_id")
        if source_warehouse_id == destination_warehouse_id:
            raise ValidationError(
                "Source and destination warehouses must be different",
                field="destination_warehouse_id",
            )
        require_present(equipment_type_id, "equipment_type_id")
        require_positive_int(quantity, "quantity")
        require_present(responsible_user_id, "responsible_user_id")

        source_key = StockKey(source_warehouse_id, equipment_type_id)
        destination_key = StockKey(destination_warehouse_id, equipment_type_id)

        with self._operation(
            "stock_transfer_record",
            actor_id=responsible_user_id,
            warehouse_id=source_warehouse_id,
            destination_warehouse_id=str(destination_warehouse_id),
            equipment_type_id=str(equipment_type_id),
            quantity=quantity,
        ) as outcome:
            # Fixed lock order so opposite transfers cannot deadlock
            for key in sorted((source_key, destination_key), key=lambda k: str(k.warehouse_id)):
                self._positions.get_or_create_for_update(key)

            exit_movement = self.post(
                MovementType.EXIT_TO_TRANSFER,
                source_key,
                quantity,
                responsible_user_id,
                source_ref=source_ref,
                notes=notes,
            )
            entry_movement = self.post(
                MovementType.ENTRY_FROM_TRANSFER,
                destination_key,
                quantity,
                responsible_user_id,
                source_ref=source_ref,
                notes=notes,
            )
            outcome.update(
                exit_movement_id=str(exit_movement.id),
                entry_movement_id=str(entry_movement.id),
            )

        return (
            MovementRecord.from_model(exit_movement),
            MovementRecord.from_model(entry_movement),
        )

    def record_return(
        self,
        warehouse_id: UUID,
        equipment_type_id: UUID,
        quantity: int,
        condition: ItemCondition | str,
        responsible_user_id: UUID,
        source_ref: SourceRef | None = None,
        status: StockStatus | str | None = None,
        notes: str | None = None,
    ) -> MovementRecord:
        """
        Record equipment handed back by an employee.

        Items in good condition return to AVAILABLE.  Damaged items go to
        AWAITING_INSPECTION, or to QUARANTINE when that status is given.
        Lost items never re-enter stock.

        Raises:
            ValidationError: for a lost item, or a status that does not fit
                the condition.
        """
        condition = coerce_enum(ItemCondition, condition, "condition")
        target_status = self._return_status(condition, status)
        return self.record(
            MovementType.RETURN_ENTRY,
            warehouse_id,
            equipment_type_id,
            target_status,
            quantity,
            responsible_user_id,
            source_ref=source_ref,
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Collaborator API (runs inside the caller's operation)
    # ------------------------------------------------------------------

    def post(
        self,
        movement_type: MovementType,
        key: StockKey,
        quantity: int,
        responsible_user_id: UUID,
        source_ref: SourceRef | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Lock the item, apply a directional movement and flush it."""
        direction = direction_of(movement_type)
        allow_negative = self._config.allow_negative_stock()

        item = self._positions.get_or_create_for_update(key)
        resulting = apply_direction(item.quantity, direction, quantity)
        self._check_negative(item, resulting, quantity, allow_negative)

        return self._write(
            item,
            movement_type,
            responsible_user_id,
            direction=direction,
            quantity=quantity,
            source_ref=source_ref,
            notes=notes,
        )

    def post_reversal(
        self,
        original: StockMovement,
        plan: ReversalPlan,
        responsible_user_id: UUID,
        notes: str | None = None,
    ) -> StockMovement:
        """Apply a reversal plan as an ESTORNO movement linked to ``original``."""
        allow_negative = self._config.allow_negative_stock()

        item = self._positions.get_or_create_for_update(plan.target)
        resulting = plan.resulting_balance(item.quantity)
        self._check_negative(
            item, resulting, abs(resulting - item.quantity), allow_negative
        )

        source_ref = None
        if original.source_document_type and original.source_document_id:
            source_ref = SourceRef(
                original.source_document_type, original.source_document_id
            )

        return self._write(
            item,
            MovementType.REVERSAL,
            responsible_user_id,
            direction=plan.direction,
            quantity=plan.quantity,
            restore_to=plan.restore_to,
            source_ref=source_ref,
            notes=notes,
            reversal_of_id=original.id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(
        self,
        item: StockItem,
        movement_type: MovementType,
        responsible_user_id: UUID,
        direction: Direction | None = None,
        quantity: int = 0,
        restore_to: int | None = None,
        source_ref: SourceRef | None = None,
        notes: str | None = None,
        reversal_of_id: UUID | None = None,
    ) -> StockMovement:
        # The counter flush must happen before the item is touched
        seq = self._sequences.next_value(SequenceService.STOCK_MOVEMENT)

        balance_before = item.quantity
        if restore_to is not None:
            balance_after = self._positions.set_quantity(item, restore_to)
        elif direction is Direction.INCREASE:
            balance_after = self._positions.increment(item, quantity)
        else:
            balance_after = self._positions.decrement(item, quantity)

        movement = StockMovement(
            seq=seq,
            stock_item=item,
            stock_item_id=item.id,
            movement_type=movement_type.value,
            quantity_moved=abs(balance_after - balance_before),
            balance_before=balance_before,
            balance_after=balance_after,
            responsible_user_id=responsible_user_id,
            occurred_at=self._clock.now(),
            source_document_type=source_ref.document_type if source_ref else None,
            source_document_id=source_ref.document_id if source_ref else None,
            reversal_of_id=reversal_of_id,
            notes=notes,
        )
        self.session.add(movement)
        self.session.flush()

        logger.debug(
            "stock_movement_written",
            extra=_movement_fields(movement),
        )
        return movement

    def _check_negative(
        self,
        item: StockItem,
        resulting: int,
        requested: int,
        allow_negative: bool,
    ) -> None:
        if resulting < 0 and not allow_negative:
            raise InsufficientStockError(
                warehouse_id=str(item.warehouse_id),
                equipment_type_id=str(item.equipment_type_id),
                status=item.status,
                available=item.quantity,
                requested=requested,
            )

    def _return_status(
        self,
        condition: ItemCondition,
        status: StockStatus | str | None,
    ) -> StockStatus:
        if condition is ItemCondition.LOST:
            raise ValidationError(
                "Lost items do not return to stock", field="condition"
            )
        requested = None if status is None else coerce_enum(StockStatus, status, "status")

        if condition is ItemCondition.GOOD:
            if requested not in (None, StockStatus.AVAILABLE):
                raise ValidationError(
                    "Items in good condition return to available stock",
                    field="status",
                )
            return StockStatus.AVAILABLE

        if requested is None:
            return StockStatus.AWAITING_INSPECTION
        if requested not in _HOLDING_STATUSES:
            raise ValidationError(
                "Damaged items must go to a holding status", field="status"
            )
        return requested


def _movement_fields(movement: StockMovement) -> dict:
    return {
        "movement_id": str(movement.id),
        "seq": movement.seq,
        "movement_type": movement.movement_type,
        "balance_before": movement.balance_before,
        "balance_after": movement.balance_after,
    }
