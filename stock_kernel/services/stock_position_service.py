"""
StockPositionService -- locked access to stock items.

Responsibility:
    Finds stock items by (warehouse, equipment type, status) under a row
    lock, creates missing items with a zero balance, and applies quantity
    changes for the movement ledger.

Architecture position:
    Kernel > Services -- flush-only collaborator.  Only MovementLedger calls
    the mutators; the ORM guard rejects a quantity change that is flushed
    without its movement.

Invariants enforced:
    - Items are read with SELECT ... FOR UPDATE so concurrent writers to one
      key serialize (no lost updates under READ COMMITTED).
    - Create-if-absent is race-safe: the INSERT runs in a savepoint and an
      IntegrityError falls back to a locked re-read.

Failure modes:
    - StockItemNotFoundError from get_for_update() for an unknown key.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from stock_kernel.domain.movement_rules import Direction, apply_direction
from stock_kernel.domain.values import StockKey
from stock_kernel.exceptions import StockItemNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import BaseService

logger = get_logger("services.stock_position")


class StockPositionService(BaseService):
    """Row-locked reads and writes of stock items."""

    def _select_for_update(self, key: StockKey) -> StockItem | None:
        return self.session.execute(
            select(StockItem)
            .where(
                StockItem.warehouse_id == key.warehouse_id,
                StockItem.equipment_type_id == key.equipment_type_id,
                StockItem.status == key.status.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def find_for_update(self, key: StockKey) -> StockItem | None:
        return self._select_for_update(key)

    def get_for_update(self, key: StockKey) -> StockItem:
        """
        Lock and return the item for ``key``.

        Raises:
            StockItemNotFoundError: if no item exists for the key.
        """
        item = self._select_for_update(key)
        if item is None:
            raise StockItemNotFoundError(
                str(key.warehouse_id), str(key.equipment_type_id), key.status.value
            )
        return item

    def get_or_create_for_update(self, key: StockKey) -> StockItem:
        """Lock and return the item for ``key``, creating it at zero if absent."""
        item = self._select_for_update(key)
        if item is not None:
            return item

        savepoint = self.session.begin_nested()
        try:
            item = StockItem(
                warehouse_id=key.warehouse_id,
                equipment_type_id=key.equipment_type_id,
                status=key.status.value,
                quantity=0,
            )
            self.session.add(item)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "stock_item_create_race_retry",
                extra={
                    "equipment_type_id": str(key.equipment_type_id),
                    "status": key.status.value,
                },
            )
            savepoint.rollback()
            return self.get_for_update(key)

        logger.info(
            "stock_item_created",
            extra={
                "stock_item_id": str(item.id),
                "equipment_type_id": str(key.equipment_type_id),
                "status": key.status.value,
            },
        )
        return item

    # Mutators do not flush: the ledger flushes the new balance together
    # with its movement.

    def increment(self, item: StockItem, quantity: int) -> int:
        return self.set_quantity(
            item, apply_direction(item.quantity, Direction.INCREASE, quantity)
        )

    def decrement(self, item: StockItem, quantity: int) -> int:
        return self.set_quantity(
            item, apply_direction(item.quantity, Direction.DECREASE, quantity)
        )

    def set_quantity(self, item: StockItem, quantity: int) -> int:
        item.quantity = quantity
        return quantity

    def set_unit_cost(self, item: StockItem, unit_cost: Decimal) -> None:
        item.unit_cost = unit_cost
