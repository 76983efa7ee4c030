"""
Module: stock_kernel.selectors.stock_selector
Responsibility: Read-only queries over stock items: balances, positions of a
    warehouse, and AVAILABLE items below the minimum stock threshold.
Architecture position: Kernel > Selectors.

Failure modes:
    - An unknown stock key reads as a zero balance; get_position() returns
      None for it.  Nothing is ever created.
"""

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import StockPosition
from stock_kernel.domain.values import StockKey, StockStatus
from stock_kernel.models.stock_item import StockItem
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.services.configuration_service import ConfigurationService


class StockSelector(BaseSelector):
    """Read-only access to stock positions."""

    def __init__(self, session, configuration: ConfigurationService | None = None):
        super().__init__(session)
        self._config = configuration

    def _find(self, key: StockKey) -> StockItem | None:
        return self.session.execute(
            select(StockItem).where(
                StockItem.warehouse_id == key.warehouse_id,
                StockItem.equipment_type_id == key.equipment_type_id,
                StockItem.status == key.status.value,
            )
        ).scalar_one_or_none()

    def get_balance(self, key: StockKey) -> int:
        """Current quantity of a stock item; 0 when the item does not exist."""
        item = self._find(key)
        return item.quantity if item is not None else 0

    def get_position(self, key: StockKey) -> StockPosition | None:
        item = self._find(key)
        return StockPosition.from_model(item) if item is not None else None

    def list_positions(
        self,
        warehouse_id: UUID,
        status: StockStatus | None = None,
    ) -> list[StockPosition]:
        """All stock items of a warehouse, optionally for one status."""
        query = select(StockItem).where(StockItem.warehouse_id == warehouse_id)
        if status is not None:
            query = query.where(StockItem.status == status.value)
        query = query.order_by(StockItem.equipment_type_id, StockItem.status)

        return [
            StockPosition.from_model(item)
            for item in self.session.execute(query).scalars()
        ]

    def list_below_minimum(
        self,
        warehouse_id: UUID,
        threshold: int | None = None,
    ) -> list[StockPosition]:
        """
        AVAILABLE items of a warehouse whose quantity is below ``threshold``.

        Without an explicit threshold the MINIMUM_STOCK_THRESHOLD setting
        is used.
        """
        if threshold is None:
            config = self._config or ConfigurationService(self.session)
            threshold = config.minimum_stock_threshold()

        query = (
            select(StockItem)
            .where(
                StockItem.warehouse_id == warehouse_id,
                StockItem.status == StockStatus.AVAILABLE.value,
                StockItem.quantity < threshold,
            )
            .order_by(StockItem.quantity, StockItem.equipment_type_id)
        )
        return [
            StockPosition.from_model(item)
            for item in self.session.execute(query).scalars()
        ]
