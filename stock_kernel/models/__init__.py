"""ORM models for the stock ledger."""

from stock_kernel.models.movement import StockMovement
from stock_kernel.models.sequence_counter import SequenceCounter
from stock_kernel.models.stock_item import StockItem
from stock_kernel.models.system_setting import SystemSetting

__all__ = [
    "StockItem",
    "StockMovement",
    "SystemSetting",
    "SequenceCounter",
]
