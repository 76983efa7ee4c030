"""Services for the stock kernel (write side)."""

from stock_kernel.services.adjustment_service import AdjustmentService
from stock_kernel.services.configuration_service import ConfigurationService
from stock_kernel.services.inventory_count_service import InventoryCountService
from stock_kernel.services.movement_ledger import MovementLedger
from stock_kernel.services.reversal_service import ReversalService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_position_service import StockPositionService

__all__ = [
    "AdjustmentService",
    "ConfigurationService",
    "InventoryCountService",
    "MovementLedger",
    "ReversalService",
    "SequenceService",
    "StockPositionService",
]
