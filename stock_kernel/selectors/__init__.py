"""Read-only query selectors for the stock kernel."""

from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "BaseSelector",
    "MovementSelector",
    "StockSelector",
]
