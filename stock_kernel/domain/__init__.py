"""Pure domain core: values, movement rules, divergence math, DTOs, clock."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    AdjustmentHistory,
    AdjustmentHistorySummary,
    AdjustmentResult,
    CountedItem,
    Divergence,
    DivergenceReport,
    DivergenceSummary,
    InventoryResult,
    MovementRecord,
    SimulationResult,
    StockPosition,
)
from stock_kernel.domain.values import (
    AdjustmentKind,
    ItemCondition,
    MovementType,
    SourceDocumentType,
    SourceRef,
    StockKey,
    StockStatus,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AdjustmentHistory",
    "AdjustmentHistorySummary",
    "AdjustmentResult",
    "CountedItem",
    "Divergence",
    "DivergenceReport",
    "DivergenceSummary",
    "InventoryResult",
    "MovementRecord",
    "SimulationResult",
    "StockPosition",
    "AdjustmentKind",
    "ItemCondition",
    "MovementType",
    "SourceDocumentType",
    "SourceRef",
    "StockKey",
    "StockStatus",
]
