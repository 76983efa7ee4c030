"""
InventoryCountService -- physical inventory counts.

Responsibility:
    Reconciles a full count of one warehouse against the system balances.
    Every divergent item becomes one adjustment movement; all of them are
    written in one atomic operation.  ``validate_inventory_divergences``
    computes the same divergences for operator review without writing.

Architecture position:
    Kernel > Services -- entry point.  Consumes AdjustmentService (for the
    per-item adjustment) and the pure ``domain.divergence`` functions.

Invariants enforced:
    - The whole batch is validated before the first write.
    - Items without divergence produce no movement.
    - Any failure rolls back every adjustment of the batch.
    - Movements of one count share a source document
      (``INVENTARIO`` / count_id), so the count can be reversed as a whole
      with ReversalService.reverse_source_document().
    - The divergence report never writes, not even an empty stock item.

Failure modes:
    - ValidationError: empty batch, negative or non-integer count,
      duplicate equipment type, missing user.
    - ForcedAdjustmentsDisabledError: when the permission check is requested
      and ALLOW_FORCED_ADJUSTMENTS is off.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.types import round_money
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.divergence import compute_divergence, summarize
from stock_kernel.domain.dtos import (
    AdjustmentResult,
    CountedItem,
    DivergenceReport,
    InventoryResult,
)
from stock_kernel.domain.validation import (
    require_non_negative_int,
    require_present,
)
from stock_kernel.domain.values import (
    SourceDocumentType,
    SourceRef,
    StockKey,
    StockStatus,
)
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.adjustment_service import AdjustmentService
from stock_kernel.services.base import TransactionalService
from stock_kernel.services.configuration_service import ConfigurationService

logger = get_logger("services.inventory_count")


def _coerce_counted_item(raw, index: int) -> CountedItem:
    if isinstance(raw, CountedItem):
        item = raw
    elif isinstance(raw, Mapping):
        try:
            item = CountedItem(
                equipment_type_id=raw["equipment_type_id"],
                counted_quantity=raw["counted_quantity"],
                reason=raw.get("reason"),
            )
        except KeyError as exc:
            raise ValidationError(
                f"Counted item {index} is missing {exc.args[0]}",
                field=f"counted_items[{index}].{exc.args[0]}",
            ) from None
    else:
        raise ValidationError(
            f"Counted item {index} is not a counted item: {raw!r}",
            field=f"counted_items[{index}]",
        )

    require_present(item.equipment_type_id, f"counted_items[{index}].equipment_type_id")
    require_non_negative_int(item.counted_quantity, f"counted_items[{index}].counted_quantity")
    return item


def validate_counted_items(counted_items: Iterable) -> tuple[CountedItem, ...]:
    """
    Validate a whole count before anything is written.

    Accepts CountedItem instances or mappings with ``equipment_type_id``,
    ``counted_quantity`` and optional ``reason``.
    """
    items = tuple(
        _coerce_counted_item(raw, index)
        for index, raw in enumerate(counted_items or ())
    )
    if not items:
        raise ValidationError("At least one counted item is required", field="counted_items")

    seen: set = set()
    for index, item in enumerate(items):
        if item.equipment_type_id in seen:
            raise ValidationError(
                f"Equipment type {item.equipment_type_id} is counted twice",
                field=f"counted_items[{index}].equipment_type_id",
            )
        seen.add(item.equipment_type_id)
    return items


class InventoryCountService(TransactionalService):
    """
    Executes and reviews inventory counts.

    Usage:
        counts = InventoryCountService(session, configuration=config, clock=clock)
        report = counts.validate_inventory_divergences(warehouse_id, items)
        result = counts.execute_inventory(warehouse_id, items, user_id)
    """

    _logger = logger

    def __init__(
        self,
        session: Session,
        configuration: ConfigurationService | None = None,
        adjustments: AdjustmentService | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self._config = configuration or ConfigurationService(session)
        self._adjustments = adjustments or AdjustmentService(
            session, self._config, clock=self._clock, auto_commit=False
        )

    def execute_inventory(
        self,
        warehouse_id: UUID,
        counted_items: Iterable[CountedItem | Mapping],
        user_id: UUID,
        observations: str | None = None,
        require_permission_check: bool = True,
    ) -> InventoryResult:
        """
        Apply a physical count to the AVAILABLE stock of one warehouse.

        Returns:
            InventoryResult with one AdjustmentResult per divergent item.
        """
        require_present(warehouse_id, "warehouse_id")
        require_present(user_id, "user_id")
        items = validate_counted_items(counted_items)
        count_id = uuid4()
        source_ref = SourceRef(SourceDocumentType.INVENTORY_COUNT, str(count_id))

        with self._operation(
            "inventory_count_execute",
            actor_id=user_id,
            warehouse_id=warehouse_id,
            count_id=str(count_id),
            item_count=len(items),
        ) as outcome:
            if require_permission_check:
                self._adjustments.check_permission()

            adjustments: list[AdjustmentResult] = []
            for item in items:
                key = StockKey(warehouse_id, item.equipment_type_id, StockStatus.AVAILABLE)
                system_balance = self._balance(key)
                if item.counted_quantity == system_balance:
                    continue

                notes = item.reason or (
                    f"Inventory count: counted {item.counted_quantity}, "
                    f"system balance {system_balance}"
                )
                if observations:
                    notes = f"{notes} ({observations})"

                adjustments.append(
                    self._adjustments.adjust_to(
                        key,
                        item.counted_quantity,
                        notes=notes,
                        user_id=user_id,
                        source_ref=source_ref,
                    )
                )

            result = _inventory_result(count_id, warehouse_id, items, adjustments)
            outcome.update(
                adjusted_items=result.adjusted_items,
                positive_adjustments=result.positive_adjustments,
                negative_adjustments=result.negative_adjustments,
                total_quantity_adjusted=result.total_quantity_adjusted,
            )

        return result

    def validate_inventory_divergences(
        self,
        warehouse_id: UUID,
        counted_items: Iterable[CountedItem | Mapping],
    ) -> DivergenceReport:
        """Compare a count with the system balances without writing anything."""
        require_present(warehouse_id, "warehouse_id")
        items = validate_counted_items(counted_items)

        divergences = []
        for item in items:
            key = StockKey(warehouse_id, item.equipment_type_id, StockStatus.AVAILABLE)
            divergence = compute_divergence(
                item.equipment_type_id, self._balance(key), item.counted_quantity
            )
            if divergence.difference != 0:
                divergences.append(divergence)

        return DivergenceReport(
            warehouse_id=warehouse_id,
            divergences=tuple(divergences),
            summary=summarize(len(items), divergences),
        )

    def _balance(self, key: StockKey) -> int:
        quantity = self.session.execute(
            select(StockItem.quantity).where(
                StockItem.warehouse_id == key.warehouse_id,
                StockItem.equipment_type_id == key.equipment_type_id,
                StockItem.status == key.status.value,
            )
        ).scalar_one_or_none()
        return quantity or 0


def _inventory_result(
    count_id: UUID,
    warehouse_id: UUID,
    items: tuple[CountedItem, ...],
    adjustments: list[AdjustmentResult],
) -> InventoryResult:
    impact = Decimal("0")
    for adjustment in adjustments:
        if adjustment.estimated_financial_impact is not None:
            impact += abs(adjustment.estimated_financial_impact)

    return InventoryResult(
        count_id=count_id,
        warehouse_id=warehouse_id,
        adjustments=tuple(adjustments),
        total_items_processed=len(items),
        positive_adjustments=sum(1 for a in adjustments if a.difference > 0),
        negative_adjustments=sum(1 for a in adjustments if a.difference < 0),
        total_quantity_adjusted=sum(abs(a.difference) for a in adjustments),
        estimated_financial_impact=round_money(impact),
    )
