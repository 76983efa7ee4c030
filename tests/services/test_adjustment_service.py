"""
AdjustmentService tests.

Tests cover:
- Direct adjustments up and down, sign classification
- Zero-difference adjustments record nothing
- Permission gate (ALLOW_FORCED_ADJUSTMENTS) and negative targets
- Simulation never writes
- Financial impact estimate from the stock item's unit cost
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stock_config import ALLOW_NEGATIVE_STOCK
from stock_kernel.domain.values import AdjustmentKind, StockKey, StockStatus
from stock_kernel.exceptions import (
    BusinessError,
    ForcedAdjustmentsDisabledError,
    ValidationError,
)
from stock_kernel.models.movement import StockMovement
from stock_kernel.services.adjustment_service import estimated_impact


def _movement_count(session) -> int:
    return session.execute(select(func.count(StockMovement.id))).scalar_one()


class TestApplyDirectAdjustment:

    def test_negative_adjustment(
        self, session, forced_adjustments, adjustment_service, movement_selector,
        receive, stock_selector, stock_key, user_id,
    ):
        receive(50)

        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 45, "Recount", user_id
        )

        assert result.balance_before == 50
        assert result.balance_after == 45
        assert result.difference == -5
        assert result.kind is AdjustmentKind.NEGATIVE
        assert result.notes == "Direct adjustment: Recount"
        assert stock_selector.get_balance(stock_key) == 45

        movement = movement_selector.get_movement(result.movement_id)
        assert movement.movement_type == "AJUSTE_NEGATIVO"
        assert movement.quantity_moved == 5

    def test_positive_adjustment_creates_item(
        self, forced_adjustments, adjustment_service, movement_selector,
        stock_selector, stock_key, user_id,
    ):
        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 8, "Found in storage", user_id
        )

        assert result.kind is AdjustmentKind.POSITIVE
        assert movement_selector.get_movement(result.movement_id).movement_type == "AJUSTE_POSITIVO"
        assert stock_selector.get_balance(stock_key) == 8

    def test_zero_difference_records_nothing(
        self, session, forced_adjustments, adjustment_service, receive, stock_key, user_id
    ):
        receive(10)

        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 10, "Recount", user_id
        )

        assert result.movement_id is None
        assert result.difference == 0
        assert result.kind is AdjustmentKind.NEUTRAL
        assert _movement_count(session) == 1

    def test_zero_on_unknown_item_creates_nothing(
        self, forced_adjustments, adjustment_service, stock_selector, stock_key, user_id
    ):
        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 0, "Recount", user_id
        )

        assert result.movement_id is None
        assert stock_selector.get_position(stock_key) is None

    def test_other_status_partition(
        self, forced_adjustments, adjustment_service, stock_selector, stock_key, user_id
    ):
        adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 2, "Recount", user_id,
            status=StockStatus.QUARANTINE,
        )
        assert stock_selector.get_balance(stock_key.with_status(StockStatus.QUARANTINE)) == 2
        assert stock_selector.get_balance(stock_key) == 0


class TestPermissions:

    def test_disabled_by_default(self, session, adjustment_service, receive, stock_key, user_id):
        receive(10)

        with pytest.raises(ForcedAdjustmentsDisabledError) as exc_info:
            adjustment_service.apply_direct_adjustment(
                stock_key.warehouse_id, stock_key.equipment_type_id, 5, "Recount", user_id
            )

        assert exc_info.value.code == "FORCED_ADJUSTMENTS_DISABLED"
        assert _movement_count(session) == 1

    def test_permission_check_can_be_skipped(
        self, adjustment_service, stock_selector, stock_key, user_id
    ):
        adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 5, "Recount", user_id,
            require_permission_check=False,
        )
        assert stock_selector.get_balance(stock_key) == 5

    def test_negative_target_rejected(
        self, session, forced_adjustments, adjustment_service, receive, stock_selector,
        stock_key, user_id,
    ):
        receive(3)
        with pytest.raises(BusinessError) as exc_info:
            adjustment_service.apply_direct_adjustment(
                stock_key.warehouse_id, stock_key.equipment_type_id, -1, "Recount", user_id
            )

        assert not isinstance(exc_info.value, ValidationError)
        assert exc_info.value.code == "BUSINESS_RULE_VIOLATION"
        assert stock_selector.get_balance(stock_key) == 3
        assert _movement_count(session) == 1

    def test_negative_target_allowed_by_setting(
        self, session, forced_adjustments, adjustment_service, stock_selector, stock_key, user_id
    ):
        forced_adjustments.set_setting(ALLOW_NEGATIVE_STOCK, True)
        session.commit()

        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, -2, "Recount", user_id
        )

        assert result.balance_after == -2
        assert stock_selector.get_balance(stock_key) == -2


class TestValidation:

    @pytest.mark.parametrize("reason", ["", "  ", None])
    def test_reason_required(self, forced_adjustments, adjustment_service, stock_key, user_id, reason):
        with pytest.raises(ValidationError) as exc_info:
            adjustment_service.apply_direct_adjustment(
                stock_key.warehouse_id, stock_key.equipment_type_id, 1, reason, user_id
            )
        assert exc_info.value.field == "reason"

    @pytest.mark.parametrize("new_quantity", [1.5, "3", None, False])
    def test_integer_target(self, forced_adjustments, adjustment_service, stock_key, user_id, new_quantity):
        with pytest.raises(ValidationError) as exc_info:
            adjustment_service.apply_direct_adjustment(
                stock_key.warehouse_id, stock_key.equipment_type_id, new_quantity, "Recount", user_id
            )
        assert exc_info.value.field == "new_quantity"

    def test_invalid_status(self, forced_adjustments, adjustment_service, stock_key, user_id):
        with pytest.raises(ValidationError) as exc_info:
            adjustment_service.apply_direct_adjustment(
                stock_key.warehouse_id, stock_key.equipment_type_id, 1, "Recount", user_id,
                status="PERDIDO",
            )
        assert exc_info.value.field == "status"


class TestSimulation:

    def test_preview_does_not_write(
        self, session, adjustment_service, receive, stock_selector, stock_key
    ):
        receive(50)

        preview = adjustment_service.simulate_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 42
        )

        assert preview.current_balance == 50
        assert preview.new_quantity == 42
        assert preview.difference == -8
        assert preview.kind is AdjustmentKind.NEGATIVE
        assert preview.estimated_financial_impact is None
        assert stock_selector.get_balance(stock_key) == 50
        assert _movement_count(session) == 1

    def test_preview_of_unknown_item_creates_nothing(
        self, adjustment_service, stock_selector, warehouse_id
    ):
        key = StockKey(warehouse_id, uuid4())

        preview = adjustment_service.simulate_adjustment(
            key.warehouse_id, key.equipment_type_id, 3
        )

        assert preview.current_balance == 0
        assert preview.kind is AdjustmentKind.POSITIVE
        assert stock_selector.get_position(key) is None

    def test_preview_needs_no_permission(self, adjustment_service, stock_key):
        preview = adjustment_service.simulate_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 0
        )
        assert preview.kind is AdjustmentKind.NEUTRAL


class TestFinancialImpact:

    def test_estimated_impact(self):
        assert estimated_impact(Decimal("12.3456"), -3) == Decimal("-37.04")
        assert estimated_impact(None, 5) is None

    def test_impact_uses_unit_cost(
        self, session, forced_adjustments, adjustment_service, receive, stock_key, user_id
    ):
        receive(10, unit_cost=Decimal("25.50"))

        preview = adjustment_service.simulate_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 12
        )
        result = adjustment_service.apply_direct_adjustment(
            stock_key.warehouse_id, stock_key.equipment_type_id, 7, "Recount", user_id
        )

        assert preview.estimated_financial_impact == Decimal("51.00")
        assert result.estimated_financial_impact == Decimal("-76.50")
