"""Structured logging: JSON lines, bound context, one-time configuration."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.domain.values import StockStatus
from stock_kernel.exceptions import InsufficientStockError, MovementNotFoundError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def json_lines():
    """
    Route the stock_kernel hierarchy into a buffer.

    Returns a callable producing the parsed lines written so far.
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(handler=handler)

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


class TestFormatter:

    def test_envelope(self, json_lines):
        get_logger("services.movement_ledger").info("stock_movement_recorded")

        (line,) = json_lines()
        assert line["message"] == "stock_movement_recorded"
        assert line["level"] == "INFO"
        assert line["logger"] == "stock_kernel.services.movement_ledger"
        assert line["ts"].endswith("+00:00")

    def test_extra_fields_become_keys(self, json_lines):
        get_logger("test").info(
            "stock_movement_recorded",
            extra={"seq": 7, "balance_before": 10, "balance_after": 4},
        )

        (line,) = json_lines()
        assert (line["seq"], line["balance_before"], line["balance_after"]) == (7, 10, 4)

    def test_domain_values_are_serialized(self, json_lines):
        movement_id = uuid4()
        get_logger("test").info(
            "adjustment_simulated",
            extra={
                "movement_id": movement_id,
                "impact": Decimal("-37.50"),
                "stock_status": StockStatus.AWAITING_INSPECTION,
            },
        )

        (line,) = json_lines()
        assert line["movement_id"] == str(movement_id)
        assert line["impact"] == "-37.50"
        assert line["stock_status"] == StockStatus.AWAITING_INSPECTION.value

    def test_bound_context_is_merged(self, json_lines):
        with LogContext.bind(operation="inventory_count_execute", warehouse_id="wh-9"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = json_lines()
        assert inside["operation"] == "inventory_count_execute"
        assert inside["warehouse_id"] == "wh-9"
        assert "operation" not in outside
        assert "warehouse_id" not in outside

    def test_plain_exception(self, json_lines):
        try:
            raise RuntimeError("lock timeout")
        except RuntimeError:
            get_logger("test").exception("unexpected")

        (line,) = json_lines()
        assert line["exc_type"] == "RuntimeError"
        assert line["exc_message"] == "lock timeout"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    def test_ledger_error_attributes_are_flattened(self, json_lines):
        try:
            raise InsufficientStockError("wh-1", "eq-1", "DISPONIVEL", 3, 5)
        except InsufficientStockError:
            get_logger("test").error("stock_movement_record_failed", exc_info=True)

        (line,) = json_lines()
        assert line["exc_code"] == "INSUFFICIENT_STOCK"
        assert line["exc_available"] == 3
        assert line["exc_requested"] == 5
        assert line["exc_status"] == "DISPONIVEL"

    def test_not_found_error_code(self, json_lines):
        missing = uuid4()
        try:
            raise MovementNotFoundError(missing)
        except MovementNotFoundError:
            get_logger("test").error("stock_movement_reverse_failed", exc_info=True)

        (line,) = json_lines()
        assert line["exc_type"] == "MovementNotFoundError"
        assert line["exc_movement_id"] == str(missing)

    def test_formatter_usable_standalone(self):
        record = logging.LogRecord("stock_kernel.x", logging.WARNING, "", 0, "msg %s", ("a",), None)
        line = json.loads(StructuredFormatter().format(record))
        assert line["message"] == "msg a"
        assert line["level"] == "WARNING"


class TestLogContext:

    def test_set_skips_none(self):
        LogContext.set(correlation_id="c-1", actor_id=None)
        assert LogContext.get_all() == {"correlation_id": "c-1"}

    def test_values_are_stored_as_text(self):
        actor = uuid4()
        LogContext.set(actor_id=actor)
        assert LogContext.get_all()["actor_id"] == str(actor)

    def test_every_field(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            operation="o",
            warehouse_id="w",
            movement_id="m",
        )
        assert set(LogContext.get_all()) == {
            "correlation_id",
            "actor_id",
            "operation",
            "warehouse_id",
            "movement_id",
        }

    def test_clear(self):
        LogContext.set(correlation_id="c", movement_id="m")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_nested_bind_restores_each_level(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="middle", movement_id="m-1"):
            with LogContext.bind(operation="inner"):
                assert LogContext.get_all()["operation"] == "inner"
                assert LogContext.get_all()["movement_id"] == "m-1"
            assert LogContext.get_all()["operation"] == "middle"
        assert LogContext.get_all() == {"operation": "outer"}

    def test_bind_restores_after_exception(self):
        with pytest.raises(ValueError):
            with LogContext.bind(correlation_id="temp"):
                raise ValueError("boom")
        assert "correlation_id" not in LogContext.get_all()

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(equipment_type_id="e-1")


def _stream_handlers() -> list[logging.Handler]:
    """Handlers on the stock_kernel logger, minus pytest's capture handlers."""
    return [
        h for h in logging.getLogger("stock_kernel").handlers
        if type(h) is logging.StreamHandler
    ]


class TestConfigureLogging:

    def test_only_first_call_takes_effect(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("stock_kernel").handlers
        assert first in handlers
        assert second not in handlers
        assert _stream_handlers() == [first]

    def test_does_not_propagate_to_root(self, json_lines):
        assert logging.getLogger("stock_kernel").propagate is False

    def test_level_filters_children(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream), level=logging.WARNING)
        get_logger("services.adjustment").info("dropped")
        get_logger("services.adjustment").warning("kept")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [line["message"] for line in lines] == ["kept"]

    def test_reset_allows_reconfiguration(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()
        assert _stream_handlers() == []

        replacement = logging.StreamHandler(StringIO())
        configure_logging(handler=replacement)
        assert _stream_handlers() == [replacement]
