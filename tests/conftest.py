"""
Pytest fixtures for the stock kernel test suite.

Provides:
- An in-memory SQLite database per test (real SAVEPOINT semantics)
- Deterministic clock and identifiers
- Service and selector instances wired to the same session

Environment Variables:
- DATABASE_URL: optional PostgreSQL connection URL.  When set, the suite
  runs against it instead of SQLite; tables are dropped after every test.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.values import StockKey
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.services.adjustment_service import AdjustmentService
from stock_kernel.services.configuration_service import ConfigurationService
from stock_kernel.services.inventory_count_service import InventoryCountService
from stock_kernel.services.movement_ledger import MovementLedger
from stock_kernel.services.reversal_service import ReversalService
from stock_config import ALLOW_FORCED_ADJUSTMENTS

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.record(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_movement_record_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh engine and schema for every test."""
    eng = init_engine_from_url(get_database_url())
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    if eng.dialect.name != "sqlite":
        drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the per-test engine."""
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def session_factory(db_engine):
    """Open additional sessions on the same database."""
    opened: list[Session] = []

    def _factory() -> Session:
        s = get_session()
        opened.append(s)
        return s

    yield _factory

    for s in opened:
        s.rollback()
        s.close()


# =============================================================================
# Identifiers
# =============================================================================


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def warehouse_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_warehouse_id() -> UUID:
    return uuid4()


@pytest.fixture
def equipment_type_id() -> UUID:
    return uuid4()


@pytest.fixture
def stock_key(warehouse_id, equipment_type_id) -> StockKey:
    """AVAILABLE stock item of the default warehouse and equipment type."""
    return StockKey(warehouse_id, equipment_type_id)


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def environ() -> dict[str, str]:
    """Environment seen by ConfigurationService; empty unless a test fills it."""
    return {}


@pytest.fixture
def configuration(session, environ) -> ConfigurationService:
    """Configuration with the YAML defaults (forced adjustments off)."""
    return ConfigurationService(session, environ=environ)


@pytest.fixture
def forced_adjustments(session, configuration) -> ConfigurationService:
    """Enable ALLOW_FORCED_ADJUSTMENTS for the test."""
    configuration.set_setting(ALLOW_FORCED_ADJUSTMENTS, True)
    session.commit()
    return configuration


@pytest.fixture
def ledger(session, configuration, deterministic_clock) -> MovementLedger:
    return MovementLedger(session, configuration, deterministic_clock)


@pytest.fixture
def reversal_service(session, configuration, deterministic_clock) -> ReversalService:
    return ReversalService(
        session, configuration=configuration, clock=deterministic_clock
    )


@pytest.fixture
def adjustment_service(session, configuration, deterministic_clock) -> AdjustmentService:
    return AdjustmentService(
        session, configuration=configuration, clock=deterministic_clock
    )


@pytest.fixture
def inventory_service(session, configuration, deterministic_clock) -> InventoryCountService:
    return InventoryCountService(
        session, configuration=configuration, clock=deterministic_clock
    )


@pytest.fixture
def stock_selector(session, configuration) -> StockSelector:
    return StockSelector(session, configuration)


@pytest.fixture
def movement_selector(session) -> MovementSelector:
    return MovementSelector(session)


# =============================================================================
# Scenario helpers
# =============================================================================


@pytest.fixture
def receive(ledger, warehouse_id, equipment_type_id, user_id):
    """Record an ENTRADA_NOTA of ``quantity`` on the default stock item."""
    from stock_kernel.domain.values import MovementType, SourceDocumentType, SourceRef

    def _receive(quantity: int, note_id: str | None = None, **overrides):
        source_ref = SourceRef(SourceDocumentType.NOTE, note_id) if note_id else None
        return ledger.record(
            MovementType.ENTRY_FROM_NOTE,
            overrides.get("warehouse_id", warehouse_id),
            overrides.get("equipment_type_id", equipment_type_id),
            overrides.get("status", "DISPONIVEL"),
            quantity,
            overrides.get("responsible_user_id", user_id),
            source_ref=source_ref,
            unit_cost=overrides.get("unit_cost"),
        )

    return _receive
