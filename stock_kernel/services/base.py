"""
BaseService -- common constructor and transaction contract for kernel services.

Responsibility:
    Two kinds of services live in ``stock_kernel/services``:

    * Collaborators (StockPositionService, SequenceService,
      ConfigurationService) extend ``BaseService``.  They use
      ``session.flush()`` only -- never ``commit()`` or ``rollback()``.
    * Entry points (MovementLedger, ReversalService, AdjustmentService,
      InventoryCountService) extend ``TransactionalService``.  Every public
      write runs inside ``_operation()``, which gives it its own savepoint,
      binds the log context, and -- when ``auto_commit`` is True -- commits
      on success and rolls back on failure.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - One public operation is one atomic unit: a failure anywhere inside it
      rolls back everything the operation wrote, even when the caller owns
      the outer transaction (auto_commit=False).
    - Errors propagate unchanged; nothing is retried.

Failure modes:
    - Any exception raised inside an operation is logged as
      ``<operation>_failed`` with its error code and re-raised.
"""

import time
from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import LogContext, get_logger

logger = get_logger("services")


class BaseService(ABC):
    """
    Abstract base class for flush-only collaborator services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` -- the caller controls transaction
          boundaries.
    """

    def __init__(self, session: Session):
        self.session = session


class TransactionalService(BaseService):
    """
    Base class for public entry-point services.

    Args:
        session: SQLAlchemy session for database operations.
        clock: Source of movement timestamps (defaults to SystemClock).
        auto_commit: Commit on success / roll back on failure.  Pass False
            when composing several operations in one caller-owned
            transaction.
    """

    _logger = logger

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

    @contextmanager
    def _operation(
        self,
        operation: str,
        actor_id: Any = None,
        warehouse_id: Any = None,
        movement_id: Any = None,
        **fields: Any,
    ) -> Iterator[dict[str, Any]]:
        """
        Run one public operation as an atomic, logged unit.

        Yields a dict; whatever the body stores in it is logged with the
        ``<operation>_completed`` event.
        """
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=_text(actor_id),
            warehouse_id=_text(warehouse_id),
            movement_id=_text(movement_id),
            operation=operation,
        ):
            self._logger.info(f"{operation}_started", extra=fields)
            t0 = time.monotonic()
            outcome: dict[str, Any] = {}

            try:
                savepoint = self.session.begin_nested()
                try:
                    yield outcome
                    savepoint.commit()
                except Exception:
                    if savepoint.is_active:
                        savepoint.rollback()
                    raise

                if self._auto_commit:
                    self.session.commit()

            except Exception as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self.session.rollback()
                self._logger.error(
                    f"{operation}_failed",
                    extra={
                        "duration_ms": duration_ms,
                        "error_code": getattr(exc, "code", None),
                    },
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            self._logger.info(
                f"{operation}_completed",
                extra={"duration_ms": duration_ms, **outcome},
            )


def _text(value: Any) -> str | None:
    return None if value is None else str(value)
