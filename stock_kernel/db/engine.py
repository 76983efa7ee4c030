"""
Module: stock_kernel.db.engine
Responsibility: Engine and session factory for the stock ledger, plus the
    commit-or-rollback ``session_scope`` used by callers that own the
    transaction.
Architecture position: Kernel > DB.  Services never reach for the engine;
    they receive a Session in their constructor.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED.  Concurrent writers to
      the same stock item serialize on SELECT ... FOR UPDATE.
    - On SQLite the pysqlite driver's own transaction handling is switched
      off, so BEGIN and SAVEPOINT come from SQLAlchemy and a failed
      operation rolls back only its savepoint.

Failure modes:
    - RuntimeError when a session is requested before init_engine_from_url().
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_engine(url: str, echo: bool) -> Engine:
    # StaticPool keeps one connection so an in-memory database survives
    # between sessions.
    engine = create_engine(
        url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgres_engine(url: str, echo: bool, **pool_options) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool_options,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Args:
        database_url: ``postgresql://...`` for production, ``sqlite://`` for
            tests and local tooling.
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_timeout, pool_recycle: QueuePool
            settings, ignored for SQLite.

    Returns:
        The new Engine.  Any previously initialized engine is replaced
        (call reset_engine() first to dispose it).
    """
    global _engine, _session_factory

    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        engine = _sqlite_engine(database_url, echo)
    else:
        engine = _postgres_engine(
            database_url,
            echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": dialect, "echo": echo})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    """Open a new Session on the initialized engine."""
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One transaction around a block of ledger calls.

    Commits when the block finishes and rolls back when it raises; the
    session is closed either way and the exception propagates.  Services
    used inside the block should be built with ``auto_commit=False``::

        with session_scope() as session:
            ledger = MovementLedger(session, auto_commit=False)
            ledger.record(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every ledger table that does not exist yet."""
    from stock_kernel.db.base import Base
    import stock_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every ledger table.  Test teardown only."""
    from stock_kernel.db.base import Base
    import stock_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
