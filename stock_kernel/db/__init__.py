"""Database layer - engine, base classes, types, and ledger listeners."""

from stock_kernel.db.base import Base, TimestampedBase, UTCDateTime, UUIDString
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from stock_kernel.db.types import LongText, Quantity, Sequence, ShortCode, UnitCost

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UTCDateTime",
    "Quantity",
    "UnitCost",
    "Sequence",
    "ShortCode",
    "LongText",
]
