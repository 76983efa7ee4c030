"""
Module: stock_kernel.db.base
Responsibility: Declarative bases shared by every ledger model.
Architecture position: Kernel > DB.  Lowest import target of the kernel;
    models import from here, this module imports only db/types.py.

Invariants enforced:
    - Every row has a uuid4 primary key, stored as String(36) so the same
      schema runs on PostgreSQL and SQLite.
    - Quantities are integers and unit costs Numeric(18, 4); floats never
      reach a column.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from stock_kernel.db.types import LongText, Quantity, Sequence, ShortCode, UnitCost


class UUIDString(TypeDecorator):
    """UUID bound as its canonical string and loaded back as UUID."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timestamp stored in UTC and always loaded timezone-aware.

    SQLite drops the offset of DateTime(timezone=True); values are converted
    to UTC before binding, so a naive value read back is UTC.  Naive values
    bound here are taken as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for the ledger tables.

    The annotation map lets models declare ``Mapped[Quantity]`` or
    ``Mapped[ShortCode]`` instead of repeating column types.
    """

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        datetime: UTCDateTime(),
        Decimal: Numeric(18, 4),
        int: BigInteger,
        Quantity: Integer(),
        Sequence: BigInteger(),
        UnitCost: Numeric(18, 4),
        ShortCode: String(50),
        LongText: String(2000),
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TimestampedBase(Base):
    """Adds server-side created_at / updated_at to mutable rows."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    # Bumped on every UPDATE; stock items change quantity, settings change value.
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
