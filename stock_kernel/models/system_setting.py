"""
Module: stock_kernel.models.system_setting
Responsibility: Key/value rows backing the configuration service.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase
from stock_kernel.db.types import LongText, ShortCode


class SystemSetting(TimestampedBase):
    """A named system setting stored as text (e.g. ``"true"``, ``"10"``)."""

    __tablename__ = "system_settings"

    key: Mapped[ShortCode] = mapped_column(nullable=False, unique=True)

    value: Mapped[LongText] = mapped_column(nullable=False)

    description: Mapped[LongText | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<SystemSetting {self.key}={self.value!r}>"
