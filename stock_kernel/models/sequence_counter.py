"""
Module: stock_kernel.models.sequence_counter
Responsibility: Named counter rows used to hand out movement sequence numbers.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - The counter row is the sole source of the next value; it is always
      read with SELECT ... FOR UPDATE (SequenceService).
"""

from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.db.types import Sequence, ShortCode


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g. "stock_movement")
    name: Mapped[ShortCode] = mapped_column(nullable=False, unique=True)

    current_value: Mapped[Sequence] = mapped_column(nullable=False, default=0)
