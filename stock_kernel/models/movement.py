"""
Module: stock_kernel.models.movement
Responsibility: ORM persistence for the append-only stock movement ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Movements are never updated or deleted (ORM listeners).
    - seq is unique and monotonically increasing (SequenceService).
    - quantity_moved > 0; the direction is given by movement_type and by
      the sign of (balance_after - balance_before).
    - reversal_of_id is UNIQUE: at most one reversal per original movement.

Failure modes:
    - IntegrityError on a second reversal of the same movement (the
      service checks first; the constraint is the backstop).
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base
from stock_kernel.db.types import LongText, Quantity, Sequence, ShortCode
from stock_kernel.models.stock_item import StockItem


class StockMovement(Base):
    """
    One immutable change to one stock item.

    Guarantees:
        - balance_before is the row's quantity when the movement was
          written; balance_after is the quantity left on the row.
        - A reversal movement (ESTORNO) always carries reversal_of_id.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity_moved > 0", name="ck_movement_quantity_positive"),
        Index("idx_movement_stock_item_seq", "stock_item_id", "seq"),
        Index("idx_movement_source", "source_document_type", "source_document_id"),
        Index("idx_movement_occurred", "occurred_at"),
    )

    seq: Mapped[Sequence] = mapped_column(nullable=False, unique=True)

    stock_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_items.id"),
        nullable=False,
    )

    movement_type: Mapped[ShortCode] = mapped_column(nullable=False)

    quantity_moved: Mapped[Quantity] = mapped_column(nullable=False)

    balance_before: Mapped[Quantity] = mapped_column(nullable=False)

    balance_after: Mapped[Quantity] = mapped_column(nullable=False)

    responsible_user_id: Mapped[UUID] = mapped_column(nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    # Optional link to the originating document (note, delivery, inventory count)
    source_document_type: Mapped[ShortCode | None] = mapped_column(nullable=True)
    source_document_id: Mapped[ShortCode | None] = mapped_column(nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("stock_movements.id"),
        nullable=True,
        unique=True,
    )

    notes: Mapped[LongText | None] = mapped_column(nullable=True)

    stock_item: Mapped[StockItem] = relationship(StockItem, lazy="joined", innerjoin=True)

    def __repr__(self) -> str:
        return (
            f"<StockMovement #{self.seq} {self.movement_type} "
            f"{self.balance_before}->{self.balance_after}>"
        )

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def delta(self) -> int:
        """Signed change applied to the stock item."""
        return self.balance_after - self.balance_before
