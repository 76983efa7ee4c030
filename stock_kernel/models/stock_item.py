"""
Module: stock_kernel.models.stock_item
Responsibility: ORM persistence for stock positions -- the running quantity of
    one equipment type in one warehouse in one status.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (warehouse_id, equipment_type_id, status) is unique; rows are created on
      first use and never deleted (ORM listener).
    - quantity changes only together with a new StockMovement for the row
      whose balance_after equals the new quantity (before_flush guard in
      db/immutability.py).

Failure modes:
    - IntegrityError on concurrent creation of the same key (handled by
      StockPositionService with a savepoint and retry).
    - ImmutabilityViolationError on DELETE or on a quantity change without a
      matching movement.
"""

from uuid import UUID

from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase
from stock_kernel.db.types import Quantity, ShortCode, UnitCost


class StockItem(TimestampedBase):
    """
    Quantity of one equipment type held in one warehouse in one status.

    Guarantees:
        - One row per (warehouse_id, equipment_type_id, status).
        - quantity is a signed integer; it is negative only when the
          negative-stock policy allowed it at write time.
        - unit_cost is optional and only used for financial estimates.
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        UniqueConstraint(
            "warehouse_id",
            "equipment_type_id",
            "status",
            name="uq_stock_item_key",
        ),
        Index("idx_stock_item_warehouse", "warehouse_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(nullable=False)

    equipment_type_id: Mapped[UUID] = mapped_column(nullable=False)

    # DISPONIVEL, AGUARDANDO_INSPECAO, QUARENTENA
    status: Mapped[ShortCode] = mapped_column(nullable=False)

    quantity: Mapped[Quantity] = mapped_column(nullable=False, default=0)

    unit_cost: Mapped[UnitCost | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockItem {self.warehouse_id}/{self.equipment_type_id}/"
            f"{self.status}: {self.quantity}>"
        )

    @property
    def key(self) -> tuple[UUID, UUID, str]:
        return (self.warehouse_id, self.equipment_type_id, self.status)
