"""
Values -- Enumerations and immutable value objects of the stock ledger.

Responsibility:
    Names every code stored in the ledger (stock statuses, movement types,
    returned item conditions) and the small value objects passed between
    services (StockKey, SourceRef).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

The enum values are the codes persisted in the database and shared with the
rest of the PPE application, so they stay in Portuguese.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class StockStatus(str, Enum):
    """Status partition of a stock item."""

    AVAILABLE = "DISPONIVEL"
    AWAITING_INSPECTION = "AGUARDANDO_INSPECAO"
    QUARANTINE = "QUARENTENA"


class MovementType(str, Enum):
    """Kind of change recorded by a stock movement."""

    ENTRY_FROM_NOTE = "ENTRADA_NOTA"
    EXIT_TO_DELIVERY = "SAIDA_ENTREGA"
    EXIT_TO_TRANSFER = "SAIDA_TRANSFERENCIA"
    ENTRY_FROM_TRANSFER = "ENTRADA_TRANSFERENCIA"
    EXIT_TO_DISCARD = "SAIDA_DESCARTE"
    RETURN_ENTRY = "ENTRADA_DEVOLUCAO"
    POSITIVE_ADJUSTMENT = "AJUSTE_POSITIVO"
    NEGATIVE_ADJUSTMENT = "AJUSTE_NEGATIVO"
    REVERSAL = "ESTORNO"

    @classmethod
    def parse(cls, value: str) -> MovementType | None:
        """Return the member for a stored code, or None for unknown codes."""
        try:
            return cls(value)
        except ValueError:
            return None


class ItemCondition(str, Enum):
    """Condition of equipment handed back by an employee."""

    GOOD = "BOM"
    DAMAGED = "DANIFICADO"
    LOST = "PERDIDO"


class AdjustmentKind(str, Enum):
    """Sign classification of an adjustment."""

    POSITIVE = "positivo"
    NEGATIVE = "negativo"
    NEUTRAL = "neutro"

    @classmethod
    def of(cls, difference: int) -> AdjustmentKind:
        if difference > 0:
            return cls.POSITIVE
        if difference < 0:
            return cls.NEGATIVE
        return cls.NEUTRAL


class SourceDocumentType(str, Enum):
    """Well-known source document types linked to movements."""

    NOTE = "NOTA"
    DELIVERY = "ENTREGA"
    INVENTORY_COUNT = "INVENTARIO"


@dataclass(frozen=True, slots=True)
class StockKey:
    """Identity of one stock item."""

    warehouse_id: UUID
    equipment_type_id: UUID
    status: StockStatus = StockStatus.AVAILABLE

    def with_status(self, status: StockStatus) -> StockKey:
        return StockKey(self.warehouse_id, self.equipment_type_id, status)


@dataclass(frozen=True, slots=True)
class SourceRef:
    """Link from a movement to the document that caused it."""

    document_type: str
    document_id: str

    def __post_init__(self) -> None:
        if not self.document_type or not self.document_id:
            raise ValueError("SourceRef requires document_type and document_id")
        object.__setattr__(self, "document_type", _code(self.document_type))
        object.__setattr__(self, "document_id", _code(self.document_id))


def _code(value) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)
