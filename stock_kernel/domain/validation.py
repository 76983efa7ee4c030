"""
Validation -- input checks shared by the ledger entry points.

Every check raises ``ValidationError`` naming the offending field, so the
caller can report it without parsing the message.  ``bool`` is never
accepted where an integer quantity is expected.
"""

from decimal import Decimal
from enum import Enum
from typing import TypeVar

from stock_kernel.domain.values import StockKey, StockStatus
from stock_kernel.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


def is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_int(value, field: str) -> int:
    if not is_int(value):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field)
    return value


def require_positive_int(value, field: str) -> int:
    require_int(value, field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than zero, got {value}", field=field)
    return value


def require_non_negative_int(value, field: str) -> int:
    require_int(value, field)
    if value < 0:
        raise ValidationError(f"{field} cannot be negative, got {value}", field=field)
    return value


def require_text(value, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


def require_present(value, field: str):
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    return value


def coerce_enum(enum_cls: type[E], value, field: str) -> E:
    """Accept a member or its stored code."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field}: {value!r}", field=field
        ) from None


def require_stock_key(warehouse_id, equipment_type_id, status) -> StockKey:
    require_present(warehouse_id, "warehouse_id")
    require_present(equipment_type_id, "equipment_type_id")
    return StockKey(
        warehouse_id,
        equipment_type_id,
        coerce_enum(StockStatus, status, "status"),
    )


def require_unit_cost(value, field: str = "unit_cost") -> Decimal:
    """Non-negative Decimal (or int) cost; floats are rejected."""
    if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
        raise ValidationError(
            f"{field} must be a Decimal, got {value!r}", field=field
        )
    cost = Decimal(value)
    if not cost.is_finite() or cost < 0:
        raise ValidationError(
            f"{field} must be a non-negative amount, got {value}", field=field
        )
    return cost
