"""
Module: stock_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for ledger
    columns.  Centralizes precision so that every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Quantities are whole units (integers); PPE is never split.
    - Unit costs are Decimal with 4 decimal places; estimated financial
      impacts are rounded through round_money() only.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Integer, Numeric, String

# Signed stock quantity (may be negative when the negative-stock policy allows)
Quantity = Annotated[int, Integer]

# Unit cost of one piece of equipment
UnitCost = Annotated[Decimal, Numeric(18, 4)]

# Monotonic ledger sequence number
Sequence = Annotated[int, BigInteger]

# Short identifier strings (status, movement type codes)
ShortCode = Annotated[str, String(50)]

# Free text notes
LongText = Annotated[str, String(2000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only sanctioned rounding function for the financial
    estimates the kernel reports (adjustment impact, inventory impact).
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
