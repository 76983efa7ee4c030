"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (note completion, deliveries, returns, the REST layer)
must react to failures precisely.  Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        adjustments.apply_direct_adjustment(...)
    except ForcedAdjustmentsDisabledError as e:
        api_response(code=e.code)
    except ValidationError as e:
        api_response(code=e.code, field=e.field)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockLedgerError (base)
    |
    +-- ValidationError
    |
    +-- BusinessError
    |   +-- ForcedAdjustmentsDisabledError
    |   +-- InsufficientStockError
    |   +-- ReversalError
    |       +-- MovementAlreadyReversedError
    |       +-- ReversalOfReversalError
    |       +-- UnsupportedReversalError
    |       +-- InterveningMovementsError
    |       +-- SourceDocumentNotReversibleError
    |
    +-- NotFoundError
    |   +-- MovementNotFoundError
    |   +-- StockItemNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                           | When Raised
-------------|--------------------------------|------------------------------------
Validation   | VALIDATION_ERROR               | Malformed input (empty reason, ...)
-------------|--------------------------------|------------------------------------
Business     | BUSINESS_RULE_VIOLATION        | Generic rule violation
             | FORCED_ADJUSTMENTS_DISABLED    | Direct adjustments switched off
             | INSUFFICIENT_STOCK             | Balance would go negative
             | MOVEMENT_ALREADY_REVERSED      | Second reversal of a movement
             | REVERSAL_OF_REVERSAL           | Reversing an ESTORNO movement
             | UNSUPPORTED_REVERSAL           | No reversal rule for the type
             | INTERVENING_MOVEMENTS          | Adjustment row changed since
             | SOURCE_DOCUMENT_NOT_REVERSIBLE | Document has nothing to reverse
-------------|--------------------------------|------------------------------------
Not found    | MOVEMENT_NOT_FOUND             | Unknown movement id
             | STOCK_ITEM_NOT_FOUND           | Unknown stock key
-------------|--------------------------------|------------------------------------
Immutability | IMMUTABILITY_VIOLATION         | UPDATE/DELETE of a ledger row

===============================================================================
DESIGN DECISIONS
===============================================================================

1. No exception is retried by the kernel.  Stock mutations are not safe to
   replay blindly; the only recovery is the rollback of the whole operation.

2. ValidationError and NotFoundError are NOT BusinessError subclasses.  The
   presentation layer maps them to different responses (400 / 404 / 422).

===============================================================================
"""


class StockLedgerError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_LEDGER_ERROR"


# Validation


class ValidationError(StockLedgerError):
    """Malformed input to a ledger operation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Business rules


class BusinessError(StockLedgerError):
    """A rule violation given otherwise well-formed input."""

    code: str = "BUSINESS_RULE_VIOLATION"


class ForcedAdjustmentsDisabledError(BusinessError):
    """Direct stock adjustments are switched off in the system settings."""

    code: str = "FORCED_ADJUSTMENTS_DISABLED"

    def __init__(self):
        super().__init__("Direct inventory adjustments are disabled in the system")


class InsufficientStockError(BusinessError):
    """Decreasing the stock would leave a negative balance."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        warehouse_id: str,
        equipment_type_id: str,
        status: str,
        available: int,
        requested: int,
    ):
        self.warehouse_id = warehouse_id
        self.equipment_type_id = equipment_type_id
        self.status = status
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {equipment_type_id} in warehouse "
            f"{warehouse_id} ({status}): available={available}, requested={requested}"
        )


# Reversal-related exceptions


class ReversalError(BusinessError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class MovementAlreadyReversedError(ReversalError):
    """Movement has already been reversed."""

    code: str = "MOVEMENT_ALREADY_REVERSED"

    def __init__(self, movement_id: str, reversal_id: str | None = None):
        self.movement_id = movement_id
        self.reversal_id = reversal_id
        super().__init__(f"Movement {movement_id} has already been reversed")


class ReversalOfReversalError(ReversalError):
    """A reversal movement cannot itself be reversed."""

    code: str = "REVERSAL_OF_REVERSAL"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(
            f"Movement {movement_id} is a reversal and cannot be reversed"
        )


class UnsupportedReversalError(ReversalError):
    """No reversal rule exists for the original movement type."""

    code: str = "UNSUPPORTED_REVERSAL"

    def __init__(self, movement_id: str, movement_type: str):
        self.movement_id = movement_id
        self.movement_type = movement_type
        super().__init__(
            f"Movement type not supported for reversal: {movement_type}"
        )


class InterveningMovementsError(ReversalError):
    """
    An adjustment cannot be restored because its row moved afterwards.

    Adjustment reversals restore the original balance_before directly.  That
    is only correct while no other movement touched the row in between.
    """

    code: str = "INTERVENING_MOVEMENTS"

    def __init__(self, movement_id: str, intervening_count: int):
        self.movement_id = movement_id
        self.intervening_count = intervening_count
        super().__init__(
            f"Adjustment {movement_id} cannot be reversed: "
            f"{intervening_count} later movement(s) changed the same stock item"
        )


class SourceDocumentNotReversibleError(ReversalError):
    """A source document has no movements that can be reversed."""

    code: str = "SOURCE_DOCUMENT_NOT_REVERSIBLE"

    def __init__(self, source_type: str, source_id: str, reason: str):
        self.source_type = source_type
        self.source_id = source_id
        self.reason = reason
        super().__init__(
            f"Document {source_type} {source_id} cannot be reversed: {reason}"
        )


# Lookup failures


class NotFoundError(StockLedgerError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class MovementNotFoundError(NotFoundError):
    """Movement with given ID was not found."""

    code: str = "MOVEMENT_NOT_FOUND"

    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Movement not found: {movement_id}")


class StockItemNotFoundError(NotFoundError):
    """No stock item exists for the given key."""

    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, warehouse_id: str, equipment_type_id: str, status: str):
        self.warehouse_id = warehouse_id
        self.equipment_type_id = equipment_type_id
        self.status = status
        super().__init__(
            f"Stock item not found: warehouse={warehouse_id}, "
            f"equipment_type={equipment_type_id}, status={status}"
        )


# Immutability-related exceptions


class ImmutabilityError(StockLedgerError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Movements are append-only; stock items are never deleted and change
    quantity only alongside a ledger movement.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
