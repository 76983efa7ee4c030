"""
ORM-level enforcement of the append-only stock ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

A stock balance is only trustworthy if every unit that entered or left a
warehouse can be traced to a movement.  Services keep that promise, but a
stray ``item.quantity = 5`` anywhere in application code would silently
break it.  These listeners catch such writes before SQL reaches the database.

    session.flush()
         |
         v
    [before_flush] --> _check_stock_quantity_changes() --> ImmutabilityViolationError
         |
         v
    [before_update / before_delete] --> _check_*() ------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|---------------------------------------------------------------
StockMovement   | Never updated, never deleted
StockItem       | Never deleted; quantity changes need a matching new movement

A "matching" movement is a StockMovement pending INSERT in the same flush
that references the item and whose balance_after equals the item's new
quantity.

===============================================================================
USAGE
===============================================================================

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from stock_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_movement_update(mapper, connection, target):
    """Movements are append-only."""
    from stock_kernel.models.movement import StockMovement

    if not isinstance(target, StockMovement):
        return

    _blocked(
        "StockMovement",
        target.id,
        "UPDATE",
        "Stock movements are immutable and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    from stock_kernel.models.movement import StockMovement

    if not isinstance(target, StockMovement):
        return

    _blocked(
        "StockMovement",
        target.id,
        "DELETE",
        "Stock movements cannot be deleted",
    )


def _check_stock_item_delete(mapper, connection, target):
    from stock_kernel.models.stock_item import StockItem

    if not isinstance(target, StockItem):
        return

    _blocked(
        "StockItem",
        target.id,
        "DELETE",
        "Stock items are never deleted",
    )


def _pending_balances(session) -> dict:
    """Map stock item identity -> balance_after values of movements pending INSERT."""
    from stock_kernel.models.movement import StockMovement

    balances: dict = {}
    for obj in session.new:
        if not isinstance(obj, StockMovement):
            continue
        if obj.stock_item is not None:
            balances.setdefault(id(obj.stock_item), set()).add(obj.balance_after)
        if obj.stock_item_id is not None:
            balances.setdefault(obj.stock_item_id, set()).add(obj.balance_after)
    return balances


def _has_matching_movement(balances: dict, item, quantity: int) -> bool:
    for key in (id(item), item.id):
        if key is not None and quantity in balances.get(key, ()):
            return True
    return False


def _check_stock_quantity_changes(session, flush_context, instances):
    """
    Reject quantity changes that are not accompanied by a ledger movement.

    Runs in SessionEvents.before_flush so that pending inserts and pending
    updates are visible together.
    """
    from stock_kernel.models.stock_item import StockItem

    balances = None

    for obj in list(session.new):
        if not isinstance(obj, StockItem) or not obj.quantity:
            continue
        if balances is None:
            balances = _pending_balances(session)
        if not _has_matching_movement(balances, obj, obj.quantity):
            _blocked(
                "StockItem",
                obj.id,
                "INSERT",
                "A stock item can only start with a non-zero quantity "
                "through a stock movement",
            )

    for obj in list(session.dirty):
        if not isinstance(obj, StockItem):
            continue
        if not inspect(obj).persistent:
            continue
        history = get_history(obj, "quantity")
        if not history.has_changes():
            continue
        if balances is None:
            balances = _pending_balances(session)
        if not _has_matching_movement(balances, obj, obj.quantity):
            _blocked(
                "StockItem",
                obj.id,
                "UPDATE",
                "Stock quantity can only change through a stock movement",
            )


def register_immutability_listeners():
    """
    Register all ledger enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Calling it twice is harmless.
    """
    from stock_kernel.models.movement import StockMovement
    from stock_kernel.models.stock_item import StockItem

    _safe_add_listener(Session, "before_flush", _check_stock_quantity_changes)

    _safe_add_listener(StockMovement, "before_update", _check_movement_update)
    _safe_add_listener(StockMovement, "before_delete", _check_movement_delete)

    _safe_add_listener(StockItem, "before_delete", _check_stock_item_delete)


def unregister_immutability_listeners():
    """
    Remove ledger enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate the rules to verify detection.
    """
    from stock_kernel.models.movement import StockMovement
    from stock_kernel.models.stock_item import StockItem

    _safe_remove_listener(Session, "before_flush", _check_stock_quantity_changes)

    _safe_remove_listener(StockMovement, "before_update", _check_movement_update)
    _safe_remove_listener(StockMovement, "before_delete", _check_movement_delete)

    _safe_remove_listener(StockItem, "before_delete", _check_stock_item_delete)


def _safe_add_listener(target, event_name, listener_fn):
    if not event.contains(target, event_name, listener_fn):
        event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)
