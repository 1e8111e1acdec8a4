"""
ORM-Level Immutability and Quantity Guards.

===============================================================================
WHAT IS PROTECTED
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here intercept them:

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         +--> _check_*() --> ImmutabilityViolationError / QuantityMutationError
         |
         v
    SQL sent to database (only if checks pass)

Entity                 | Rule
-----------------------|----------------------------------------------------
InventoryTransaction   | Frozen after insert; only the reversal marker may
                       | change (status posted->reversed, reversed_by_id,
                       | reversed_at, reversed_by_actor_id).  Never deleted.
TransactionLine        | ALWAYS frozen, never deleted.
ChemicalAudit          | ALWAYS frozen, never deleted.
Item.qty_on_hand       | Changes only while a ledger posting is active on the
ItemLot.quantity       | session (session.info[POSTING_ACTIVE_KEY]).

Row metadata (updated_at) may change on any record.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

The LedgerWriter opens the posting window with ``posting_window(session)``.

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Generator

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import (
    ImmutabilityViolationError,
    QuantityMutationError,
)
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

POSTING_ACTIVE_KEY = "ledger_posting_active"

_ROW_METADATA_FIELDS = frozenset({"updated_at"})

_REVERSAL_MARKER_FIELDS = frozenset({
    "status",
    "reversed_by_id",
    "reversed_at",
    "reversed_by_actor_id",
})

_registered = False


@contextmanager
def posting_window(session: Session) -> Generator[Session, None, None]:
    """Allow quantity mutations on ``session`` for the duration of the block."""
    previous = session.info.get(POSTING_ACTIVE_KEY, False)
    session.info[POSTING_ACTIVE_KEY] = True
    try:
        yield session
    finally:
        session.info[POSTING_ACTIVE_KEY] = previous


def _changed_fields(target) -> set[str]:
    state = inspect(target)
    changed = set()
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.add(attr.key)
    return changed


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


def _check_transaction_update(mapper, connection, target):
    """Only the reversal marker may change on a posted transaction."""
    from sqlalchemy.orm.attributes import get_history

    from inventory_kernel.models.transaction import TxnStatus

    changed = _changed_fields(target) - _ROW_METADATA_FIELDS
    forbidden = changed - _REVERSAL_MARKER_FIELDS
    if forbidden:
        _block(
            "InventoryTransaction",
            target,
            "UPDATE",
            f"Posted transactions are immutable (attempted: {', '.join(sorted(forbidden))})",
        )

    if "status" in changed:
        history = get_history(target, "status")
        old = history.deleted[0] if history.deleted else None
        new = history.added[0] if history.added else None
        if old != TxnStatus.POSTED.value or new != TxnStatus.REVERSED.value:
            _block(
                "InventoryTransaction",
                target,
                "UPDATE",
                f"Illegal status transition {old} -> {new}",
            )


def _check_transaction_delete(mapper, connection, target):
    _block("InventoryTransaction", target, "DELETE", "Transactions cannot be deleted")


def _check_line_update(mapper, connection, target):
    if _changed_fields(target) - _ROW_METADATA_FIELDS:
        _block("TransactionLine", target, "UPDATE", "Transaction lines are immutable")


def _check_line_delete(mapper, connection, target):
    _block("TransactionLine", target, "DELETE", "Transaction lines cannot be deleted")


def _check_chemical_audit_update(mapper, connection, target):
    if _changed_fields(target) - _ROW_METADATA_FIELDS:
        _block("ChemicalAudit", target, "UPDATE", "Chemical audit entries are immutable")


def _check_chemical_audit_delete(mapper, connection, target):
    _block("ChemicalAudit", target, "DELETE", "Chemical audit entries cannot be deleted")


# ---------------------------------------------------------------------------
# Quantity guard
# ---------------------------------------------------------------------------


def _posting_active(target) -> bool:
    session = Session.object_session(target)
    return bool(session is not None and session.info.get(POSTING_ACTIVE_KEY))


def _raise_quantity_mutation(entity_type: str, target, field: str) -> None:
    logger.error(
        "quantity_mutation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "field": field,
        },
    )
    raise QuantityMutationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        field=field,
    )


def _quantity_guard(entity_type: str, field: str):
    def _on_insert(mapper, connection, target):
        value = getattr(target, field)
        if value is not None and Decimal(value) != 0 and not _posting_active(target):
            _raise_quantity_mutation(entity_type, target, field)

    def _on_update(mapper, connection, target):
        if field in _changed_fields(target) and not _posting_active(target):
            _raise_quantity_mutation(entity_type, target, field)

    return _on_insert, _on_update


_item_insert, _item_update = _quantity_guard("Item", "qty_on_hand")
_lot_insert, _lot_update = _quantity_guard("ItemLot", "quantity")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listener_table():
    from inventory_kernel.models.chemical_audit import ChemicalAudit
    from inventory_kernel.models.item import Item, ItemLot
    from inventory_kernel.models.transaction import InventoryTransaction, TransactionLine

    return [
        (InventoryTransaction, "before_update", _check_transaction_update),
        (InventoryTransaction, "before_delete", _check_transaction_delete),
        (TransactionLine, "before_update", _check_line_update),
        (TransactionLine, "before_delete", _check_line_delete),
        (ChemicalAudit, "before_update", _check_chemical_audit_update),
        (ChemicalAudit, "before_delete", _check_chemical_audit_delete),
        (Item, "before_insert", _item_insert),
        (Item, "before_update", _item_update),
        (ItemLot, "before_insert", _lot_insert),
        (ItemLot, "before_update", _lot_update),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability and quantity listeners (idempotent)."""
    global _registered
    if _registered:
        return
    for target, identifier, fn in _listener_table():
        event.listen(target, identifier, fn)
    _registered = True
    logger.info("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all listeners. FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return
    for target, identifier, fn in _listener_table():
        if event.contains(target, identifier, fn):
            event.remove(target, identifier, fn)
    _registered = False
