"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Three kinds of record must never change once written:

  - Status history is a ledger of what happened.  It is append-only.
  - A converted quotation is the contract an order was built from.
  - Line items are price snapshots.  Re-deriving them later would silently
    change what the customer agreed to.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised, the flush aborts and
the surrounding transaction must be rolled back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable                 | Allowed changes
---------------------|--------------------------------|------------------------
StatusHistoryModel   | ALWAYS                         | none
DocumentItemModel    | ALWAYS (snapshot)              | none
DocumentModel        | quotation with status          | updated_at only
                     | 'converted'                    |
DocumentModel        | orders and converted           | no DELETE
                     | quotations                     |

These listeners only see changes made through the ORM unit of work.  Bulk
``update()`` statements bypass them; the kernel never issues those against
protected tables.

===============================================================================
USAGE
===============================================================================

    register_immutability_listeners()    # Called once at startup

    # In tests that need to bypass (rare):
    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from quote_kernel.exceptions import ImmutabilityViolationError
from quote_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_CONVERTED = "converted"
_QUOTATION = "quotation"
_AUDIT_FIELDS = frozenset({"updated_at"})


def _block(entity_type: str, entity_id: object, operation: str, reason: str) -> None:
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


def _check_status_history_update(mapper, connection, target):
    _block(
        "StatusHistory", target.id, "UPDATE",
        "Status history is append-only",
    )


def _check_status_history_delete(mapper, connection, target):
    _block(
        "StatusHistory", target.id, "DELETE",
        "Status history is append-only",
    )


def _check_document_item_update(mapper, connection, target):
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS or attr.key == "document":
            continue
        if attr.history.has_changes():
            _block(
                "DocumentItem", target.id, "UPDATE",
                f"Cannot modify field '{attr.key}' on a line item snapshot",
            )


def _check_document_item_delete(mapper, connection, target):
    _block(
        "DocumentItem", target.id, "DELETE",
        "Line item snapshots cannot be deleted",
    )


def _was_converted_quotation(target) -> bool:
    """
    True if the row was already a converted quotation before this flush.

    The approved -> converted flip itself is allowed: it is the conversion.
    """
    if target.kind != _QUOTATION:
        return False
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0] == _CONVERTED
    return target.status == _CONVERTED


def _check_document_update(mapper, connection, target):
    if not _was_converted_quotation(target):
        return
    insp = inspect(target)
    for attr in insp.attrs:
        if attr.key in _AUDIT_FIELDS or attr.key == "items":
            continue
        if attr.history.has_changes():
            _block(
                "Document", target.id, "UPDATE",
                f"Cannot modify field '{attr.key}' on converted quotation {target.folio}",
            )


def _check_document_delete(mapper, connection, target):
    if target.kind != _QUOTATION:
        _block(
            "Document", target.id, "DELETE",
            f"Orders cannot be deleted ({target.folio})",
        )
    if _was_converted_quotation(target):
        _block(
            "Document", target.id, "DELETE",
            f"Converted quotation {target.folio} cannot be deleted",
        )


_LISTENERS = (
    ("StatusHistoryModel", "before_update", _check_status_history_update),
    ("StatusHistoryModel", "before_delete", _check_status_history_delete),
    ("DocumentItemModel", "before_update", _check_document_item_update),
    ("DocumentItemModel", "before_delete", _check_document_item_delete),
    ("DocumentModel", "before_update", _check_document_update),
    ("DocumentModel", "before_delete", _check_document_delete),
)


def _models() -> dict[str, type]:
    from quote_kernel.models.document import DocumentItemModel, DocumentModel
    from quote_kernel.models.status_history import StatusHistoryModel

    return {
        "DocumentModel": DocumentModel,
        "DocumentItemModel": DocumentItemModel,
        "StatusHistoryModel": StatusHistoryModel,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Call after all models are imported but before any database operations
    begin.  Safe to call more than once.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
