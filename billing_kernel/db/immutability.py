"""
ORM-Level Immutability Enforcement.

An invoice is a customer-facing financial document: once created its amount,
number, and the unit it bills never change (a correction is a new invoice),
and once sent it cannot be deleted.  The billing back-references on
milestones and tasks are write-once for the same reason: ``invoice_id`` is
the single record that a unit has been invoiced.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are emitted:

    session.flush()
         |
         v
    [before_update] --> _check_invoice_immutability()   --> ImmutabilityViolationError
    [before_delete] --> _check_invoice_delete()         --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

A violation aborts the flush; the caller's transaction rolls back.

Protected entities
------------------

Entity     | Frozen                                                        | When
-----------|---------------------------------------------------------------|-------------------
Invoice    | amount, invoice_number, project_id, milestone_id, task_id     | always after insert
Invoice    | status may not return to draft; row may not be deleted        | once sent
Milestone  | invoice_id, billed_at                                         | once set
Task       | invoice_id                                                    | once set

Usage
-----
Called once at application startup (``billing_api.app.create_app``) and by
the test suite:

    from billing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To disable (tests that must stage a forbidden state only):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from billing_kernel.exceptions import ImmutabilityViolationError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

INVOICE_FROZEN_FIELDS = (
    "amount",
    "invoice_number",
    "project_id",
    "milestone_id",
    "task_id",
)


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_from_value(target, field: str) -> bool:
    """True when ``field`` is being changed away from a non-null value."""
    history = get_history(target, field)
    if not history.has_changes():
        return False
    return any(old is not None for old in history.deleted)


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------


def _check_invoice_immutability(mapper, connection, target):
    """Block edits to frozen invoice fields and a sent invoice reverting to draft."""
    for field in INVOICE_FROZEN_FIELDS:
        history = get_history(target, field)
        if history.has_changes() and history.deleted:
            old, new = history.deleted[0], history.added[0] if history.added else None
            if old != new:
                raise _blocked("Invoice", target.id, "UPDATE", f"{field} is immutable")

    status_history = get_history(target, "status")
    if status_history.has_changes() and target.status == "draft":
        if any(old is not None and old != "draft" for old in status_history.deleted):
            raise _blocked("Invoice", target.id, "UPDATE", "a sent invoice cannot return to draft")


def _check_invoice_delete(mapper, connection, target):
    if target.status != "draft" or target.sent_at is not None:
        raise _blocked("Invoice", target.id, "DELETE", "sent invoices cannot be deleted")


# ---------------------------------------------------------------------------
# Billing back-references
# ---------------------------------------------------------------------------


def _check_milestone_billing_link(mapper, connection, target):
    for field in ("invoice_id", "billed_at"):
        if _changed_from_value(target, field):
            raise _blocked("Milestone", target.id, "UPDATE", f"{field} is write-once")


def _check_task_billing_link(mapper, connection, target):
    if _changed_from_value(target, "invoice_id"):
        raise _blocked("Task", target.id, "UPDATE", "invoice_id is write-once")


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after the ORM models are importable and before any writes.
    """
    from billing_modules.invoice.orm import InvoiceModel
    from billing_modules.project.orm import MilestoneModel, TaskModel

    for target, event_name, listener_fn in (
        (InvoiceModel, "before_update", _check_invoice_immutability),
        (InvoiceModel, "before_delete", _check_invoice_delete),
        (MilestoneModel, "before_update", _check_milestone_billing_link),
        (TaskModel, "before_update", _check_task_billing_link),
    ):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to stage a forbidden state.
    """
    from billing_modules.invoice.orm import InvoiceModel
    from billing_modules.project.orm import MilestoneModel, TaskModel

    _safe_remove_listener(InvoiceModel, "before_update", _check_invoice_immutability)
    _safe_remove_listener(InvoiceModel, "before_delete", _check_invoice_delete)
    _safe_remove_listener(MilestoneModel, "before_update", _check_milestone_billing_link)
    _safe_remove_listener(TaskModel, "before_update", _check_task_billing_link)
