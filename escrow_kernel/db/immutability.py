"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Money that has moved must leave a trail that nobody can quietly rewrite.
The commission taken on an award and the audit trail of every transition
are append-only; quotations, bids and disputes change status but are never
physically deleted.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_update() --> ImmutabilityViolationError
         |                                                   ^
         v                                                   |
    [before_delete event] --> _check_*_delete() ------------+
         |
         v
    SQL sent to database (only if checks pass)

These listeners see ORM flushes only.  Status transitions are written as
guarded Core UPDATE statements by the services and are not affected.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|--------------------------------------------------------
CommissionRecord    | No UPDATE, no DELETE
AuditEvent          | No UPDATE, no DELETE
BidModel            | No DELETE; bid_price frozen after insert
QuotationModel      | No DELETE
DisputeModel        | No DELETE

===============================================================================
USAGE
===============================================================================

    from escrow_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from escrow_kernel.exceptions import ImmutabilityViolationError
from escrow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_commission_update(mapper, connection, target):
    _block(
        "CommissionRecord",
        target,
        "UPDATE",
        "Commission records are immutable and cannot be modified",
    )


def _check_commission_delete(mapper, connection, target):
    _block(
        "CommissionRecord",
        target,
        "DELETE",
        "Commission records cannot be deleted",
    )


def _check_audit_event_update(mapper, connection, target):
    _block(
        "AuditEvent",
        target,
        "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target, "DELETE", "Audit events cannot be deleted")


def _check_bid_update(mapper, connection, target):
    """The supplier's quoted price is frozen once the bid exists."""
    history = get_history(target, "bid_price")
    if history.deleted and history.added and history.deleted[0] != history.added[0]:
        _block("Bid", target, "UPDATE", "Quoted bid price cannot be changed")


def _check_bid_delete(mapper, connection, target):
    _block("Bid", target, "DELETE", "Bids are never deleted")


def _check_quotation_delete(mapper, connection, target):
    _block("Quotation", target, "DELETE", "Quotations are never deleted")


def _check_dispute_delete(mapper, connection, target):
    _block("Dispute", target, "DELETE", "Disputes are never deleted")


def _listeners():
    from escrow_kernel.models.audit_event import AuditEvent
    from escrow_kernel.models.bid import BidModel
    from escrow_kernel.models.commission import CommissionRecord
    from escrow_kernel.models.dispute import DisputeModel
    from escrow_kernel.models.quotation import QuotationModel

    return (
        (CommissionRecord, "before_update", _check_commission_update),
        (CommissionRecord, "before_delete", _check_commission_delete),
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (BidModel, "before_update", _check_bid_update),
        (BidModel, "before_delete", _check_bid_delete),
        (QuotationModel, "before_delete", _check_quotation_delete),
        (DisputeModel, "before_delete", _check_dispute_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
