"""
Module: escrow_kernel.models.audit_event
Responsibility: Append-only record of every lifecycle transition.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listener).
    - Written in the same transaction as the transition it describes, so a
      rolled-back transition leaves no audit row behind.

Minimum coverage (each action type generates at least one row):
    - BID_SUBMITTED, BID_ACCEPTED, BID_REJECTED
    - QUOTATION_REGISTERED, QUOTATION_AWARDED, QUOTATION_CLOSED
    - PAYMENT_CAPTURED, ESCROW_RELEASED, FUNDS_DISBURSED
    - DISPUTE_FILED, DISPUTE_STATUS_CHANGED
    - SETTINGS_CHANGED
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from escrow_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    QUOTATION_REGISTERED = "quotation_registered"
    QUOTATION_AWARDED = "quotation_awarded"
    QUOTATION_CLOSED = "quotation_closed"

    BID_SUBMITTED = "bid_submitted"
    BID_ACCEPTED = "bid_accepted"
    BID_REJECTED = "bid_rejected"

    PAYMENT_CAPTURED = "payment_captured"
    ESCROW_RELEASED = "escrow_released"
    FUNDS_DISBURSED = "funds_disbursed"

    DISPUTE_FILED = "dispute_filed"
    DISPUTE_STATUS_CHANGED = "dispute_status_changed"

    SETTINGS_CHANGED = "settings_changed"


class AuditEvent(Base):
    """
    One row per state transition.

    Contract:
        Rows are never updated or deleted.  ``actor_id`` is None for
        transitions performed by the scheduler.
    """

    __tablename__ = "escrow_audit_events"

    __table_args__ = (
        Index("idx_escrow_audit_entity", "entity_type", "entity_id"),
        Index("idx_escrow_audit_action", "action"),
        Index("idx_escrow_audit_occurred", "occurred_at"),
    )

    # Type of entity being audited (e.g., "Bid", "Quotation", "Dispute")
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[AuditAction] = mapped_column(
        String(50),
        nullable=False,
    )

    actor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"
