"""
Module: escrow_kernel.models.quotation
Responsibility: ORM persistence for quotations, the jobs suppliers bid on.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status only moves forward: open -> awarded, or open -> closed.
      The move away from ``open`` is a compare-and-swap performed by the
      award engine; at most one caller ever wins it.
    - Quotations are never physically deleted (ORM listener).

Failure modes:
    - ImmutabilityViolationError on DELETE.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from escrow_kernel.db.base import TrackedBase, UUIDString


class QuotationCategory(str, Enum):
    """Service category of a quotation.

    One tagged enum for every category; behaviour never branches on it.
    """

    COMPANY_RELOCATION = "company_relocation"
    MOVE_OUT_CLEANING = "move_out_cleaning"
    STORAGE = "storage"
    HEAVY_LIFTING = "heavy_lifting"
    CARRYING_ASSISTANCE = "carrying_assistance"
    JUNK_REMOVAL = "junk_removal"
    ESTATE_CLEARANCE = "estate_clearance"
    EVACUATION_MOVE = "evacuation_move"
    PRIVACY_MOVE = "privacy_move"
    MOVING_SERVICE = "moving_service"


class QuotationStatus(str, Enum):
    """Lifecycle status of a quotation."""

    OPEN = "open"
    AWARDED = "awarded"
    CLOSED = "closed"


class QuotationModel(TrackedBase):
    """
    A customer's request for bids.

    Contract:
        ``created_at`` is set from the injected clock at registration and
        anchors the automatic auction window.
    """

    __tablename__ = "quotations"

    __table_args__ = (
        Index("idx_quotation_status_created", "status", "created_at"),
        Index("idx_quotation_requester", "requester_id"),
    )

    category: Mapped[QuotationCategory] = mapped_column(
        String(30),
        nullable=False,
    )

    requester_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    requester_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    status: Mapped[QuotationStatus] = mapped_column(
        String(10),
        default=QuotationStatus.OPEN,
        nullable=False,
    )

    awarded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Intake form payload; opaque to the engine
    details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Quotation {self.id} {self.category} status={self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == QuotationStatus.OPEN
