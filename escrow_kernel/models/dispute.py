"""
Module: escrow_kernel.models.dispute
Responsibility: ORM persistence for disputes raised against an awarded bid.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one dispute per bid (unique constraint on bid_id).
    - status only moves forward: pending -> under_review -> resolved.
    - Disputes are advisory: nothing in the settlement path reads them as
      a gate.  Never deleted.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from escrow_kernel.db.base import TrackedBase, UUIDString


class DisputeStatus(str, Enum):
    """Dispute review status, in lifecycle order."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"

    @property
    def rank(self) -> int:
        return _DISPUTE_ORDER.index(self)


_DISPUTE_ORDER = (
    DisputeStatus.PENDING,
    DisputeStatus.UNDER_REVIEW,
    DisputeStatus.RESOLVED,
)


class DisputeModel(TrackedBase):
    """A requester's complaint about delivered work."""

    __tablename__ = "disputes"

    __table_args__ = (
        UniqueConstraint("bid_id", name="uq_dispute_bid"),
        Index("idx_dispute_status", "status"),
    )

    bid_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bids.id"),
        nullable=False,
    )

    filer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    # The counterparty the dispute is raised against
    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    detail: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Opaque evidence references (uploaded file keys, URLs)
    evidence: Mapped[list | None] = mapped_column(
        JSON,
        nullable=True,
    )

    status: Mapped[DisputeStatus] = mapped_column(
        String(15),
        default=DisputeStatus.PENDING,
        nullable=False,
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_open(self) -> bool:
        return self.status != DisputeStatus.RESOLVED

    def __repr__(self) -> str:
        return f"<Dispute {self.id} bid={self.bid_id} status={self.status}>"
