"""
Module: escrow_kernel.models.bid
Responsibility: ORM persistence for supplier bids and their payment state.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one ``accepted`` bid per quotation (award engine CAS on the
      quotation row).
    - settlement_price is set iff status is ``accepted``.
    - payment_status only moves pending -> in_escrow -> completed, and
      disbursement_status only pending -> disbursed; each move is a
      compare-and-swap UPDATE guarded on the previous value.
    - Bids are never physically deleted (ORM listener).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escrow_kernel.db.base import TrackedBase, UUIDString


class BidStatus(str, Enum):
    """Award outcome of a bid."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    """Where the requester's money is."""

    PENDING = "pending"
    IN_ESCROW = "in_escrow"
    COMPLETED = "completed"


class DisbursementStatus(str, Enum):
    """Whether the supplier has been paid out."""

    PENDING = "pending"
    DISBURSED = "disbursed"


class BidModel(TrackedBase):
    """
    A supplier's priced offer on a quotation.

    Guarantees:
        - bid_price is the supplier's own quote and never changes.
        - settlement_price = bid_price * (1 + commission / 100), written once
          on acceptance.
    """

    __tablename__ = "bids"

    __table_args__ = (
        Index("idx_bid_quotation_status", "quotation_id", "status"),
        Index("idx_bid_payment_release", "payment_status", "escrow_release_at"),
        Index("idx_bid_supplier", "supplier_id"),
    )

    quotation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("quotations.id"),
        nullable=False,
    )

    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    supplier_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    bid_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    settlement_price: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    status: Mapped[BidStatus] = mapped_column(
        String(10),
        default=BidStatus.PENDING,
        nullable=False,
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(10),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    disbursement_status: Mapped[DisbursementStatus] = mapped_column(
        String(10),
        default=DisbursementStatus.PENDING,
        nullable=False,
    )

    escrow_release_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # External payment processor reference (payment intent)
    payment_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    captured_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    disbursed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    quotation: Mapped["QuotationModel"] = relationship(  # noqa: F821
        "QuotationModel",
        lazy="select",
    )

    def __repr__(self) -> str:
        return (
            f"<Bid {self.id} status={self.status} "
            f"payment={self.payment_status} disbursement={self.disbursement_status}>"
        )

    @property
    def is_accepted(self) -> bool:
        return self.status == BidStatus.ACCEPTED
