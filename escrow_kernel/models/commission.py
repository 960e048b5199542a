"""
Module: escrow_kernel.models.commission
Responsibility: ORM persistence for the platform commission taken on an award.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Exactly one record per accepted bid and per quotation (unique
      constraints), inserted in the same transaction as the acceptance.
    - Append-only: UPDATE and DELETE are rejected by ORM listeners.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from escrow_kernel.db.base import TrackedBase, UUIDString


class AwardMode(str, Enum):
    """How the winning bid was chosen."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class CommissionRecord(TrackedBase):
    """The commission snapshot written when a bid is accepted."""

    __tablename__ = "commission_records"

    __table_args__ = (
        UniqueConstraint("bid_id", name="uq_commission_bid"),
        UniqueConstraint("quotation_id", name="uq_commission_quotation"),
    )

    bid_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bids.id"),
        nullable=False,
    )

    quotation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("quotations.id"),
        nullable=False,
    )

    commission_percent: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    bid_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    settlement_price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    award_mode: Mapped[AwardMode] = mapped_column(
        String(10),
        nullable=False,
    )

    @property
    def commission_amount(self) -> Decimal:
        return self.settlement_price - self.bid_price

    def __repr__(self) -> str:
        return f"<CommissionRecord bid={self.bid_id} {self.commission_percent}%>"
