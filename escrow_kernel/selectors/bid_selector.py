"""
Module: escrow_kernel.selectors.bid_selector
Responsibility: Read-only access to bids, commission records and the
    escrow release work list.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from escrow_kernel.models.bid import BidModel, PaymentStatus
from escrow_kernel.models.commission import CommissionRecord
from escrow_kernel.selectors.base import BaseSelector, _value


@dataclass
class BidDTO:
    """Data transfer object for a bid."""

    id: UUID
    quotation_id: UUID
    supplier_id: UUID
    bid_price: Decimal
    settlement_price: Decimal | None
    status: str
    payment_status: str
    disbursement_status: str
    escrow_release_at: datetime | None
    payment_reference: str | None
    notes: str | None
    created_at: datetime


@dataclass
class CommissionDTO:
    """Data transfer object for a commission record."""

    id: UUID
    bid_id: UUID
    quotation_id: UUID
    commission_percent: Decimal
    bid_price: Decimal
    settlement_price: Decimal
    award_mode: str
    created_at: datetime


class BidSelector(BaseSelector[BidModel]):
    """
    Selector for bid queries.

    Guarantees:
        - Bids of a quotation are ordered by submission time, then id.
        - ``matured_escrow_ids`` only ever lists bids still ``in_escrow``.
    """

    def _to_dto(self, b: BidModel) -> BidDTO:
        return BidDTO(
            id=b.id,
            quotation_id=b.quotation_id,
            supplier_id=b.supplier_id,
            bid_price=b.bid_price,
            settlement_price=b.settlement_price,
            status=_value(b.status),
            payment_status=_value(b.payment_status),
            disbursement_status=_value(b.disbursement_status),
            escrow_release_at=b.escrow_release_at,
            payment_reference=b.payment_reference,
            notes=b.notes,
            created_at=b.created_at,
        )

    def get(self, bid_id: UUID) -> BidDTO | None:
        b = self.session.get(BidModel, bid_id, populate_existing=True)
        return self._to_dto(b) if b is not None else None

    def for_quotation(self, quotation_id: UUID) -> list[BidDTO]:
        rows = self.session.execute(
            select(BidModel)
            .where(BidModel.quotation_id == quotation_id)
            .order_by(BidModel.created_at, BidModel.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [self._to_dto(b) for b in rows]

    def matured_escrow_ids(self, as_of: datetime) -> list[UUID]:
        """Bids in escrow whose hold ended at or before ``as_of``."""
        return list(
            self.session.execute(
                select(BidModel.id)
                .where(
                    BidModel.payment_status == PaymentStatus.IN_ESCROW,
                    BidModel.escrow_release_at <= as_of,
                )
                .order_by(BidModel.escrow_release_at, BidModel.id)
            ).scalars()
        )

    def commission_for_bid(self, bid_id: UUID) -> CommissionDTO | None:
        r = self.session.execute(
            select(CommissionRecord).where(CommissionRecord.bid_id == bid_id)
        ).scalar_one_or_none()
        if r is None:
            return None
        return CommissionDTO(
            id=r.id,
            bid_id=r.bid_id,
            quotation_id=r.quotation_id,
            commission_percent=r.commission_percent,
            bid_price=r.bid_price,
            settlement_price=r.settlement_price,
            award_mode=_value(r.award_mode),
            created_at=r.created_at,
        )

    def commission_count_for_quotation(self, quotation_id: UUID) -> int:
        return len(
            self.session.execute(
                select(CommissionRecord.id).where(
                    CommissionRecord.quotation_id == quotation_id
                )
            ).all()
        )
