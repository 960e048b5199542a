"""
Module: escrow_kernel.selectors.quotation_selector
Responsibility: Read-only access to quotations, including the auction
    closer's work list.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select

from escrow_kernel.models.quotation import QuotationModel, QuotationStatus
from escrow_kernel.selectors.base import BaseSelector, _value


@dataclass
class QuotationDTO:
    """Data transfer object for a quotation."""

    id: UUID
    category: str
    requester_id: UUID
    requester_email: str | None
    status: str
    created_at: datetime
    awarded_at: datetime | None
    closed_at: datetime | None
    details: dict | None


class QuotationSelector(BaseSelector[QuotationModel]):
    def _to_dto(self, q: QuotationModel) -> QuotationDTO:
        return QuotationDTO(
            id=q.id,
            category=_value(q.category),
            requester_id=q.requester_id,
            requester_email=q.requester_email,
            status=_value(q.status),
            created_at=q.created_at,
            awarded_at=q.awarded_at,
            closed_at=q.closed_at,
            details=q.details,
        )

    def get(self, quotation_id: UUID) -> QuotationDTO | None:
        q = self.session.get(QuotationModel, quotation_id, populate_existing=True)
        return self._to_dto(q) if q is not None else None

    def list_by_status(self, status: QuotationStatus) -> list[QuotationDTO]:
        rows = self.session.execute(
            select(QuotationModel)
            .where(QuotationModel.status == status)
            .order_by(QuotationModel.created_at, QuotationModel.id)
        ).scalars().all()
        return [self._to_dto(q) for q in rows]

    def expired_open_ids(self, as_of: datetime, window: timedelta) -> list[UUID]:
        """Open quotations whose auction window has elapsed by ``as_of``, oldest first."""
        return list(
            self.session.execute(
                select(QuotationModel.id)
                .where(
                    QuotationModel.status == QuotationStatus.OPEN,
                    QuotationModel.created_at <= as_of - window,
                )
                .order_by(QuotationModel.created_at, QuotationModel.id)
            ).scalars()
        )
