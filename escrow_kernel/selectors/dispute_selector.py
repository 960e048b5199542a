"""
Module: escrow_kernel.selectors.dispute_selector
Responsibility: Read-only access to disputes.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from escrow_kernel.models.dispute import DisputeModel, DisputeStatus
from escrow_kernel.selectors.base import BaseSelector, _value


@dataclass
class DisputeDTO:
    """Data transfer object for a dispute."""

    id: UUID
    bid_id: UUID
    filer_id: UUID
    supplier_id: UUID
    reason: str
    detail: str
    evidence: list
    status: str
    created_at: datetime
    resolved_at: datetime | None

    @property
    def is_open(self) -> bool:
        return self.status != DisputeStatus.RESOLVED.value


class DisputeSelector(BaseSelector[DisputeModel]):
    def _to_dto(self, d: DisputeModel) -> DisputeDTO:
        return DisputeDTO(
            id=d.id,
            bid_id=d.bid_id,
            filer_id=d.filer_id,
            supplier_id=d.supplier_id,
            reason=d.reason,
            detail=d.detail,
            evidence=list(d.evidence or []),
            status=_value(d.status),
            created_at=d.created_at,
            resolved_at=d.resolved_at,
        )

    def get(self, dispute_id: UUID) -> DisputeDTO | None:
        d = self.session.get(DisputeModel, dispute_id, populate_existing=True)
        return self._to_dto(d) if d is not None else None

    def for_bid(self, bid_id: UUID) -> DisputeDTO | None:
        d = self.session.execute(
            select(DisputeModel)
            .where(DisputeModel.bid_id == bid_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._to_dto(d) if d is not None else None

    def open_disputes(self) -> list[DisputeDTO]:
        rows = self.session.execute(
            select(DisputeModel)
            .where(DisputeModel.status != DisputeStatus.RESOLVED)
            .order_by(DisputeModel.created_at, DisputeModel.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [self._to_dto(d) for d in rows]
