"""
Module: escrow_kernel.selectors.earnings_selector
Responsibility: A supplier's accepted work totalled by disbursement status.

Totals are settlement prices of accepted bids, matching what the operator
disburses.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from escrow_kernel.domain.types import EarningsSummary
from escrow_kernel.models.bid import BidModel, BidStatus
from escrow_kernel.selectors.base import BaseSelector, _value


class EarningsSelector(BaseSelector[BidModel]):
    def for_supplier(self, supplier_id: UUID) -> EarningsSummary:
        rows = self.session.execute(
            select(
                BidModel.disbursement_status,
                func.count(BidModel.id),
                func.sum(BidModel.settlement_price),
            )
            .where(
                BidModel.supplier_id == supplier_id,
                BidModel.status == BidStatus.ACCEPTED,
            )
            .group_by(BidModel.disbursement_status)
        ).all()

        totals: dict[str, Decimal] = {}
        counts: dict[str, int] = {}
        for status, count, total in rows:
            key = _value(status)
            counts[key] = int(count)
            totals[key] = Decimal(str(total)) if total is not None else Decimal("0")
        return EarningsSummary(supplier_id=supplier_id, totals=totals, counts=counts)
