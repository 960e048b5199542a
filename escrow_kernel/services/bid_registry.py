"""
BidRegistry -- accepts supplier bids on open quotations.

Responsibility:
    Validates and records a ``pending`` bid, then tells the operator a new
    bid arrived.

Invariants enforced:
    - A bid is only ever recorded against an ``open`` quotation.  The
      quotation row is share-locked for the insert and its status is read
      again after the insert inside the same transaction, so a bid can
      never land on a quotation that was awarded concurrently.
    - Price validation happens before any store access.
    - One supplier may bid several times on the same quotation.

Failure modes:
    - InvalidPriceError: price missing, non-numeric, <= 0 or finer than the
      money column holds.
    - QuotationNotFoundError: unknown quotation id.
    - QuotationNotOpenError: quotation awarded or closed.
    - PersistenceError: store failure; nothing was recorded.
    Notification failures are logged and never fail the submission.
"""

from uuid import UUID

from sqlalchemy import select

from escrow_kernel.domain.pricing import parse_price
from escrow_kernel.exceptions import QuotationNotFoundError, QuotationNotOpenError
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.bid import BidModel, BidStatus, DisbursementStatus, PaymentStatus
from escrow_kernel.models.quotation import QuotationModel, QuotationStatus
from escrow_kernel.services import messages
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import BaseService, coerce_uuid, status_value
from escrow_kernel.services.notifier import Outbox

logger = get_logger("services.bid_registry")


class BidRegistry(BaseService):
    """
    Service for recording supplier bids.

    Contract:
        ``submit_bid`` returns the id of the new ``pending`` bid.  The price
        must be positive and fit the money column (at most 9 decimal places
        and 29 integer digits).

    Guarantees:
        - No bid is ever recorded on a quotation that is not open.
    """

    def submit_bid(
        self,
        quotation_id: UUID | str,
        supplier_id: UUID,
        price,
        notes: str | None = None,
        supplier_email: str | None = None,
    ) -> UUID:
        """Record a pending bid and return its id."""
        amount = parse_price(price)
        qid = coerce_uuid(quotation_id)
        if qid is None:
            raise QuotationNotFoundError(str(quotation_id))

        with LogContext.bind(quotation_id=qid, actor_id=supplier_id):
            with self._transition("submit_bid"):
                quotation = self.session.execute(
                    select(QuotationModel)
                    .where(QuotationModel.id == qid)
                    .with_for_update(read=True)
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if quotation is None:
                    raise QuotationNotFoundError(str(qid))
                if quotation.status != QuotationStatus.OPEN:
                    raise QuotationNotOpenError(str(qid), status_value(quotation.status))

                bid = BidModel(
                    quotation_id=qid,
                    supplier_id=supplier_id,
                    supplier_email=supplier_email,
                    bid_price=amount,
                    notes=notes,
                    status=BidStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    disbursement_status=DisbursementStatus.PENDING,
                    created_at=self.clock.now(),
                    created_by_id=supplier_id,
                )
                self.session.add(bid)
                self.session.flush()

                # The award may have committed between the read and the insert
                status = self.session.execute(
                    select(QuotationModel.status).where(QuotationModel.id == qid)
                ).scalar_one()
                if status != QuotationStatus.OPEN:
                    raise QuotationNotOpenError(str(qid), status_value(status))

                AuditTrail(self.session, self.clock).record(
                    "Bid",
                    bid.id,
                    AuditAction.BID_SUBMITTED,
                    supplier_id,
                    quotation_id=qid,
                    bid_price=amount,
                )
                self._commit()

            logger.info(
                "bid_submitted",
                extra={"bid_id": str(bid.id), "bid_price": str(amount)},
            )
            outbox = Outbox()
            messages.bid_submitted(outbox, self.terms.operator, quotation, bid)
            self._notify(outbox)
            return bid.id
