"""
EscrowService -- moves the requester's money through the escrow hold.

Responsibility:
    pending --capture_payment--> in_escrow --release--> completed
    disbursement: pending --disburse_funds--> disbursed

Invariants enforced:
    - Every move is a compare-and-swap UPDATE guarded on the previous
      status, so a bid is never captured, released or disbursed twice even
      when two workers race on it.
    - Release only happens once ``escrow_release_at <= as_of``.
    - Disputes are advisory.  An open dispute never blocks release or
      disbursement; it is logged and reported on the result.
    - Notifications go out only after the commit.  On release the supplier
      is shown the quoted bid price and the operator the settlement price.

Failure modes:
    - BidNotFoundError: unknown bid id.
    - BidNotAcceptedError / PaymentNotPendingError: capture preconditions.
    - PaymentNotCompletedError: disbursement before release.
    - AlreadyDisbursedError: disbursement repeated (conflict).
    - PersistenceError: store failure; rolled back.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update

from escrow_kernel.domain.types import CaptureResult, DisbursementResult, ReleaseResult
from escrow_kernel.exceptions import (
    AlreadyDisbursedError,
    BidNotAcceptedError,
    BidNotFoundError,
    PaymentNotCompletedError,
    PaymentNotPendingError,
)
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.bid import BidModel, BidStatus, DisbursementStatus, PaymentStatus
from escrow_kernel.models.dispute import DisputeModel, DisputeStatus
from escrow_kernel.models.quotation import QuotationModel
from escrow_kernel.selectors.bid_selector import BidSelector
from escrow_kernel.services import messages
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import (
    SYSTEM_ACTOR_ID,
    BaseService,
    coerce_uuid,
    status_value,
)
from escrow_kernel.services.notifier import Outbox

logger = get_logger("services.escrow")


class EscrowService(BaseService):
    """
    Service for the payment and disbursement lifecycle of accepted bids.

    Contract:
        Accepts bid ids and returns frozen result DTOs.  ``release`` reports
        ``released=False`` instead of raising when the hold has not matured
        or was already released.

    Guarantees:
        - No payment or disbursement step ever runs twice for a bid.
        - ``release_matured`` commits bid by bid; one failing bid never
          stops the run.

    Non-goals:
        - Does NOT move real money; the payment reference is recorded as
          given.
        - Does NOT block on disputes.
    """

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_payment(
        self,
        bid_id: UUID | str,
        actor_id: UUID,
        payment_reference: str | None = None,
    ) -> CaptureResult:
        """
        Record the requester's payment for an accepted bid and start the hold.

        ``escrow_release_at`` is (re)set to capture time + escrow hold.
        """
        bid_uuid = self._require_bid_id(bid_id)

        with LogContext.bind(bid_id=bid_uuid, actor_id=actor_id):
            with self._transition("capture_payment"):
                bid = self._load_bid(bid_uuid)
                if bid.status != BidStatus.ACCEPTED:
                    raise BidNotAcceptedError(str(bid_uuid), status_value(bid.status))
                if bid.payment_status != PaymentStatus.PENDING:
                    raise PaymentNotPendingError(
                        str(bid_uuid), status_value(bid.payment_status)
                    )

                now = self.clock.now()
                release_at = now + self.terms.escrow_hold
                moved = self.session.execute(
                    update(BidModel)
                    .where(
                        BidModel.id == bid_uuid,
                        BidModel.status == BidStatus.ACCEPTED,
                        BidModel.payment_status == PaymentStatus.PENDING,
                    )
                    .values(
                        payment_status=PaymentStatus.IN_ESCROW,
                        payment_reference=payment_reference,
                        captured_at=now,
                        escrow_release_at=release_at,
                        updated_by_id=actor_id,
                    )
                    .execution_options(synchronize_session=False)
                ).rowcount
                if moved != 1:
                    current = self._load_bid(bid_uuid)
                    raise PaymentNotPendingError(
                        str(bid_uuid), status_value(current.payment_status)
                    )

                bid = self._load_bid(bid_uuid)
                quotation = self.session.get(QuotationModel, bid.quotation_id)
                AuditTrail(self.session, self.clock).record(
                    "Bid",
                    bid_uuid,
                    AuditAction.PAYMENT_CAPTURED,
                    actor_id,
                    payment_reference=payment_reference,
                    escrow_release_at=release_at,
                )
                self.session.flush()

                outbox = Outbox()
                messages.payment_captured(outbox, quotation, bid)
                result = CaptureResult(
                    bid_id=bid_uuid,
                    payment_reference=payment_reference,
                    settlement_price=bid.settlement_price,
                    captured_at=now,
                    escrow_release_at=release_at,
                )
                self._commit()

            logger.info(
                "payment_captured",
                extra={"escrow_release_at": release_at.isoformat()},
            )
            self._notify(outbox)
            return result

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, bid_id: UUID | str, as_of: datetime | None = None) -> ReleaseResult:
        """
        Release one matured escrow hold.

        A bid that is not (or no longer) in escrow, or whose hold has not
        matured by ``as_of``, is left untouched and reported with
        ``released=False``.
        """
        bid_uuid = self._require_bid_id(bid_id)
        as_of = as_of or self.clock.now()

        with LogContext.bind(bid_id=bid_uuid):
            with self._transition("release_escrow"):
                moved = self.session.execute(
                    update(BidModel)
                    .where(
                        BidModel.id == bid_uuid,
                        BidModel.payment_status == PaymentStatus.IN_ESCROW,
                        BidModel.escrow_release_at <= as_of,
                    )
                    .values(
                        payment_status=PaymentStatus.COMPLETED,
                        released_at=as_of,
                        updated_by_id=SYSTEM_ACTOR_ID,
                    )
                    .execution_options(synchronize_session=False)
                ).rowcount
                if moved != 1:
                    self._rollback()
                    logger.info("escrow_release_skipped")
                    return ReleaseResult(bid_id=bid_uuid, released=False)

                bid = self._load_bid(bid_uuid)
                open_dispute_id = self._open_dispute_id(bid_uuid)
                AuditTrail(self.session, self.clock).record(
                    "Bid",
                    bid_uuid,
                    AuditAction.ESCROW_RELEASED,
                    None,
                    as_of=as_of,
                )
                self.session.flush()

                outbox = Outbox()
                messages.escrow_released(outbox, self.terms.operator, bid)
                self._commit()

            if open_dispute_id is not None:
                logger.warning(
                    "escrow_released_with_open_dispute",
                    extra={"dispute_id": str(open_dispute_id)},
                )
            logger.info(
                "escrow_released",
                extra={
                    "bid_price": str(bid.bid_price),
                    "settlement_price": str(bid.settlement_price),
                },
            )
            self._notify(outbox)
            return ReleaseResult(
                bid_id=bid_uuid,
                released=True,
                released_at=as_of,
                open_dispute_id=open_dispute_id,
            )

    def release_matured(self, as_of: datetime | None = None) -> list[ReleaseResult]:
        """
        Release every hold matured by ``as_of``, one transaction per bid.

        A failure on one bid is logged and the remaining bids are still
        processed.
        """
        as_of = as_of or self.clock.now()
        bid_ids = BidSelector(self.session).matured_escrow_ids(as_of)
        self._rollback()

        results: list[ReleaseResult] = []
        for bid_id in bid_ids:
            try:
                results.append(self.release(bid_id, as_of))
            except Exception as exc:
                logger.error(
                    "escrow_release_failed",
                    extra={
                        "bid_id": str(bid_id),
                        "error_code": getattr(exc, "code", "UNHANDLED_EXCEPTION"),
                    },
                    exc_info=True,
                )
        logger.info(
            "escrow_release_run_completed",
            extra={
                "candidates": len(bid_ids),
                "released": sum(1 for r in results if r.released),
            },
        )
        return results

    # ------------------------------------------------------------------
    # Disbursement
    # ------------------------------------------------------------------

    def disburse_funds(self, bid_id: UUID | str, operator_id: UUID) -> DisbursementResult:
        """
        Mark the supplier paid out.  Exactly once, and only after release.
        """
        bid_uuid = self._require_bid_id(bid_id)

        with LogContext.bind(bid_id=bid_uuid, actor_id=operator_id):
            with self._transition("disburse_funds"):
                bid = self._load_bid(bid_uuid)
                self._check_disbursable(bid)

                now = self.clock.now()
                moved = self.session.execute(
                    update(BidModel)
                    .where(
                        BidModel.id == bid_uuid,
                        BidModel.payment_status == PaymentStatus.COMPLETED,
                        BidModel.disbursement_status == DisbursementStatus.PENDING,
                    )
                    .values(
                        disbursement_status=DisbursementStatus.DISBURSED,
                        disbursed_at=now,
                        updated_by_id=operator_id,
                    )
                    .execution_options(synchronize_session=False)
                ).rowcount
                bid = self._load_bid(bid_uuid)
                if moved != 1:
                    self._check_disbursable(bid)
                    raise AlreadyDisbursedError(str(bid_uuid))

                open_dispute_id = self._open_dispute_id(bid_uuid)
                AuditTrail(self.session, self.clock).record(
                    "Bid",
                    bid_uuid,
                    AuditAction.FUNDS_DISBURSED,
                    operator_id,
                    settlement_price=bid.settlement_price,
                    open_dispute_id=open_dispute_id,
                )
                self.session.flush()

                outbox = Outbox()
                messages.funds_disbursed(outbox, bid)
                result = DisbursementResult(
                    bid_id=bid_uuid,
                    supplier_id=bid.supplier_id,
                    settlement_price=bid.settlement_price,
                    disbursed_at=now,
                    open_dispute_id=open_dispute_id,
                )
                self._commit()

            if open_dispute_id is not None:
                logger.warning(
                    "funds_disbursed_with_open_dispute",
                    extra={"dispute_id": str(open_dispute_id)},
                )
            logger.info(
                "funds_disbursed",
                extra={"settlement_price": str(result.settlement_price)},
            )
            self._notify(outbox)
            return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_disbursable(bid: BidModel) -> None:
        if bid.disbursement_status == DisbursementStatus.DISBURSED:
            raise AlreadyDisbursedError(str(bid.id))
        if bid.payment_status != PaymentStatus.COMPLETED:
            raise PaymentNotCompletedError(str(bid.id), status_value(bid.payment_status))

    @staticmethod
    def _require_bid_id(bid_id) -> UUID:
        bid_uuid = coerce_uuid(bid_id)
        if bid_uuid is None:
            raise BidNotFoundError(str(bid_id))
        return bid_uuid

    def _load_bid(self, bid_id: UUID) -> BidModel:
        bid = self.session.get(BidModel, bid_id, populate_existing=True)
        if bid is None:
            raise BidNotFoundError(str(bid_id))
        return bid

    def _open_dispute_id(self, bid_id: UUID) -> UUID | None:
        return self.session.execute(
            select(DisputeModel.id).where(
                DisputeModel.bid_id == bid_id,
                DisputeModel.status != DisputeStatus.RESOLVED,
            )
        ).scalar_one_or_none()
