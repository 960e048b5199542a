"""
AwardEngine -- picks the winning bid of a quotation, exactly once.

Responsibility:
    Two award paths share one transition:
      - ``award_bid``: an operator names the winner and the commission.
      - ``award_automatically``: lowest quoted price among pending bids once
        the auction window has elapsed, at the platform commission.
    Also ``close_quotation`` for operators withdrawing an open quotation.

Invariants enforced:
    - Exactly one accepted bid per awarded quotation.  The quotation is
      claimed with a compare-and-swap
      (``UPDATE quotations SET status='awarded' WHERE id=:id AND status='open'``)
      as the FIRST write of the transaction; only the caller whose UPDATE
      matched a row continues.  The loser gets AlreadyAwardedError.
    - settlement_price = bid_price * (1 + commission / 100), rounded half-up
      to nine decimal places once; the result and both stored copies agree.
    - Acceptance, rejection of every other pending bid, the quotation status
      and the commission record commit together or not at all.
    - Notifications go out only after the commit.

Failure modes:
    - InvalidCommissionError: commission missing or <= 0.
    - QuotationNotFoundError / BidNotFoundError: unknown ids.
    - BidQuotationMismatchError / BidNotPendingError / QuotationNotOpenError.
    - AuctionDisabledError / AuctionWindowOpenError / NoPendingBidsError
      (automatic path, all retryable).
    - AlreadyAwardedError: quotation already awarded, possibly concurrently.
    - AwardFailedError: store failure; rolled back, every bid still pending.
"""

from uuid import UUID

from sqlalchemy import select, update

from escrow_kernel.domain.pricing import compute_settlement_price, parse_commission
from escrow_kernel.domain.selection import (
    auction_closes_at,
    auction_window_elapsed,
    select_lowest_bid,
)
from escrow_kernel.domain.types import BidCandidate, CloseResult, SettlementResult
from escrow_kernel.exceptions import (
    AlreadyAwardedError,
    AuctionDisabledError,
    AuctionWindowOpenError,
    AwardFailedError,
    BidNotFoundError,
    BidNotPendingError,
    BidQuotationMismatchError,
    NoPendingBidsError,
    QuotationNotFoundError,
    QuotationNotOpenError,
)
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.bid import BidModel, BidStatus
from escrow_kernel.models.commission import AwardMode, CommissionRecord
from escrow_kernel.models.quotation import QuotationModel, QuotationStatus
from escrow_kernel.services import messages
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import (
    SYSTEM_ACTOR_ID,
    BaseService,
    coerce_uuid,
    status_value,
)
from escrow_kernel.services.notifier import Outbox
from escrow_kernel.services.settings_service import SettingsService

logger = get_logger("services.award_engine")


class AwardEngine(BaseService):
    """
    Service for closing a quotation on its winning bid.

    Contract:
        Accepts quotation and bid ids (UUID or string) and returns frozen
        ``SettlementResult`` / ``CloseResult`` DTOs.  Each public method is
        one transaction: commits on success when ``auto_commit`` is True,
        rolls back on any failure.

    Guarantees:
        - At most one accepted bid per quotation, even when manual and
          automatic awards race; the quotation claim is the first write.
        - ``SettlementResult.settlement_price`` is the value stored on the
          bid and on the commission record, rounded once to nine places.
        - Every other pending bid is rejected in the same commit.

    Non-goals:
        - Does NOT capture payment (that is EscrowService).
        - Does NOT decide when the auction window ends; the scheduler calls
          ``award_automatically`` and gets a retryable error if too early.
    """

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def award_bid(
        self,
        quotation_id: UUID | str,
        winning_bid_id: UUID | str,
        commission_percent,
        actor_id: UUID,
    ) -> SettlementResult:
        """Accept ``winning_bid_id`` at ``commission_percent`` and reject the rest."""
        commission = parse_commission(commission_percent)
        qid = self._require_quotation_id(quotation_id)
        bid_id = coerce_uuid(winning_bid_id)
        if bid_id is None:
            raise BidNotFoundError(str(winning_bid_id))

        with LogContext.bind(quotation_id=qid, bid_id=bid_id, actor_id=actor_id):
            with self._transition("award", self._award_failed(qid)):
                quotation = self._load_open_quotation(qid)
                bid = self.session.get(BidModel, bid_id, populate_existing=True)
                if bid is None:
                    raise BidNotFoundError(str(bid_id))
                if bid.quotation_id != qid:
                    raise BidQuotationMismatchError(str(bid_id), str(qid))
                if bid.status != BidStatus.PENDING:
                    raise BidNotPendingError(str(bid_id), status_value(bid.status))

                result, outbox = self._apply_award(
                    quotation, bid_id, commission, AwardMode.MANUAL, actor_id
                )
                self._commit()

            self._log_award(result)
            self._notify(outbox)
            return result

    def award_automatically(
        self,
        quotation_id: UUID | str,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        commission_percent=None,
    ) -> SettlementResult:
        """
        Award the lowest pending bid once the auction window has elapsed.

        Ties go to the earliest submission, then to the lowest bid id.  The
        commission defaults to the platform setting.
        """
        override = (
            parse_commission(commission_percent)
            if commission_percent is not None
            else None
        )
        qid = self._require_quotation_id(quotation_id)

        with LogContext.bind(quotation_id=qid, actor_id=actor_id):
            with self._transition("award", self._award_failed(qid)):
                settings = SettingsService(
                    self.session, self.clock, terms=self.terms, auto_commit=False
                ).current()
                if not settings.auction_enabled:
                    raise AuctionDisabledError()
                commission = override or settings.commission_percent

                quotation = self._load_open_quotation(qid)
                now = self.clock.now()
                if not auction_window_elapsed(
                    quotation.created_at, self.terms.auction_window, now
                ):
                    closes_at = auction_closes_at(
                        quotation.created_at, self.terms.auction_window
                    )
                    raise AuctionWindowOpenError(str(qid), closes_at.isoformat())

                pending = self.session.execute(
                    select(BidModel).where(
                        BidModel.quotation_id == qid,
                        BidModel.status == BidStatus.PENDING,
                    )
                ).scalars().all()
                winner = select_lowest_bid(
                    BidCandidate(
                        bid_id=b.id,
                        supplier_id=b.supplier_id,
                        bid_price=b.bid_price,
                        submitted_at=b.created_at,
                    )
                    for b in pending
                )
                if winner is None:
                    raise NoPendingBidsError(str(qid))

                result, outbox = self._apply_award(
                    quotation, winner.bid_id, commission, AwardMode.AUTOMATIC, actor_id
                )
                self._commit()

            self._log_award(result)
            self._notify(outbox)
            return result

    def close_quotation(self, quotation_id: UUID | str, actor_id: UUID) -> CloseResult:
        """Withdraw an open quotation: ``closed``, every pending bid rejected."""
        qid = self._require_quotation_id(quotation_id)

        with LogContext.bind(quotation_id=qid, actor_id=actor_id):
            with self._transition("close_quotation"):
                quotation = self._load_open_quotation(qid)
                now = self.clock.now()
                self._claim(
                    qid,
                    QuotationStatus.CLOSED,
                    actor_id,
                    closed_at=now,
                )
                rejected = self._reject_pending(qid, actor_id)

                audit = AuditTrail(self.session, self.clock)
                audit.record(
                    "Quotation",
                    qid,
                    AuditAction.QUOTATION_CLOSED,
                    actor_id,
                    rejected_bid_ids=[b.id for b in rejected],
                )
                for b in rejected:
                    audit.record("Bid", b.id, AuditAction.BID_REJECTED, actor_id)
                self.session.flush()

                outbox = Outbox()
                messages.quotation_closed(outbox, quotation, rejected)
                result = CloseResult(
                    quotation_id=qid,
                    closed_at=now,
                    rejected_bid_ids=tuple(b.id for b in rejected),
                )
                self._commit()

            logger.info(
                "quotation_closed",
                extra={"rejected_count": len(result.rejected_bid_ids)},
            )
            self._notify(outbox)
            return result

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def _apply_award(
        self,
        quotation: QuotationModel,
        winner_id: UUID,
        commission,
        mode: AwardMode,
        actor_id: UUID,
    ) -> tuple[SettlementResult, Outbox]:
        now = self.clock.now()
        qid = quotation.id

        # First write of the transaction; serializes concurrent awards.
        self._claim(qid, QuotationStatus.AWARDED, actor_id, awarded_at=now)

        bids = self.session.execute(
            select(BidModel)
            .where(BidModel.quotation_id == qid)
            .order_by(BidModel.created_at, BidModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        winner = next((b for b in bids if b.id == winner_id), None)
        if winner is None:
            raise BidNotFoundError(str(winner_id))
        if winner.status != BidStatus.PENDING:
            raise BidNotPendingError(str(winner_id), status_value(winner.status))

        settlement_price = compute_settlement_price(winner.bid_price, commission)
        release_at = now + self.terms.escrow_hold

        winner.status = BidStatus.ACCEPTED
        winner.settlement_price = settlement_price
        winner.accepted_at = now
        winner.escrow_release_at = release_at
        winner.updated_by_id = actor_id

        losers = [b for b in bids if b.id != winner_id and b.status == BidStatus.PENDING]
        for b in losers:
            b.status = BidStatus.REJECTED
            b.updated_by_id = actor_id

        record = CommissionRecord(
            bid_id=winner_id,
            quotation_id=qid,
            commission_percent=commission,
            bid_price=winner.bid_price,
            settlement_price=settlement_price,
            award_mode=mode,
            created_at=now,
            created_by_id=actor_id,
        )
        self.session.add(record)

        audit = AuditTrail(self.session, self.clock)
        audit.record(
            "Quotation",
            qid,
            AuditAction.QUOTATION_AWARDED,
            actor_id,
            bid_id=winner_id,
            award_mode=mode,
        )
        audit.record(
            "Bid",
            winner_id,
            AuditAction.BID_ACCEPTED,
            actor_id,
            commission_percent=commission,
            settlement_price=settlement_price,
        )
        for b in losers:
            audit.record("Bid", b.id, AuditAction.BID_REJECTED, actor_id)

        self.session.flush()

        result = SettlementResult(
            quotation_id=qid,
            bid_id=winner_id,
            supplier_id=winner.supplier_id,
            bid_price=winner.bid_price,
            commission_percent=commission,
            settlement_price=settlement_price,
            award_mode=mode.value,
            awarded_at=now,
            escrow_release_at=release_at,
            commission_record_id=record.id,
            rejected_bid_ids=tuple(b.id for b in losers),
        )
        outbox = Outbox()
        messages.award_completed(
            outbox,
            quotation,
            winner,
            losers,
            automatic=mode == AwardMode.AUTOMATIC,
        )
        return result, outbox

    def _claim(
        self,
        quotation_id: UUID,
        new_status: QuotationStatus,
        actor_id: UUID,
        **values,
    ) -> None:
        """Compare-and-swap the quotation out of ``open``."""
        claimed = self.session.execute(
            update(QuotationModel)
            .where(
                QuotationModel.id == quotation_id,
                QuotationModel.status == QuotationStatus.OPEN,
            )
            .values(status=new_status, updated_by_id=actor_id, **values)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed == 1:
            # Refresh the identity-mapped row with the claimed values
            self.session.get(QuotationModel, quotation_id, populate_existing=True)
            return

        current = self.session.execute(
            select(QuotationModel.status).where(QuotationModel.id == quotation_id)
        ).scalar_one()
        logger.warning(
            "quotation_claim_lost",
            extra={"current_status": status_value(current)},
        )
        if current == QuotationStatus.AWARDED:
            raise AlreadyAwardedError(
                str(quotation_id), self._accepted_bid_id(quotation_id)
            )
        raise QuotationNotOpenError(str(quotation_id), status_value(current))

    def _reject_pending(self, quotation_id: UUID, actor_id: UUID) -> list[BidModel]:
        bids = self.session.execute(
            select(BidModel)
            .where(
                BidModel.quotation_id == quotation_id,
                BidModel.status == BidStatus.PENDING,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        for b in bids:
            b.status = BidStatus.REJECTED
            b.updated_by_id = actor_id
        return list(bids)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_quotation_id(quotation_id) -> UUID:
        qid = coerce_uuid(quotation_id)
        if qid is None:
            raise QuotationNotFoundError(str(quotation_id))
        return qid

    @staticmethod
    def _award_failed(quotation_id: UUID):
        return lambda reason: AwardFailedError(str(quotation_id), reason)

    def _load_open_quotation(self, quotation_id: UUID) -> QuotationModel:
        quotation = self.session.get(
            QuotationModel, quotation_id, populate_existing=True
        )
        if quotation is None:
            raise QuotationNotFoundError(str(quotation_id))
        if quotation.status == QuotationStatus.AWARDED:
            raise AlreadyAwardedError(
                str(quotation_id), self._accepted_bid_id(quotation_id)
            )
        if quotation.status != QuotationStatus.OPEN:
            raise QuotationNotOpenError(str(quotation_id), status_value(quotation.status))
        return quotation

    def _accepted_bid_id(self, quotation_id: UUID) -> str | None:
        accepted = self.session.execute(
            select(BidModel.id).where(
                BidModel.quotation_id == quotation_id,
                BidModel.status == BidStatus.ACCEPTED,
            )
        ).scalar_one_or_none()
        return str(accepted) if accepted is not None else None

    @staticmethod
    def _log_award(result: SettlementResult) -> None:
        logger.info(
            "quotation_awarded",
            extra={
                "award_mode": result.award_mode,
                "bid_price": str(result.bid_price),
                "commission_percent": str(result.commission_percent),
                "settlement_price": str(result.settlement_price),
                "rejected_count": len(result.rejected_bid_ids),
            },
        )
