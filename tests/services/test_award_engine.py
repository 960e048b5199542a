"""
Tests for AwardEngine: manual award, automatic award, and closing.

The manual and automatic paths share one transition, so settlement math,
loser rejection, the commission record and the exactly-once guarantee
are checked on both.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from escrow_kernel.exceptions import (
    AlreadyAwardedError,
    AuctionDisabledError,
    AuctionWindowOpenError,
    AwardFailedError,
    BidNotFoundError,
    BidQuotationMismatchError,
    InvalidCommissionError,
    NoPendingBidsError,
    QuotationNotFoundError,
    QuotationNotOpenError,
)
from escrow_kernel.models.audit_event import AuditAction, AuditEvent
from escrow_kernel.models.bid import BidModel, BidStatus
from escrow_kernel.models.commission import AwardMode, CommissionRecord
from escrow_kernel.models.quotation import QuotationModel, QuotationStatus


def _commission_count(session, quotation_id) -> int:
    return session.execute(
        select(func.count())
        .select_from(CommissionRecord)
        .where(CommissionRecord.quotation_id == quotation_id)
    ).scalar_one()


# =============================================================================
# Manual award
# =============================================================================


class TestManualAward:
    def test_settles_at_bid_plus_commission(
        self, create_quotation, submit_bid, award_engine, test_actor_id,
        deterministic_clock,
    ):
        qid = create_quotation()
        winner = submit_bid(qid, "500")

        result = award_engine.award_bid(qid, winner, "15", test_actor_id)

        assert result.bid_id == winner
        assert result.settlement_price == Decimal("575")
        assert result.commission_percent == Decimal("15")
        assert result.award_mode == "manual"
        assert result.awarded_at == deterministic_clock.now()
        assert result.escrow_release_at == deterministic_clock.now() + timedelta(days=5)

    def test_winner_accepted_others_rejected(
        self, create_quotation, submit_bid, award_engine, session, test_actor_id
    ):
        qid = create_quotation()
        winner = submit_bid(qid, "500")
        losers = [submit_bid(qid, "450"), submit_bid(qid, "700")]

        result = award_engine.award_bid(qid, winner, 10, test_actor_id)

        assert set(result.rejected_bid_ids) == set(losers)
        assert session.get(BidModel, winner).status == BidStatus.ACCEPTED
        for loser in losers:
            bid = session.get(BidModel, loser)
            assert bid.status == BidStatus.REJECTED
            assert bid.settlement_price is None
        quotation = session.get(QuotationModel, qid)
        assert quotation.status == QuotationStatus.AWARDED
        assert quotation.awarded_at is not None

    def test_commission_record_written_once(
        self, awarded_bid, session, test_actor_id
    ):
        record = session.execute(
            select(CommissionRecord).where(
                CommissionRecord.quotation_id == awarded_bid.quotation_id
            )
        ).scalar_one()
        assert record.id == awarded_bid.commission_record_id
        assert record.bid_id == awarded_bid.bid_id
        assert record.award_mode == AwardMode.MANUAL
        assert record.settlement_price == Decimal("575")
        assert record.commission_amount == Decimal("75")

    def test_stored_settlement_matches_result(
        self, create_quotation, submit_bid, award_engine, session, test_actor_id
    ):
        qid = create_quotation()
        winner = submit_bid(qid, "100.123456789")

        result = award_engine.award_bid(qid, winner, "12.5", test_actor_id)

        session.expire_all()
        stored = session.get(BidModel, winner).settlement_price
        record = session.execute(
            select(CommissionRecord).where(CommissionRecord.bid_id == winner)
        ).scalar_one()
        assert result.settlement_price == Decimal("112.638888888")
        assert stored == result.settlement_price
        assert record.settlement_price == result.settlement_price

    def test_second_award_is_a_conflict(
        self, awarded_bid, award_engine, session, test_actor_id
    ):
        other = session.execute(
            select(BidModel.id).where(
                BidModel.quotation_id == awarded_bid.quotation_id,
                BidModel.id != awarded_bid.bid_id,
            )
        ).scalar_one()

        with pytest.raises(AlreadyAwardedError) as exc_info:
            award_engine.award_bid(awarded_bid.quotation_id, other, "15", test_actor_id)

        assert exc_info.value.accepted_bid_id == str(awarded_bid.bid_id)
        assert _commission_count(session, awarded_bid.quotation_id) == 1
        assert session.get(BidModel, awarded_bid.bid_id).status == BidStatus.ACCEPTED

    @pytest.mark.parametrize("commission", [None, "0", "-5", "ten"])
    def test_invalid_commission_changes_nothing(
        self, create_quotation, submit_bid, award_engine, session, test_actor_id,
        commission,
    ):
        qid = create_quotation()
        bid = submit_bid(qid, "500")
        with pytest.raises(InvalidCommissionError):
            award_engine.award_bid(qid, bid, commission, test_actor_id)
        assert session.get(QuotationModel, qid).status == QuotationStatus.OPEN
        assert session.get(BidModel, bid).status == BidStatus.PENDING

    def test_bid_from_other_quotation(
        self, create_quotation, submit_bid, award_engine, test_actor_id
    ):
        qid = create_quotation()
        submit_bid(qid, "500")
        foreign = submit_bid(create_quotation(), "300")
        with pytest.raises(BidQuotationMismatchError):
            award_engine.award_bid(qid, foreign, "10", test_actor_id)

    def test_unknown_ids(self, create_quotation, award_engine, test_actor_id):
        with pytest.raises(QuotationNotFoundError):
            award_engine.award_bid(uuid4(), uuid4(), "10", test_actor_id)
        with pytest.raises(BidNotFoundError):
            award_engine.award_bid(create_quotation(), uuid4(), "10", test_actor_id)

    def test_notifies_every_party(
        self, create_quotation, submit_bid, award_engine, test_actor_id,
        notification_sink, email_sink,
    ):
        requester = uuid4()
        qid = create_quotation(requester_id=requester)
        winner_supplier, loser_supplier = uuid4(), uuid4()
        winner = submit_bid(qid, "500", supplier_id=winner_supplier)
        submit_bid(qid, "650", supplier_id=loser_supplier)

        award_engine.award_bid(qid, winner, "15", test_actor_id)

        assert [n.title for n in notification_sink.for_recipient(str(winner_supplier))] == [
            "Bid Accepted"
        ]
        assert [n.title for n in notification_sink.for_recipient(str(loser_supplier))] == [
            "Bid Not Selected"
        ]
        requester_notes = notification_sink.for_recipient(str(requester))
        assert [n.title for n in requester_notes] == ["Supplier Selected"]
        assert "$575.00" in requester_notes[0].message

        winner_mail = email_sink.to(f"supplier-{winner_supplier}@example.com")
        assert winner_mail[0].subject.startswith("Bid Approved")
        assert "$500.00" in winner_mail[0].html

    def test_award_is_audited(self, awarded_bid, session):
        actions = session.execute(
            select(AuditEvent.action).where(
                AuditEvent.action.in_(
                    [
                        AuditAction.QUOTATION_AWARDED,
                        AuditAction.BID_ACCEPTED,
                        AuditAction.BID_REJECTED,
                    ]
                )
            )
        ).scalars().all()
        assert sorted(actions) == sorted(
            ["quotation_awarded", "bid_accepted", "bid_rejected"]
        )

    def test_store_failure_rolls_everything_back(
        self, create_quotation, submit_bid, award_engine, session, session_factory,
        test_actor_id, notification_sink, monkeypatch,
    ):
        qid = create_quotation()
        winner = submit_bid(qid, "500")
        loser = submit_bid(qid, "650")

        def _failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", _failing_commit)

        with pytest.raises(AwardFailedError) as exc_info:
            award_engine.award_bid(qid, winner, "15", test_actor_id)
        assert exc_info.value.code == "AWARD_FAILED"
        assert isinstance(exc_info.value.__cause__, OperationalError)

        fresh = session_factory()
        try:
            assert fresh.get(QuotationModel, qid).status == QuotationStatus.OPEN
            assert fresh.get(BidModel, winner).status == BidStatus.PENDING
            assert fresh.get(BidModel, loser).status == BidStatus.PENDING
            assert _commission_count(fresh, qid) == 0
        finally:
            fresh.close()
        assert "Bid Accepted" not in notification_sink.titles()

    def test_award_log_carries_quotation_context(
        self, create_quotation, submit_bid, award_engine, test_actor_id, captured_logs
    ):
        qid = create_quotation()
        winner = submit_bid(qid, "500")
        award_engine.award_bid(qid, winner, "15", test_actor_id)

        awarded = [r for r in captured_logs() if r["message"] == "quotation_awarded"]
        assert len(awarded) == 1
        assert awarded[0]["quotation_id"] == str(qid)
        assert Decimal(awarded[0]["settlement_price"]) == Decimal("575")


# =============================================================================
# Automatic award
# =============================================================================


class TestAutomaticAward:
    def test_window_must_elapse(
        self, create_quotation, submit_bid, award_engine, deterministic_clock
    ):
        qid = create_quotation()
        submit_bid(qid, "500")
        deterministic_clock.advance(hours=5, seconds=3599)

        with pytest.raises(AuctionWindowOpenError) as exc_info:
            award_engine.award_automatically(qid)
        assert exc_info.value.retryable is True

    def test_lowest_bid_wins_at_platform_commission(
        self, create_quotation, submit_bid, award_engine, deterministic_clock, session
    ):
        qid = create_quotation()
        submit_bid(qid, "500")
        cheapest = submit_bid(qid, "420")
        submit_bid(qid, "480")
        deterministic_clock.advance(hours=6)

        result = award_engine.award_automatically(qid)

        assert result.bid_id == cheapest
        assert result.award_mode == "automatic"
        assert result.commission_percent == Decimal("10")
        assert result.settlement_price == Decimal("462")
        assert len(result.rejected_bid_ids) == 2
        record = session.get(CommissionRecord, result.commission_record_id)
        assert record.award_mode == AwardMode.AUTOMATIC

    def test_tie_goes_to_earliest_bid(
        self, create_quotation, submit_bid, award_engine, deterministic_clock
    ):
        qid = create_quotation()
        first = submit_bid(qid, "450")
        deterministic_clock.advance(seconds=30)
        submit_bid(qid, "450")
        deterministic_clock.advance(hours=6)

        assert award_engine.award_automatically(qid).bid_id == first

    def test_uses_changed_commission_setting(
        self, create_quotation, submit_bid, award_engine, settings_service,
        deterministic_clock, test_actor_id,
    ):
        settings_service.set_commission_percent("12", test_actor_id)
        qid = create_quotation()
        submit_bid(qid, "100")
        deterministic_clock.advance(hours=6)

        result = award_engine.award_automatically(qid)
        assert result.settlement_price == Decimal("112")

    def test_disabled_auction(
        self, create_quotation, submit_bid, award_engine, settings_service,
        deterministic_clock, test_actor_id, session,
    ):
        settings_service.set_auction_enabled(False, test_actor_id)
        qid = create_quotation()
        submit_bid(qid, "100")
        deterministic_clock.advance(hours=7)

        with pytest.raises(AuctionDisabledError):
            award_engine.award_automatically(qid)
        assert session.get(QuotationModel, qid).status == QuotationStatus.OPEN

    def test_no_pending_bids(self, create_quotation, award_engine, deterministic_clock):
        qid = create_quotation()
        deterministic_clock.advance(hours=6)
        with pytest.raises(NoPendingBidsError):
            award_engine.award_automatically(qid)

    def test_already_awarded_manually(
        self, awarded_bid, award_engine, deterministic_clock
    ):
        deterministic_clock.advance(hours=6)
        with pytest.raises(AlreadyAwardedError):
            award_engine.award_automatically(awarded_bid.quotation_id)

    def test_auction_titles(
        self, create_quotation, submit_bid, award_engine, deterministic_clock,
        notification_sink,
    ):
        requester = uuid4()
        supplier = uuid4()
        qid = create_quotation(requester_id=requester)
        submit_bid(qid, "300", supplier_id=supplier)
        deterministic_clock.advance(hours=6)

        award_engine.award_automatically(qid)

        assert notification_sink.for_recipient(str(supplier))[0].title == "Auction Won"
        assert notification_sink.for_recipient(str(requester))[0].title == "Auction Completed"


# =============================================================================
# Closing
# =============================================================================


class TestCloseQuotation:
    def test_rejects_pending_bids(
        self, create_quotation, submit_bid, award_engine, session, test_actor_id,
        notification_sink,
    ):
        qid = create_quotation()
        bids = [submit_bid(qid, "100"), submit_bid(qid, "200")]

        result = award_engine.close_quotation(qid, test_actor_id)

        assert set(result.rejected_bid_ids) == set(bids)
        assert session.get(QuotationModel, qid).status == QuotationStatus.CLOSED
        assert all(session.get(BidModel, b).status == BidStatus.REJECTED for b in bids)
        assert notification_sink.titles().count("Quotation Closed") == 2

    def test_closed_quotation_cannot_be_awarded(
        self, create_quotation, submit_bid, award_engine, test_actor_id
    ):
        qid = create_quotation()
        bid = submit_bid(qid, "100")
        award_engine.close_quotation(qid, test_actor_id)
        with pytest.raises(QuotationNotOpenError):
            award_engine.award_bid(qid, bid, "10", test_actor_id)

    def test_awarded_quotation_cannot_be_closed(
        self, awarded_bid, award_engine, test_actor_id
    ):
        with pytest.raises(AlreadyAwardedError):
            award_engine.close_quotation(awarded_bid.quotation_id, test_actor_id)
