"""
Read-side selectors: quotations, bids, disputes and supplier earnings.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from escrow_kernel.models.quotation import QuotationStatus
from escrow_kernel.selectors.bid_selector import BidSelector
from escrow_kernel.selectors.dispute_selector import DisputeSelector
from escrow_kernel.selectors.earnings_selector import EarningsSelector
from escrow_kernel.selectors.quotation_selector import QuotationSelector


class TestQuotationSelector:
    def test_expired_open_ids(self, create_quotation, session, deterministic_clock):
        old = create_quotation()
        deterministic_clock.advance(hours=3)
        recent = create_quotation()
        deterministic_clock.advance(hours=3)

        selector = QuotationSelector(session)
        expired = selector.expired_open_ids(deterministic_clock.now(), timedelta(hours=6))

        assert expired == [old]
        assert recent not in expired

    def test_awarded_quotation_not_listed_as_expired(
        self, awarded_bid, session, deterministic_clock
    ):
        deterministic_clock.advance(days=1)
        expired = QuotationSelector(session).expired_open_ids(
            deterministic_clock.now(), timedelta(hours=6)
        )
        assert awarded_bid.quotation_id not in expired

    def test_get_and_list(self, awarded_bid, create_quotation, session):
        open_id = create_quotation(category="storage")
        selector = QuotationSelector(session)

        dto = selector.get(awarded_bid.quotation_id)
        assert dto.status == "awarded"
        assert [q.id for q in selector.list_by_status(QuotationStatus.OPEN)] == [open_id]
        assert selector.get(uuid4()) is None


class TestBidSelector:
    def test_for_quotation_in_submission_order(
        self, create_quotation, submit_bid, session, deterministic_clock
    ):
        qid = create_quotation()
        first = submit_bid(qid, "300")
        deterministic_clock.advance(seconds=10)
        second = submit_bid(qid, "200")

        bids = BidSelector(session).for_quotation(qid)

        assert [b.id for b in bids] == [first, second]
        assert all(b.status == "pending" for b in bids)

    def test_commission_lookup(self, awarded_bid, session):
        selector = BidSelector(session)
        commission = selector.commission_for_bid(awarded_bid.bid_id)
        assert commission.award_mode == "manual"
        assert commission.commission_percent == Decimal("15")
        assert selector.commission_count_for_quotation(awarded_bid.quotation_id) == 1

    def test_matured_escrow_ids(self, captured_bid, session, deterministic_clock):
        selector = BidSelector(session)
        assert selector.matured_escrow_ids(deterministic_clock.now()) == []
        later = deterministic_clock.now() + timedelta(days=5)
        assert selector.matured_escrow_ids(later) == [captured_bid.bid_id]


class TestDisputeSelector:
    def test_open_disputes(self, awarded_bid, dispute_gate, session, test_actor_id):
        dispute_id = dispute_gate.file_dispute(
            awarded_bid.bid_id, uuid4(), "Late", "Arrived at noon, not 9am."
        )
        selector = DisputeSelector(session)
        assert [d.id for d in selector.open_disputes()] == [dispute_id]
        assert selector.for_bid(awarded_bid.bid_id).is_open

        dispute_gate.update_dispute_status(dispute_id, "resolved", test_actor_id)
        assert selector.open_disputes() == []
        assert not selector.get(dispute_id).is_open


class TestEarningsSelector:
    def test_totals_by_disbursement_status(
        self, create_quotation, submit_bid, award_engine, escrow_service,
        session, deterministic_clock, test_actor_id,
    ):
        supplier = uuid4()
        paid = []
        for price in ("500", "200"):
            qid = create_quotation()
            bid = submit_bid(qid, price, supplier_id=supplier)
            award_engine.award_bid(qid, bid, "10", test_actor_id)
            paid.append(bid)
        # A rejected bid never counts
        qid = create_quotation()
        submit_bid(qid, "90", supplier_id=supplier)
        award_engine.award_bid(qid, submit_bid(qid, "80"), "10", test_actor_id)

        escrow_service.capture_payment(paid[0], test_actor_id)
        deterministic_clock.advance(days=5)
        escrow_service.release(paid[0])
        escrow_service.disburse_funds(paid[0], test_actor_id)

        summary = EarningsSelector(session).for_supplier(supplier)

        assert summary.total_for("disbursed") == Decimal("550")
        assert summary.total_for("pending") == Decimal("220")
        assert summary.counts == {"disbursed": 1, "pending": 1}
        assert summary.to_dict()["supplier_id"] == str(supplier)

    def test_supplier_without_work(self, session):
        summary = EarningsSelector(session).for_supplier(uuid4())
        assert summary.totals == {}
        assert summary.total_for("pending") == Decimal("0")
