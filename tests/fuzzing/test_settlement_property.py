"""
Property-based tests for settlement arithmetic and winner selection.

Hypothesis generates bid prices, commissions and bid sets; the invariants
must hold for every one of them.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from hypothesis import given, settings
from hypothesis import strategies as st

from escrow_kernel.domain.pricing import (
    HUNDRED,
    compute_settlement_price,
    format_money,
    parse_price,
)
from escrow_kernel.domain.selection import select_lowest_bid
from escrow_kernel.domain.types import BidCandidate

prices = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
commissions = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

T0 = datetime(2026, 3, 1, 9, 0, 0)


@st.composite
def bid_sets(draw):
    ids = draw(
        st.lists(
            st.integers(min_value=1, max_value=2**64), min_size=1, max_size=12, unique=True
        )
    )
    return [
        BidCandidate(
            bid_id=UUID(int=n),
            supplier_id=UUID(int=i + 1),
            bid_price=draw(st.sampled_from([Decimal("400"), Decimal("450"), Decimal("500")])),
            submitted_at=T0 + timedelta(seconds=draw(st.integers(0, 5))),
        )
        for i, n in enumerate(ids)
    ]


class TestSettlementInvariants:
    @given(bid=prices, pct=commissions)
    @settings(max_examples=200)
    def test_settlement_exceeds_bid_by_commission(self, bid, pct):
        settlement = compute_settlement_price(bid, pct)
        assert settlement > bid
        assert settlement - bid == bid * pct / HUNDRED

    @given(bid=prices, pct=commissions)
    @settings(max_examples=100)
    def test_rendered_amount_within_half_a_cent(self, bid, pct):
        settlement = compute_settlement_price(bid, pct)
        assert abs(Decimal(format_money(settlement)) - settlement) <= Decimal("0.005")

    @given(bid=prices)
    @settings(max_examples=100)
    def test_price_text_round_trips(self, bid):
        assert parse_price(str(bid)) == bid


class TestSelectionInvariants:
    @given(candidates=bid_sets(), data=st.data())
    @settings(max_examples=100)
    def test_winner_is_a_cheapest_bid_regardless_of_order(self, candidates, data):
        winner = select_lowest_bid(candidates)
        shuffled = data.draw(st.permutations(candidates))

        assert winner.bid_price == min(c.bid_price for c in candidates)
        assert select_lowest_bid(shuffled) == winner

    @given(candidates=bid_sets())
    @settings(max_examples=100)
    def test_winner_is_earliest_among_cheapest(self, candidates):
        winner = select_lowest_bid(candidates)
        cheapest = [c for c in candidates if c.bid_price == winner.bid_price]
        assert winner.submitted_at == min(c.submitted_at for c in cheapest)
