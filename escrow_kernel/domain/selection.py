"""
Selection -- pure winner selection and auction window arithmetic.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from escrow_kernel.domain.types import BidCandidate


def select_lowest_bid(candidates: Iterable[BidCandidate]) -> BidCandidate | None:
    """
    Pick the automatic-award winner.

    Lowest quoted price wins; ties go to the earliest submission, then to
    the lowest id so the result never depends on row order.
    """
    return min(
        candidates,
        key=lambda c: (c.bid_price, c.submitted_at, str(c.bid_id)),
        default=None,
    )


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def auction_closes_at(opened_at: datetime, window: timedelta) -> datetime:
    return opened_at + window


def auction_window_elapsed(opened_at: datetime, window: timedelta, now: datetime) -> bool:
    """True once ``window`` has passed since the quotation opened."""
    return as_utc(now) >= as_utc(auction_closes_at(opened_at, window))
