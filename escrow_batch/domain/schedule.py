"""
Pure schedule evaluation for interval jobs.

``is_due`` and ``compute_next_run`` take every timestamp from the caller
and have no side effects.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from escrow_kernel.domain.selection import as_utc


def is_due(next_run_at: datetime | None, as_of: datetime) -> bool:
    """A job that has never run is due immediately."""
    if next_run_at is None:
        return True
    return as_utc(next_run_at) <= as_utc(as_of)


def compute_next_run(last_run_at: datetime, interval_seconds: float) -> datetime:
    """Next firing time measured from the start of the last run."""
    return last_run_at + timedelta(seconds=interval_seconds)
