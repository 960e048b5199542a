"""Tests for escrow_batch.domain.schedule (pure functions)."""

from datetime import datetime, timedelta, timezone

from escrow_batch.domain.schedule import compute_next_run, is_due

T0 = datetime(2026, 3, 1, 9, 0, 0)


class TestIsDue:
    def test_never_run_is_due(self):
        assert is_due(None, T0) is True

    def test_due_at_exact_time(self):
        assert is_due(T0, T0) is True

    def test_not_due_before(self):
        assert is_due(T0, T0 - timedelta(seconds=1)) is False

    def test_due_after(self):
        assert is_due(T0, T0 + timedelta(hours=1)) is True

    def test_naive_and_aware_compare_as_utc(self):
        aware = T0.replace(tzinfo=timezone.utc)
        assert is_due(aware, T0) is True
        assert is_due(T0 + timedelta(minutes=1), aware) is False


class TestComputeNextRun:
    def test_adds_interval(self):
        assert compute_next_run(T0, 3600) == T0 + timedelta(hours=1)

    def test_fractional_seconds(self):
        assert compute_next_run(T0, 0.5) == T0 + timedelta(milliseconds=500)
