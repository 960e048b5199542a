"""
Tests for escrow_batch.tasks.base and escrow_batch.domain.types.

Validates the BatchTask protocol, TaskRegistry registration/lookup, and
the frozen run/item result types.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from escrow_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    RecurringJob,
)
from escrow_batch.tasks import AuctionCloseTask, EscrowReleaseTask
from escrow_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)


class FakeReminderTask:
    """Minimal BatchTask implementation."""

    @property
    def task_type(self) -> str:
        return "bids.send_reminders"

    @property
    def description(self) -> str:
        return "Remind suppliers about open quotations"

    def prepare_items(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        return (BatchItemInput(item_index=0, item_key="q-001"),)

    def execute_item(
        self, item: BatchItemInput, parameters: dict[str, Any],
        session: Session, as_of: datetime,
    ) -> BatchTaskResult:
        return BatchTaskResult(status=BatchItemStatus.SUCCEEDED)


class NotATask:
    task_type = "nothing"


class TestBatchTaskProtocol:
    def test_fake_task_satisfies_protocol(self):
        assert isinstance(FakeReminderTask(), BatchTask)

    def test_escrow_tasks_satisfy_protocol(self, deterministic_clock, dispatcher, terms):
        assert isinstance(AuctionCloseTask(deterministic_clock, dispatcher, terms), BatchTask)
        assert isinstance(EscrowReleaseTask(deterministic_clock, dispatcher, terms), BatchTask)

    def test_incomplete_class_is_rejected(self):
        assert not isinstance(NotATask(), BatchTask)


class TestTaskDTOs:
    def test_item_input_defaults(self):
        item = BatchItemInput(item_index=3, item_key="q-3")
        assert item.payload == {}

    def test_item_input_is_frozen(self):
        item = BatchItemInput(item_index=0, item_key="q-0")
        with pytest.raises(FrozenInstanceError):
            item.item_key = "other"  # type: ignore[misc]

    def test_task_result_defaults(self):
        result = BatchTaskResult(status=BatchItemStatus.SKIPPED)
        assert result.result_data is None
        assert result.error_code is None


class TestTaskRegistry:
    def test_register_and_get(self):
        registry = TaskRegistry()
        task = FakeReminderTask()
        registry.register(task)

        assert registry.get("bids.send_reminders") is task
        assert "bids.send_reminders" in registry
        assert len(registry) == 1

    def test_duplicate_registration_raises(self):
        registry = TaskRegistry()
        registry.register(FakeReminderTask())
        with pytest.raises(ValueError, match="already registered"):
            registry.register(FakeReminderTask())

    def test_missing_task_lists_available(self):
        registry = TaskRegistry()
        registry.register(FakeReminderTask())
        with pytest.raises(KeyError, match="bids.send_reminders"):
            registry.get("escrow.unknown")

    def test_list_tasks_is_sorted(self, deterministic_clock, dispatcher, terms):
        registry = TaskRegistry()
        registry.register(EscrowReleaseTask(deterministic_clock, dispatcher, terms))
        registry.register(AuctionCloseTask(deterministic_clock, dispatcher, terms))
        assert registry.list_tasks() == (
            "auction.close_expired",
            "escrow.release_matured",
        )

    def test_default_registry_is_fresh(self):
        first = default_task_registry()
        first.register(FakeReminderTask())
        assert len(default_task_registry()) == 0


class TestRunResult:
    def _run(self) -> BatchRunResult:
        items = (
            BatchItemResult(0, "a", BatchItemStatus.SUCCEEDED),
            BatchItemResult(1, "b", BatchItemStatus.SKIPPED, error_code="NO_PENDING_BIDS"),
            BatchItemResult(2, "c", BatchItemStatus.SUCCEEDED),
        )
        return BatchRunResult(
            run_id=uuid4(),
            task_type="escrow.release_matured",
            status=BatchRunStatus.COMPLETED,
            started_at=datetime(2026, 3, 1, 9, 0, 0),
            total_items=3,
            succeeded=2,
            skipped=1,
            item_results=items,
        )

    def test_item_keys(self):
        assert self._run().item_keys == ("a", "b", "c")

    def test_keys_with_status(self):
        run = self._run()
        assert run.keys_with_status(BatchItemStatus.SUCCEEDED) == ("a", "c")
        assert run.keys_with_status(BatchItemStatus.FAILED) == ()


class TestRecurringJob:
    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            RecurringJob(task_type="escrow.release_matured", interval_seconds=0)

    def test_parameters_default_to_empty(self):
        job = RecurringJob(task_type="escrow.release_matured", interval_seconds=60)
        assert job.parameters == {}
