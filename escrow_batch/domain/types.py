"""
escrow_batch.domain.types -- Frozen dataclasses for batch runs.

Follows the kernel's pattern: frozen dataclasses with str-enum status
fields and tuples for immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every item succeeded or was skipped
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # Preparation failed, or no item succeeded
    EMPTY = "empty"  # Nothing was due


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Nothing to do, e.g. already handled elsewhere
    TIMED_OUT = "timed_out"  # Abandoned for this run, picked up again next run


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of processing a single item."""

    item_index: int
    item_key: str
    status: BatchItemStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchRunResult:
    """Summary of one run of one task."""

    run_id: UUID
    task_type: str
    status: BatchRunStatus
    started_at: datetime
    total_items: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    timed_out: int = 0
    item_results: tuple[BatchItemResult, ...] = ()
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def item_keys(self) -> tuple[str, ...]:
        return tuple(r.item_key for r in self.item_results)

    def keys_with_status(self, status: BatchItemStatus) -> tuple[str, ...]:
        return tuple(r.item_key for r in self.item_results if r.status == status)


@dataclass(frozen=True)
class RecurringJob:
    """A task fired every ``interval_seconds``."""

    task_type: str
    interval_seconds: float
    parameters: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be positive, got {self.interval_seconds}"
            )
