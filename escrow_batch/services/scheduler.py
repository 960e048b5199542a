"""
RecurringTaskScheduler -- in-process interval scheduler.

Contract:
    Holds a set of interval jobs in memory.  ``tick()`` runs every job
    whose next run time has come, through the BatchExecutor, and moves
    its next run time forward by one interval from the tick.  A
    background thread calls ``tick()`` every ``poll_interval_seconds``
    until stopped.

Non-goals:
    - NOT a distributed scheduler.  Running several processes against
      one store is safe only because every transition is conditional.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from escrow_kernel.domain.clock import Clock, SystemClock
from escrow_kernel.logging_config import get_logger

from escrow_batch.domain.schedule import compute_next_run, is_due
from escrow_batch.domain.types import BatchRunResult, RecurringJob
from escrow_batch.services.executor import BatchExecutor

logger = get_logger("batch.scheduler")


@dataclass
class _JobState:
    job: RecurringJob
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_status: str | None = None


class RecurringTaskScheduler:
    """Polling scheduler for interval jobs.

    Contract:
        - ``add_job()`` registers a job; it first fires on the next tick
          unless ``first_run_at`` says otherwise.
        - ``tick()`` fires due jobs and returns their run results.
        - ``start()`` / ``stop()`` for background thread operation.
        - The stop signal is honoured between jobs and between items.
    """

    def __init__(
        self,
        executor: BatchExecutor,
        clock: Clock | None = None,
        poll_interval_seconds: float = 60,
    ) -> None:
        self._executor = executor
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval_seconds
        self._jobs: dict[str, _JobState] = {}
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def add_job(self, job: RecurringJob, first_run_at: datetime | None = None) -> None:
        if job.task_type not in self._executor.task_registry:
            raise KeyError(f"No task registered for type '{job.task_type}'")
        if job.task_type in self._jobs:
            raise ValueError(f"Job '{job.task_type}' is already scheduled")
        self._jobs[job.task_type] = _JobState(job=job, next_run_at=first_run_at)

    def next_run_at(self, task_type: str) -> datetime | None:
        return self._jobs[task_type].next_run_at

    @property
    def jobs(self) -> tuple[RecurringJob, ...]:
        return tuple(state.job for state in self._jobs.values())

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> list[BatchRunResult]:
        """Fire every due job (public for testing)."""
        with self._tick_lock:
            now = self._clock.now()
            results: list[BatchRunResult] = []
            for state in self._jobs.values():
                if self._stop_event.is_set():
                    break
                if not is_due(state.next_run_at, now):
                    continue
                results.append(self._fire(state, now))
            return results

    def run_now(self, task_type: str) -> BatchRunResult:
        """Fire one job immediately, regardless of its schedule."""
        with self._tick_lock:
            return self._fire(self._jobs[task_type], self._clock.now())

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="escrow-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "poll_interval": self._poll_interval,
                "jobs": [job.task_type for job in self.jobs],
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current item to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._executor.shutdown()
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_failed")
            self._stop_event.wait(timeout=self._poll_interval)

    def _fire(self, state: _JobState, now: datetime) -> BatchRunResult:
        job = state.job
        result = self._executor.run(
            job.task_type,
            job.parameters,
            should_stop=self._stop_event.is_set,
        )
        state.last_run_at = now
        state.last_status = result.status.value
        state.next_run_at = compute_next_run(now, job.interval_seconds)
        logger.info(
            "schedule_fired",
            extra={
                "job_name": job.task_type,
                "status": result.status.value,
                "next_run_at": state.next_run_at.isoformat(),
            },
        )
        return result
