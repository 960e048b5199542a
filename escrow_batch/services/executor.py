"""
BatchExecutor -- runs one task over its work list.

Contract:
    ``run(task_type)`` asks the task for its items as of the clock's
    current time, then processes each item in a fresh session from the
    session factory.  An item that raises is recorded FAILED and the run
    moves on.  When ``item_timeout_seconds`` is set, an item still running
    after that bound is recorded TIMED_OUT and abandoned; its worker
    thread is left to finish on its own and whatever it leaves undone is
    found again on the next run.

Architecture: escrow_batch/services.  Services called by tasks own their
    transactions; the executor only commits or rolls back what a task
    leaves open, and always closes the session.
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from escrow_kernel.domain.clock import Clock, SystemClock
from escrow_kernel.logging_config import LogContext, get_logger

from escrow_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from escrow_batch.tasks.base import BatchItemInput, BatchTask, TaskRegistry

logger = get_logger("batch.executor")

ITEM_TIMEOUT_CODE = "ITEM_TIMEOUT"
UNHANDLED_CODE = "UNHANDLED_EXCEPTION"


class BatchExecutor:
    """Executes registered tasks with per-item isolation.

    Contract:
        - Items run one after another, each in its own session.
        - A failing item never prevents later items from running.
        - ``should_stop`` is consulted between items; remaining items are
          left for the next run.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        item_timeout_seconds: float | None = None,
        item_workers: int = 4,
    ) -> None:
        self._session_factory = session_factory
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._item_timeout = item_timeout_seconds
        self._item_workers = item_workers
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    def run(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> BatchRunResult:
        """Run ``task_type`` once over everything due now.

        Raises:
            KeyError: If no task is registered for ``task_type``.
        """
        task = self._task_registry.get(task_type)
        params = parameters or {}
        run_id = uuid4()
        as_of = self._clock.now()
        start_time = time.monotonic()

        with LogContext.bind(job_name=task_type, correlation_id=run_id):
            try:
                items = self._prepare(task, params, as_of)
            except Exception as exc:
                logger.exception("batch_prepare_failed")
                return BatchRunResult(
                    run_id=run_id,
                    task_type=task_type,
                    status=BatchRunStatus.FAILED,
                    started_at=as_of,
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - start_time) * 1000),
                )

            logger.info(
                "batch_run_started",
                extra={"total_items": len(items), "as_of": as_of.isoformat()},
            )

            results: list[BatchItemResult] = []
            for item in items:
                if should_stop is not None and should_stop():
                    logger.info(
                        "batch_run_interrupted",
                        extra={"remaining_items": len(items) - len(results)},
                    )
                    break
                results.append(self._run_item(task, item, params, as_of))

            run = self._summarize(
                run_id, task_type, as_of, len(items), results, start_time
            )
            logger.info(
                "batch_run_completed",
                extra={
                    "status": run.status.value,
                    "total_items": run.total_items,
                    "succeeded": run.succeeded,
                    "failed": run.failed,
                    "skipped": run.skipped,
                    "timed_out": run.timed_out,
                    "duration_ms": run.duration_ms,
                },
            )
            return run

    def shutdown(self, wait: bool = False) -> None:
        """Release the worker pool.  Abandoned items are not waited for by default."""
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait, cancel_futures=True)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _prepare(
        self, task: BatchTask, params: dict[str, Any], as_of
    ) -> tuple[BatchItemInput, ...]:
        session = self._session_factory()
        try:
            items = task.prepare_items(params, session, as_of)
            session.rollback()
            return items
        finally:
            session.close()

    def _run_item(
        self,
        task: BatchTask,
        item: BatchItemInput,
        params: dict[str, Any],
        as_of,
    ) -> BatchItemResult:
        item_start = time.monotonic()
        if self._item_timeout is None:
            outcome = self._execute_isolated(task, item, params, as_of)
        else:
            ctx = contextvars.copy_context()
            future = self._worker_pool().submit(
                ctx.run, self._execute_isolated, task, item, params, as_of
            )
            try:
                outcome = future.result(timeout=self._item_timeout)
            except FutureTimeoutError:
                logger.warning(
                    "batch_item_timed_out",
                    extra={
                        "item_key": item.item_key,
                        "timeout_seconds": self._item_timeout,
                    },
                )
                outcome = BatchItemResult(
                    item_index=item.item_index,
                    item_key=item.item_key,
                    status=BatchItemStatus.TIMED_OUT,
                    error_code=ITEM_TIMEOUT_CODE,
                    error_message=(
                        f"Item exceeded {self._item_timeout}s and was abandoned"
                    ),
                )
        duration = int((time.monotonic() - item_start) * 1000)
        return BatchItemResult(
            item_index=outcome.item_index,
            item_key=outcome.item_key,
            status=outcome.status,
            result_data=outcome.result_data,
            error_code=outcome.error_code,
            error_message=outcome.error_message,
            duration_ms=duration,
        )

    def _execute_isolated(
        self,
        task: BatchTask,
        item: BatchItemInput,
        params: dict[str, Any],
        as_of,
    ) -> BatchItemResult:
        """Run one item in its own session.  Never raises."""
        session = self._session_factory()
        try:
            result = task.execute_item(item, params, session, as_of)
            if result.status == BatchItemStatus.SUCCEEDED:
                session.commit()
            else:
                session.rollback()
            return BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=result.status,
                result_data=result.result_data,
                error_code=result.error_code,
                error_message=result.error_message,
            )
        except Exception as exc:
            session.rollback()
            error_code = getattr(exc, "code", UNHANDLED_CODE)
            logger.error(
                "batch_item_failed",
                extra={"item_key": item.item_key, "error_code": error_code},
                exc_info=True,
            )
            return BatchItemResult(
                item_index=item.item_index,
                item_key=item.item_key,
                status=BatchItemStatus.FAILED,
                error_code=error_code,
                error_message=str(exc),
            )
        finally:
            session.close()

    def _worker_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._item_workers,
                    thread_name_prefix="batch-item",
                )
            return self._pool

    @staticmethod
    def _summarize(
        run_id,
        task_type: str,
        as_of,
        total: int,
        results: list[BatchItemResult],
        start_time: float,
    ) -> BatchRunResult:
        counts = {status: 0 for status in BatchItemStatus}
        for r in results:
            counts[r.status] += 1
        failed = counts[BatchItemStatus.FAILED]
        timed_out = counts[BatchItemStatus.TIMED_OUT]

        if total == 0:
            status = BatchRunStatus.EMPTY
        elif failed + timed_out == 0:
            status = BatchRunStatus.COMPLETED
        elif failed + timed_out == len(results):
            status = BatchRunStatus.FAILED
        else:
            status = BatchRunStatus.PARTIALLY_COMPLETED

        return BatchRunResult(
            run_id=run_id,
            task_type=task_type,
            status=status,
            started_at=as_of,
            total_items=total,
            succeeded=counts[BatchItemStatus.SUCCEEDED],
            failed=failed,
            skipped=counts[BatchItemStatus.SKIPPED],
            timed_out=timed_out,
            item_results=tuple(results),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
