"""Batch execution and scheduling services."""

from escrow_batch.services.executor import ITEM_TIMEOUT_CODE, BatchExecutor
from escrow_batch.services.scheduler import RecurringTaskScheduler

__all__ = ["BatchExecutor", "ITEM_TIMEOUT_CODE", "RecurringTaskScheduler"]
