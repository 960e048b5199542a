"""Batch task implementations and the registry they are looked up in."""

from escrow_batch.tasks.auction_tasks import AuctionCloseTask
from escrow_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)
from escrow_batch.tasks.escrow_tasks import EscrowReleaseTask

__all__ = [
    "AuctionCloseTask",
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "EscrowReleaseTask",
    "TaskRegistry",
    "default_task_registry",
]
