"""
Escrow release task.

Moves every hold that has matured into the completed state.  The service
performs the release as a conditional update, so an item already released
by a concurrent run reports ``released=False`` and is skipped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from escrow_kernel.domain.clock import Clock
from escrow_kernel.domain.types import EscrowTerms
from escrow_kernel.selectors.bid_selector import BidSelector
from escrow_kernel.services.escrow_service import EscrowService
from escrow_kernel.services.notifier import NotificationDispatcher

from escrow_batch.domain.types import BatchItemStatus
from escrow_batch.tasks.base import BatchItemInput, BatchTaskResult


class EscrowReleaseTask:
    """Release of matured escrow holds."""

    TASK_TYPE = "escrow.release_matured"

    def __init__(
        self,
        clock: Clock,
        dispatcher: NotificationDispatcher,
        terms: EscrowTerms,
    ) -> None:
        self._clock = clock
        self._dispatcher = dispatcher
        self._terms = terms

    @property
    def task_type(self) -> str:
        return self.TASK_TYPE

    @property
    def description(self) -> str:
        return "Release escrow holds whose hold period has ended"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        bid_ids = BidSelector(session).matured_escrow_ids(as_of)
        return tuple(
            BatchItemInput(item_index=i, item_key=str(bid_id))
            for i, bid_id in enumerate(bid_ids)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        service = EscrowService(
            session, self._clock, dispatcher=self._dispatcher, terms=self._terms
        )
        result = service.release(item.item_key, as_of)
        if not result.released:
            return BatchTaskResult(status=BatchItemStatus.SKIPPED)
        data = {"released_at": result.released_at.isoformat()}
        if result.open_dispute_id is not None:
            data["open_dispute_id"] = str(result.open_dispute_id)
        return BatchTaskResult(status=BatchItemStatus.SUCCEEDED, result_data=data)
