"""
Auction closing task.

Awards every open quotation whose bidding window has elapsed to its
lowest pending bid.  Quotations that cannot be awarded right now (no
bids yet, or awarded by someone else in the meantime) are skipped and
looked at again on the next run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from escrow_kernel.domain.clock import Clock
from escrow_kernel.domain.types import EscrowTerms
from escrow_kernel.exceptions import (
    AlreadyAwardedError,
    AuctionDisabledError,
    AuctionWindowOpenError,
    NoPendingBidsError,
    QuotationNotOpenError,
)
from escrow_kernel.logging_config import get_logger
from escrow_kernel.selectors.quotation_selector import QuotationSelector
from escrow_kernel.services.award_engine import AwardEngine
from escrow_kernel.services.notifier import NotificationDispatcher
from escrow_kernel.services.settings_service import SettingsService

from escrow_batch.domain.types import BatchItemStatus
from escrow_batch.tasks.base import BatchItemInput, BatchTaskResult

logger = get_logger("batch.tasks.auction")

# Outcomes that mean "nothing to do for this quotation this time round".
_SKIP_ERRORS = (
    NoPendingBidsError,
    AlreadyAwardedError,
    QuotationNotOpenError,
    AuctionWindowOpenError,
    AuctionDisabledError,
)


class AuctionCloseTask:
    """Automatic award of expired auctions."""

    TASK_TYPE = "auction.close_expired"

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
        return "Award expired auctions to their lowest bid"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        settings = SettingsService(
            session, self._clock, terms=self._terms, auto_commit=False
        ).current()
        if not settings.auction_enabled:
            logger.info("auction_close_disabled")
            return ()

        quotation_ids = QuotationSelector(session).expired_open_ids(
            as_of, self._terms.auction_window
        )
        return tuple(
            BatchItemInput(item_index=i, item_key=str(qid))
            for i, qid in enumerate(quotation_ids)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        engine = AwardEngine(
            session, self._clock, dispatcher=self._dispatcher, terms=self._terms
        )
        try:
            result = engine.award_automatically(item.item_key)
        except _SKIP_ERRORS as exc:
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code=exc.code,
                error_message=str(exc),
            )
        return BatchTaskResult(
            status=BatchItemStatus.SUCCEEDED,
            result_data={
                "bid_id": str(result.bid_id),
                "supplier_id": str(result.supplier_id),
                "settlement_price": str(result.settlement_price),
            },
        )
