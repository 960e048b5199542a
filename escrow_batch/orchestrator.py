"""
EscrowOrchestrator -- DI container for the escrow engine.

Contract:
    Composes terms, clock, notification dispatcher, task registry,
    executor and scheduler from one EscrowPolicy.  Also hands out kernel
    services bound to a caller's session so that the request-handling
    layer and the scheduler share one clock, one dispatcher and one set
    of terms.

Architecture: escrow_batch (top-level).  The only module that reads both
    escrow_config and escrow_kernel.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from escrow_config import EscrowPolicy, build_escrow_terms
from escrow_kernel.domain.clock import Clock, SystemClock
from escrow_kernel.domain.types import EscrowTerms
from escrow_kernel.logging_config import get_logger
from escrow_kernel.services.award_engine import AwardEngine
from escrow_kernel.services.bid_registry import BidRegistry
from escrow_kernel.services.dispute_gate import DisputeGate
from escrow_kernel.services.escrow_service import EscrowService
from escrow_kernel.services.notifier import (
    EmailSink,
    NotificationDispatcher,
    NotificationSink,
)
from escrow_kernel.services.quotation_service import QuotationService
from escrow_kernel.services.settings_service import SettingsService

from escrow_batch.domain.types import RecurringJob
from escrow_batch.services.executor import BatchExecutor
from escrow_batch.services.scheduler import RecurringTaskScheduler
from escrow_batch.tasks.auction_tasks import AuctionCloseTask
from escrow_batch.tasks.base import TaskRegistry
from escrow_batch.tasks.escrow_tasks import EscrowReleaseTask

logger = get_logger("batch.orchestrator")

DEFAULT_POLL_INTERVAL_SECONDS = 60.0


class EscrowOrchestrator:
    """DI container for services, tasks and the scheduler.

    Non-goals:
        - Does NOT start the scheduler automatically.
        - Does NOT manage the lifecycle of sessions handed to service
          factories.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        terms: EscrowTerms,
        clock: Clock | None = None,
        dispatcher: NotificationDispatcher | None = None,
        release_interval_seconds: float = 3600,
        auction_close_interval_seconds: float = 21600,
        item_timeout_seconds: float | None = 30.0,
        item_workers: int = 4,
    ) -> None:
        self._session_factory = session_factory
        self._terms = terms
        self._clock = clock or SystemClock()
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._release_interval = release_interval_seconds
        self._close_interval = auction_close_interval_seconds
        self._item_timeout = item_timeout_seconds
        self._item_workers = item_workers
        self._task_registry = self._build_registry()

    @classmethod
    def from_policy(
        cls,
        policy: EscrowPolicy,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        notification_sink: NotificationSink | None = None,
        email_sink: EmailSink | None = None,
    ) -> EscrowOrchestrator:
        """Create a fully wired orchestrator from a loaded policy."""
        return cls(
            session_factory=session_factory,
            terms=build_escrow_terms(policy),
            clock=clock,
            dispatcher=NotificationDispatcher(notification_sink, email_sink),
            release_interval_seconds=policy.scheduler.escrow_release_interval_seconds,
            auction_close_interval_seconds=policy.scheduler.auction_close_interval_seconds,
            item_timeout_seconds=policy.scheduler.item_timeout_seconds,
            item_workers=policy.scheduler.item_workers,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def terms(self) -> EscrowTerms:
        return self._terms

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def quotation_service(self, session: Session) -> QuotationService:
        return QuotationService(session, self._clock, self._dispatcher, self._terms)

    def bid_registry(self, session: Session) -> BidRegistry:
        return BidRegistry(session, self._clock, self._dispatcher, self._terms)

    def award_engine(self, session: Session) -> AwardEngine:
        return AwardEngine(session, self._clock, self._dispatcher, self._terms)

    def escrow_service(self, session: Session) -> EscrowService:
        return EscrowService(session, self._clock, self._dispatcher, self._terms)

    def dispute_gate(self, session: Session) -> DisputeGate:
        return DisputeGate(session, self._clock, self._dispatcher, self._terms)

    def settings_service(self, session: Session) -> SettingsService:
        return SettingsService(session, self._clock, self._dispatcher, self._terms)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def create_executor(self) -> BatchExecutor:
        return BatchExecutor(
            session_factory=self._session_factory,
            task_registry=self._task_registry,
            clock=self._clock,
            item_timeout_seconds=self._item_timeout,
            item_workers=self._item_workers,
        )

    def create_scheduler(
        self, poll_interval_seconds: float | None = None
    ) -> RecurringTaskScheduler:
        """Scheduler with the escrow-release and auction-close jobs added."""
        release = RecurringJob(
            task_type=EscrowReleaseTask.TASK_TYPE,
            interval_seconds=self._release_interval,
        )
        close = RecurringJob(
            task_type=AuctionCloseTask.TASK_TYPE,
            interval_seconds=self._close_interval,
        )
        poll = poll_interval_seconds or min(
            DEFAULT_POLL_INTERVAL_SECONDS,
            release.interval_seconds,
            close.interval_seconds,
        )
        scheduler = RecurringTaskScheduler(
            executor=self.create_executor(),
            clock=self._clock,
            poll_interval_seconds=poll,
        )
        scheduler.add_job(release)
        scheduler.add_job(close)
        logger.info(
            "scheduler_configured",
            extra={
                "poll_interval": poll,
                "release_interval": release.interval_seconds,
                "auction_close_interval": close.interval_seconds,
            },
        )
        return scheduler

    def _build_registry(self) -> TaskRegistry:
        registry = TaskRegistry()
        registry.register(EscrowReleaseTask(self._clock, self._dispatcher, self._terms))
        registry.register(AuctionCloseTask(self._clock, self._dispatcher, self._terms))
        return registry
