"""Kernel services: every state transition of the bid lifecycle lives here."""

from escrow_kernel.services.award_engine import AwardEngine
from escrow_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from escrow_kernel.services.bid_registry import BidRegistry
from escrow_kernel.services.dispute_gate import DisputeGate
from escrow_kernel.services.escrow_service import EscrowService
from escrow_kernel.services.notifier import (
    EmailSink,
    InMemoryEmailSink,
    InMemoryNotificationSink,
    NotificationDispatcher,
    NotificationSink,
    Outbox,
)
from escrow_kernel.services.quotation_service import QuotationService
from escrow_kernel.services.settings_service import SettingsService

__all__ = [
    "AwardEngine",
    "BaseService",
    "BidRegistry",
    "DisputeGate",
    "EmailSink",
    "EscrowService",
    "InMemoryEmailSink",
    "InMemoryNotificationSink",
    "NotificationDispatcher",
    "NotificationSink",
    "Outbox",
    "QuotationService",
    "SYSTEM_ACTOR_ID",
    "SettingsService",
]
