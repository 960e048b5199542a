"""
escrow_kernel.domain.types -- Pure frozen dataclasses returned by the services.

ZERO I/O.  Services never hand ORM rows to callers; they return these
immutable snapshots, built after the transition has been flushed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class RecipientType(str, Enum):
    """Who an in-app notification is addressed to."""

    ADMIN = "admin"
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


# =============================================================================
# Notification DTOs
# =============================================================================


@dataclass(frozen=True)
class Notification:
    """An in-app notification, delivered through a NotificationSink."""

    recipient_id: str
    recipient_type: RecipientType
    title: str
    message: str
    event_type: str
    reference_id: str | None = None
    reference_type: str | None = None


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email; templating beyond subject and body is external."""

    subject: str
    html: str


@dataclass(frozen=True)
class OutboundEmail:
    address: str
    message: EmailMessage


# =============================================================================
# Selection input
# =============================================================================


@dataclass(frozen=True)
class BidCandidate:
    """The fields winner selection looks at, detached from the ORM row."""

    bid_id: UUID
    supplier_id: UUID
    bid_price: Decimal
    submitted_at: datetime


# =============================================================================
# Operation results
# =============================================================================


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a successful award."""

    quotation_id: UUID
    bid_id: UUID
    supplier_id: UUID
    bid_price: Decimal
    commission_percent: Decimal
    settlement_price: Decimal
    award_mode: str
    awarded_at: datetime
    escrow_release_at: datetime
    commission_record_id: UUID
    rejected_bid_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class CloseResult:
    """Outcome of withdrawing an open quotation."""

    quotation_id: UUID
    closed_at: datetime
    rejected_bid_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of moving a payment into escrow."""

    bid_id: UUID
    payment_reference: str | None
    settlement_price: Decimal
    captured_at: datetime
    escrow_release_at: datetime


@dataclass(frozen=True)
class ReleaseResult:
    """Outcome of releasing one matured escrow hold.

    ``released`` is False when another worker got there first; nothing was
    written and no notifications went out.
    """

    bid_id: UUID
    released: bool
    released_at: datetime | None = None
    open_dispute_id: UUID | None = None


@dataclass(frozen=True)
class DisbursementResult:
    """Outcome of marking funds disbursed.

    ``open_dispute_id`` is set when an unresolved dispute exists on the bid.
    Disputes are advisory; the disbursement went through regardless.
    """

    bid_id: UUID
    supplier_id: UUID
    settlement_price: Decimal
    disbursed_at: datetime
    open_dispute_id: UUID | None = None

    @property
    def has_open_dispute(self) -> bool:
        return self.open_dispute_id is not None


@dataclass(frozen=True)
class EarningsSummary:
    """A supplier's accepted work grouped by disbursement status."""

    supplier_id: UUID
    totals: dict[str, Decimal] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)

    def total_for(self, status: str) -> Decimal:
        return self.totals.get(status, Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "supplier_id": str(self.supplier_id),
            "totals": {k: str(v) for k, v in self.totals.items()},
            "counts": dict(self.counts),
        }


# =============================================================================
# Engine terms
# =============================================================================


@dataclass(frozen=True)
class OperatorContact:
    """Where operator-facing notices go."""

    recipient_id: str = "admin"
    email: str | None = None


@dataclass(frozen=True)
class EscrowTerms:
    """
    The policy values the kernel services need, already validated.

    Built from the active configuration by ``escrow_config`` so that the
    kernel never reads configuration itself.
    """

    escrow_hold: timedelta = timedelta(days=5)
    auction_window: timedelta = timedelta(hours=6)
    default_commission_percent: Decimal = Decimal("10")
    default_auction_enabled: bool = True
    operator: OperatorContact = field(default_factory=OperatorContact)


@dataclass(frozen=True)
class PlatformSettings:
    """Runtime switches operators change without a deploy."""

    auction_enabled: bool
    commission_percent: Decimal
