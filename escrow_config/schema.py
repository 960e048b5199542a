"""
Configuration schema (``escrow_config.schema``).

Frozen dataclasses for the escrow policy.  Pure data, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class OperatorDef:
    """Where operator-facing notifications and emails go."""

    recipient_id: str = "admin"
    email: str | None = None


@dataclass(frozen=True)
class SchedulerDef:
    """Cadence and per-item bounds of the recurring tasks."""

    escrow_release_interval_seconds: int = 3600
    auction_close_interval_seconds: int = 21600
    item_timeout_seconds: float | None = 30.0
    item_workers: int = 4


@dataclass(frozen=True)
class EscrowPolicy:
    """
    The complete, validated escrow policy.

    Built only by ``escrow_config.get_active_policy()``.
    """

    config_id: str
    version: int
    commission_percent: Decimal = Decimal("10")
    auction_enabled: bool = True
    auction_window_hours: float = 6
    escrow_hold_days: float = 5
    operator: OperatorDef = field(default_factory=OperatorDef)
    scheduler: SchedulerDef = field(default_factory=SchedulerDef)
    database_url: str | None = None
    checksum: str = ""
