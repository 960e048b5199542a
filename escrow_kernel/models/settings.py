"""
Module: escrow_kernel.models.settings
Responsibility: Runtime platform settings changed by operators.
Architecture position: Kernel > Models.  May import from db/base.py only.

A single row keyed by ``key`` (normally ``"default"``).  Seeded from the
active EscrowPolicy the first time it is read.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from escrow_kernel.db.base import TrackedBase

DEFAULT_SETTINGS_KEY = "default"


class PlatformSettingsModel(TrackedBase):
    """Auction toggle and the commission used by the automatic closer."""

    __tablename__ = "platform_settings"

    __table_args__ = (UniqueConstraint("key", name="uq_platform_settings_key"),)

    key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=DEFAULT_SETTINGS_KEY,
    )

    auction_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    commission_percent: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<PlatformSettings auction_enabled={self.auction_enabled} "
            f"commission={self.commission_percent}%>"
        )
