"""
SettingsService -- runtime platform switches.

The ``platform_settings`` row holds the auction toggle and the commission
percentage the automatic auction closer applies.  Until an operator first
changes a value, the defaults from the active EscrowTerms apply; the row is
written lazily on the first change.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from escrow_kernel.domain.pricing import parse_commission
from escrow_kernel.domain.types import PlatformSettings
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.settings import DEFAULT_SETTINGS_KEY, PlatformSettingsModel
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import BaseService

logger = get_logger("services.settings")


class SettingsService(BaseService):
    """
    Service for the platform switches read by the auction closer.

    Contract:
        ``current`` never writes.  The setters validate, commit, and return
        the effective ``PlatformSettings``.

    Guarantees:
        - Every change is audited with the acting operator.
    """

    def _row(self) -> PlatformSettingsModel | None:
        return self.session.execute(
            select(PlatformSettingsModel).where(
                PlatformSettingsModel.key == DEFAULT_SETTINGS_KEY
            )
        ).scalar_one_or_none()

    def current(self) -> PlatformSettings:
        """Effective settings.  Read-only; never writes the defaults."""
        row = self._row()
        if row is None:
            return PlatformSettings(
                auction_enabled=self.terms.default_auction_enabled,
                commission_percent=self.terms.default_commission_percent,
            )
        return PlatformSettings(
            auction_enabled=row.auction_enabled,
            commission_percent=row.commission_percent,
        )

    def set_auction_enabled(self, enabled: bool, actor_id: UUID) -> PlatformSettings:
        """Turn the automatic auction closer on or off."""
        return self._update(actor_id, auction_enabled=bool(enabled))

    def set_commission_percent(self, percent, actor_id: UUID) -> PlatformSettings:
        """Change the commission the automatic closer applies to new awards."""
        return self._update(actor_id, commission_percent=parse_commission(percent))

    def _update(self, actor_id: UUID, **changes) -> PlatformSettings:
        with LogContext.bind(actor_id=actor_id):
            with self._transition("update_settings"):
                row = self._row()
                if row is None:
                    row = PlatformSettingsModel(
                        key=DEFAULT_SETTINGS_KEY,
                        auction_enabled=self.terms.default_auction_enabled,
                        commission_percent=self.terms.default_commission_percent,
                        created_at=self.clock.now(),
                        created_by_id=actor_id,
                    )
                    self.session.add(row)
                for name, value in changes.items():
                    setattr(row, name, value)
                row.updated_by_id = actor_id
                self.session.flush()
                AuditTrail(self.session, self.clock).record(
                    "PlatformSettings",
                    row.id,
                    AuditAction.SETTINGS_CHANGED,
                    actor_id,
                    **changes,
                )
                self._commit()

            settings = PlatformSettings(
                auction_enabled=row.auction_enabled,
                commission_percent=Decimal(row.commission_percent),
            )
            logger.info(
                "platform_settings_changed",
                extra={
                    "auction_enabled": settings.auction_enabled,
                    "commission_percent": str(settings.commission_percent),
                },
            )
            return settings
