"""
QuotationService -- registers open quotations.

Intake forms live outside the engine; this is the boundary they call once a
request has been captured.  Every category shares the same lifecycle.
"""

from uuid import UUID

from escrow_kernel.exceptions import InvalidCategoryError
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.quotation import (
    QuotationCategory,
    QuotationModel,
    QuotationStatus,
)
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import BaseService

logger = get_logger("services.quotation")


class QuotationService(BaseService):
    """
    Service for opening quotations.

    Contract:
        ``register_quotation`` returns the id of an ``open`` quotation.

    Guarantees:
        - The category is validated before any store access.
    """

    def register_quotation(
        self,
        requester_id: UUID,
        category: QuotationCategory | str,
        requester_email: str | None = None,
        details: dict | None = None,
    ) -> UUID:
        """
        Open a quotation for bidding.

        ``created_at`` comes from the injected clock and anchors the
        automatic auction window.

        Raises:
            InvalidCategoryError: ``category`` is not a known category.
        """
        try:
            category = QuotationCategory(category)
        except ValueError:
            raise InvalidCategoryError(category) from None

        with LogContext.bind(actor_id=requester_id):
            with self._transition("register_quotation"):
                quotation = QuotationModel(
                    category=category,
                    requester_id=requester_id,
                    requester_email=requester_email,
                    status=QuotationStatus.OPEN,
                    details=details,
                    created_at=self.clock.now(),
                    created_by_id=requester_id,
                )
                self.session.add(quotation)
                self.session.flush()
                AuditTrail(self.session, self.clock).record(
                    "Quotation",
                    quotation.id,
                    AuditAction.QUOTATION_REGISTERED,
                    requester_id,
                    category=category,
                )
                self._commit()

            logger.info(
                "quotation_registered",
                extra={"quotation_id": str(quotation.id), "category": category.value},
            )
            return quotation.id
