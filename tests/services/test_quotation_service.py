"""
Tests for QuotationService.register_quotation.
"""

from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from escrow_kernel.exceptions import InvalidCategoryError
from escrow_kernel.models.audit_event import AuditAction, AuditEvent
from escrow_kernel.models.quotation import QuotationCategory, QuotationModel, QuotationStatus


class TestRegisterQuotation:
    def test_opens_quotation_at_clock_time(
        self, quotation_service, session, deterministic_clock
    ):
        requester = uuid4()
        qid = quotation_service.register_quotation(
            requester,
            "junk_removal",
            requester_email="req@example.com",
            details={"rooms": 3},
        )

        quotation = session.get(QuotationModel, qid)
        assert isinstance(qid, UUID)
        assert quotation.status == QuotationStatus.OPEN
        assert quotation.category == QuotationCategory.JUNK_REMOVAL
        assert quotation.created_at == deterministic_clock.now()
        assert quotation.requester_id == requester
        assert quotation.details == {"rooms": 3}

    @pytest.mark.parametrize("category", [c.value for c in QuotationCategory])
    def test_every_category_shares_the_lifecycle(self, quotation_service, category):
        assert quotation_service.register_quotation(uuid4(), category)

    def test_unknown_category_rejected(self, quotation_service, session):
        with pytest.raises(InvalidCategoryError) as exc_info:
            quotation_service.register_quotation(uuid4(), "piano_tuning")
        assert exc_info.value.code == "INVALID_CATEGORY"
        assert session.execute(select(QuotationModel)).first() is None

    def test_registration_is_audited(self, quotation_service, session):
        requester = uuid4()
        qid = quotation_service.register_quotation(requester, "storage")

        events = session.execute(
            select(AuditEvent).where(AuditEvent.entity_id == qid)
        ).scalars().all()
        assert [e.action for e in events] == [AuditAction.QUOTATION_REGISTERED]
        assert events[0].actor_id == requester
        assert events[0].payload["category"] == "storage"
