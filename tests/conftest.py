"""
Pytest fixtures for the escrow engine test suite.

Provides:
- A file-backed SQLite database per test (file-backed so that several
  threads can share it in the concurrency tests)
- A deterministic clock, in-memory notification and email sinks
- Service fixtures wired to all of the above
- Builders for quotations, bids and awarded bids
- Structured log capture

Timestamps are naive: SQLite hands back naive datetimes, and the services
compare stored values with the clock.
"""

import json
import logging
from datetime import datetime
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from escrow_kernel.db.engine import build_engine, create_tables
from escrow_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from escrow_kernel.domain.clock import DeterministicClock
from escrow_kernel.domain.types import EscrowTerms, OperatorContact
from escrow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from escrow_kernel.services.award_engine import AwardEngine
from escrow_kernel.services.bid_registry import BidRegistry
from escrow_kernel.services.dispute_gate import DisputeGate
from escrow_kernel.services.escrow_service import EscrowService
from escrow_kernel.services.notifier import (
    InMemoryEmailSink,
    InMemoryNotificationSink,
    NotificationDispatcher,
)
from escrow_kernel.services.quotation_service import QuotationService
from escrow_kernel.services.settings_service import SettingsService

START_TIME = datetime(2026, 3, 1, 9, 0, 0)
OPERATOR_EMAIL = "ops@example.com"
REQUESTER_EMAIL = "customer@example.com"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture escrow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, award_engine):
            award_engine.award_bid(...)
            logs = captured_logs()
            assert any(r["message"] == "quotation_awarded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("escrow_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    db_engine = build_engine(f"sqlite:///{tmp_path / 'escrow.db'}")
    create_tables(db_engine)
    register_immutability_listeners()
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    db_session = session_factory()
    yield db_session
    db_session.rollback()
    db_session.close()


@pytest.fixture
def without_immutability():
    """Disable the ORM guards for a test that needs to bypass them."""
    unregister_immutability_listeners()
    yield
    register_immutability_listeners()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(START_TIME)


@pytest.fixture
def notification_sink():
    return InMemoryNotificationSink()


@pytest.fixture
def email_sink():
    return InMemoryEmailSink()


@pytest.fixture
def dispatcher(notification_sink, email_sink):
    return NotificationDispatcher(notification_sink, email_sink)


@pytest.fixture
def terms():
    return EscrowTerms(
        operator=OperatorContact(recipient_id="admin", email=OPERATOR_EMAIL),
    )


@pytest.fixture
def test_actor_id() -> UUID:
    return uuid4()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def service_kwargs(deterministic_clock, dispatcher, terms):
    return {"clock": deterministic_clock, "dispatcher": dispatcher, "terms": terms}


@pytest.fixture
def quotation_service(session, service_kwargs):
    return QuotationService(session, **service_kwargs)


@pytest.fixture
def bid_registry(session, service_kwargs):
    return BidRegistry(session, **service_kwargs)


@pytest.fixture
def award_engine(session, service_kwargs):
    return AwardEngine(session, **service_kwargs)


@pytest.fixture
def escrow_service(session, service_kwargs):
    return EscrowService(session, **service_kwargs)


@pytest.fixture
def dispute_gate(session, service_kwargs):
    return DisputeGate(session, **service_kwargs)


@pytest.fixture
def settings_service(session, service_kwargs):
    return SettingsService(session, **service_kwargs)


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def create_quotation(quotation_service):
    """Register an open quotation and return its id."""

    def _create(category="moving_service", requester_id=None, **kwargs):
        kwargs.setdefault("requester_email", REQUESTER_EMAIL)
        return quotation_service.register_quotation(
            requester_id or uuid4(), category, **kwargs
        )

    return _create


@pytest.fixture
def submit_bid(bid_registry):
    """Submit a bid from a fresh supplier unless one is given; returns the bid id."""

    def _submit(quotation_id, price, supplier_id=None, **kwargs):
        supplier_id = supplier_id or uuid4()
        kwargs.setdefault("supplier_email", f"supplier-{supplier_id}@example.com")
        return bid_registry.submit_bid(quotation_id, supplier_id, price, **kwargs)

    return _submit


@pytest.fixture
def awarded_bid(create_quotation, submit_bid, award_engine, test_actor_id):
    """An awarded quotation: winner at 500 with 15% commission, one loser at 650."""
    quotation_id = create_quotation()
    winner_id = submit_bid(quotation_id, "500")
    submit_bid(quotation_id, "650")
    return award_engine.award_bid(quotation_id, winner_id, "15", test_actor_id)


@pytest.fixture
def captured_bid(awarded_bid, escrow_service, test_actor_id):
    """The awarded bid with its payment captured into escrow."""
    escrow_service.capture_payment(awarded_bid.bid_id, test_actor_id, "pi_test_123")
    return awarded_bid
