"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and transaction contract for every
    service in the kernel layer.  A service receives a SQLAlchemy
    ``Session`` and an injected ``Clock``.

Transaction contract:
    Helper services (AuditTrail, settings lookups) only ever ``flush()``.
    Top-level operations (submit_bid, award_bid, ...) run their writes in
    ``with self._transition(...)``, ending with ``self._commit()``, and
    then call ``self._notify(outbox)``.
    When ``auto_commit=True`` (the default) the service owns the
    transaction: it commits on success, rolls back on failure, and only
    after the commit hands notifications to the dispatcher.  With
    ``auto_commit=False`` the caller owns the transaction and must call
    ``dispatch_pending()`` after its own commit.

Failure modes:
    - A store failure inside a transition is rolled back and surfaced as a
      PersistenceError (or the subclass the operation asks for) with the
      SQLAlchemy error chained.
"""

from abc import ABC
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from escrow_kernel.domain.clock import Clock, SystemClock
from escrow_kernel.domain.types import EscrowTerms
from escrow_kernel.exceptions import EscrowKernelError, PersistenceError
from escrow_kernel.logging_config import get_logger
from escrow_kernel.services.notifier import NotificationDispatcher, Outbox

logger = get_logger("services.base")

# Actor recorded for transitions the scheduler performs.
SYSTEM_ACTOR_ID = UUID(int=0)


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a ``Session`` from the caller and persists changes with
        ``session.flush()``.  Only ``_transition`` and ``_commit`` end a
        transaction, and only when ``auto_commit`` is True.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        dispatcher: NotificationDispatcher | None = None,
        terms: EscrowTerms | None = None,
        auto_commit: bool = True,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._terms = terms or EscrowTerms()
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._auto_commit = auto_commit
        self._pending: list[Outbox] = []

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def terms(self) -> EscrowTerms:
        return self._terms

    @contextmanager
    def _transition(
        self,
        operation: str,
        persistence_error: Callable[[str], PersistenceError] | None = None,
    ) -> Iterator[None]:
        """
        Scope for the writes of one operation.

        Any exception rolls back (when owning the transaction).  SQLAlchemy
        errors are re-raised as ``persistence_error(reason)``, defaulting
        to a plain PersistenceError.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error(
                "transition_persistence_failed",
                extra={"operation": operation},
                exc_info=True,
            )
            if persistence_error is not None:
                raise persistence_error(str(exc)) from exc
            raise PersistenceError(operation, str(exc)) from exc
        except EscrowKernelError as exc:
            self._rollback()
            logger.info(
                "transition_rejected",
                extra={"operation": operation, "error_code": exc.code},
            )
            raise
        except Exception:
            self._rollback()
            raise

    def _rollback(self) -> None:
        if self._auto_commit:
            self.session.rollback()

    def _commit(self) -> None:
        if self._auto_commit:
            self.session.commit()

    def _notify(self, outbox: Outbox) -> None:
        """Deliver now when the commit already happened, else hold back."""
        if self._auto_commit:
            self._dispatcher.dispatch(outbox)
        else:
            self._pending.append(outbox)

    def dispatch_pending(self) -> int:
        """
        Deliver notifications held back while the caller owned the
        transaction.  Call after the caller's commit.  Returns the number
        of deliveries that failed.
        """
        failures = 0
        pending, self._pending = self._pending, []
        for outbox in pending:
            failures += self._dispatcher.dispatch(outbox)
        return failures


def coerce_uuid(value: object) -> UUID | None:
    """Accept a UUID or its string form; anything else is None."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def status_value(status: object) -> str:
    """Plain string form of a status, whether loaded from the store or an enum."""
    return str(getattr(status, "value", status))
