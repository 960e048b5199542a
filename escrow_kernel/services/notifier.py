"""
Notification ports and the best-effort dispatcher.

Responsibility:
    Defines the two outbound ports the engine talks to (in-app
    notifications and email) and delivers an ``Outbox`` of messages
    through them once a transition has committed.

Invariants enforced:
    - Delivery never fails a transition.  A sink that raises is logged as
      a NotificationError (code NOTIFICATION_FAILED) and the remaining
      messages are still delivered.
    - The dispatcher is only ever called after commit; a rolled-back
      transition produces no messages.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from escrow_kernel.domain.types import (
    EmailMessage,
    Notification,
    OutboundEmail,
    RecipientType,
)
from escrow_kernel.exceptions import NotificationError
from escrow_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


@runtime_checkable
class NotificationSink(Protocol):
    """In-app notification port."""

    def notify(
        self,
        recipient_id: str,
        recipient_type: str,
        title: str,
        message: str,
        event_type: str,
        reference_id: str | None = None,
        reference_type: str | None = None,
    ) -> None: ...


@runtime_checkable
class EmailSink(Protocol):
    """Email port.  Rendering beyond subject and body is the sink's concern."""

    def send_email(self, address: str, message: EmailMessage) -> None: ...


@dataclass
class Outbox:
    """Messages produced by one transition, delivered after it commits."""

    notifications: list[Notification] = field(default_factory=list)
    emails: list[OutboundEmail] = field(default_factory=list)

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def email(self, address: str | None, message: EmailMessage) -> None:
        # Contacts without an address on file get the in-app message only
        if address:
            self.emails.append(OutboundEmail(address=address, message=message))

    def __len__(self) -> int:
        return len(self.notifications) + len(self.emails)


class LoggingNotificationSink:
    """Writes notifications to the structured log.  Default when none is wired."""

    def notify(
        self,
        recipient_id,
        recipient_type,
        title,
        message,
        event_type,
        reference_id=None,
        reference_type=None,
    ):
        logger.info(
            "notification_sent",
            extra={
                "recipient_id": recipient_id,
                "recipient_type": recipient_type,
                "title": title,
                "event_type": event_type,
                "reference_id": reference_id,
                "reference_type": reference_type,
            },
        )


class LoggingEmailSink:
    """Writes email subjects to the structured log."""

    def send_email(self, address, message):
        logger.info(
            "email_sent",
            extra={"address": address, "subject": message.subject},
        )


class InMemoryNotificationSink:
    """Keeps every notification in a list.  Thread-safe."""

    def __init__(self):
        self._lock = threading.Lock()
        self.notifications: list[Notification] = []

    def notify(
        self,
        recipient_id,
        recipient_type,
        title,
        message,
        event_type,
        reference_id=None,
        reference_type=None,
    ):
        with self._lock:
            self.notifications.append(
                Notification(
                    recipient_id=recipient_id,
                    recipient_type=RecipientType(recipient_type),
                    title=title,
                    message=message,
                    event_type=event_type,
                    reference_id=reference_id,
                    reference_type=reference_type,
                )
            )

    def for_recipient(self, recipient_id: str) -> list[Notification]:
        with self._lock:
            return [n for n in self.notifications if n.recipient_id == recipient_id]

    def titles(self) -> list[str]:
        with self._lock:
            return [n.title for n in self.notifications]


class InMemoryEmailSink:
    """Keeps every email in a list.  Thread-safe."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: list[OutboundEmail] = []

    def send_email(self, address, message):
        with self._lock:
            self.sent.append(OutboundEmail(address=address, message=message))

    def to(self, address: str) -> list[EmailMessage]:
        with self._lock:
            return [e.message for e in self.sent if e.address == address]


class NotificationDispatcher:
    """
    Delivers an Outbox through the configured sinks, best-effort.

    Each message is attempted independently; failures are logged and
    counted, never raised.
    """

    def __init__(
        self,
        notification_sink: NotificationSink | None = None,
        email_sink: EmailSink | None = None,
    ):
        self._notification_sink = notification_sink or LoggingNotificationSink()
        self._email_sink = email_sink or LoggingEmailSink()

    def dispatch(self, outbox: Outbox) -> int:
        """Deliver every message.  Returns the number of failed deliveries."""
        failures = 0
        for n in outbox.notifications:
            try:
                self._notification_sink.notify(
                    recipient_id=n.recipient_id,
                    recipient_type=RecipientType(n.recipient_type).value,
                    title=n.title,
                    message=n.message,
                    event_type=n.event_type,
                    reference_id=n.reference_id,
                    reference_type=n.reference_type,
                )
            except Exception as exc:
                failures += 1
                self._log_failure(
                    NotificationError("notification", n.recipient_id, str(exc))
                )
        for e in outbox.emails:
            try:
                self._email_sink.send_email(e.address, e.message)
            except Exception as exc:
                failures += 1
                self._log_failure(NotificationError("email", e.address, str(exc)))
        return failures

    @staticmethod
    def _log_failure(error: NotificationError) -> None:
        logger.warning(
            "notification_delivery_failed",
            extra={
                "error_code": error.code,
                "channel": error.channel,
                "recipient": error.recipient,
                "reason": error.reason,
            },
        )
