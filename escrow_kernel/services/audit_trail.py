"""
AuditTrail -- append-only record of lifecycle transitions.

Flush-only helper: rows are added to the caller's transaction so that a
rolled-back transition never leaves an audit row behind.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from escrow_kernel.domain.clock import Clock
from escrow_kernel.models.audit_event import AuditAction, AuditEvent


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditTrail:
    def __init__(self, session: Session, clock: Clock):
        self._session = session
        self._clock = clock

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID | None,
        **payload: Any,
    ) -> AuditEvent:
        event = AuditEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=_jsonable(payload) or None,
        )
        self._session.add(event)
        return event
