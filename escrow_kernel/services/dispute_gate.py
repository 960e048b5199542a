"""
DisputeGate -- files disputes against awarded bids and tracks their review.

Responsibility:
    ``file_dispute`` opens at most one dispute per accepted bid;
    ``update_dispute_status`` moves it forward through
    pending -> under_review -> resolved.

Invariants enforced:
    - One dispute per bid: checked up front, and backed by the unique
      constraint on ``disputes.bid_id`` for concurrent filers.
    - Status only moves forward.  Skipping ``under_review`` is allowed;
      going back or "moving" to the current status is rejected.  The move is
      an UPDATE guarded on the status just read, retried while it loses.
    - Advisory only.  Nothing here touches payment or disbursement state,
      and no scheduler ever changes a dispute.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from escrow_kernel.exceptions import (
    BidNotAcceptedError,
    BidNotFoundError,
    DisputeNotFoundError,
    DuplicateDisputeError,
    InvalidDisputeStatusError,
    InvalidDisputeTransitionError,
    MissingFieldError,
)
from escrow_kernel.logging_config import LogContext, get_logger
from escrow_kernel.models.audit_event import AuditAction
from escrow_kernel.models.bid import BidModel, BidStatus
from escrow_kernel.models.dispute import DisputeModel, DisputeStatus
from escrow_kernel.services import messages
from escrow_kernel.services.audit_trail import AuditTrail
from escrow_kernel.services.base import BaseService, coerce_uuid, status_value
from escrow_kernel.services.notifier import Outbox

logger = get_logger("services.dispute_gate")

_ALLOWED_STATUSES = tuple(s.value for s in DisputeStatus)


class DisputeGate(BaseService):
    """
    Service for filing and reviewing disputes.

    Contract:
        ``file_dispute`` returns the new dispute id;
        ``update_dispute_status`` returns the status now stored.

    Guarantees:
        - One dispute per bid.
        - Status changes are a conditional UPDATE on the status that was
          read, so concurrent operators can never move a dispute backward.
          Exactly one of two identical moves succeeds.

    Non-goals:
        - Does NOT hold back escrow release or disbursement.
    """

    def file_dispute(
        self,
        bid_id: UUID | str,
        filer_id: UUID,
        reason: str,
        detail: str,
        evidence=(),
    ) -> UUID:
        """
        Open a dispute on an accepted bid and alert the operator.

        ``evidence`` is a sequence of opaque references (uploaded file keys).
        """
        if not reason or not str(reason).strip():
            raise MissingFieldError("reason")
        if not detail or not str(detail).strip():
            raise MissingFieldError("detail")
        bid_uuid = coerce_uuid(bid_id)
        if bid_uuid is None:
            raise BidNotFoundError(str(bid_id))

        with LogContext.bind(bid_id=bid_uuid, actor_id=filer_id):
            with self._transition("file_dispute"):
                bid = self.session.get(BidModel, bid_uuid, populate_existing=True)
                if bid is None:
                    raise BidNotFoundError(str(bid_uuid))
                if bid.status != BidStatus.ACCEPTED:
                    raise BidNotAcceptedError(str(bid_uuid), status_value(bid.status))

                existing = self.session.execute(
                    select(DisputeModel.id).where(DisputeModel.bid_id == bid_uuid)
                ).scalar_one_or_none()
                if existing is not None:
                    raise DuplicateDisputeError(str(bid_uuid), str(existing))

                dispute = DisputeModel(
                    bid_id=bid_uuid,
                    filer_id=filer_id,
                    supplier_id=bid.supplier_id,
                    reason=str(reason).strip(),
                    detail=str(detail).strip(),
                    evidence=[str(e) for e in evidence],
                    status=DisputeStatus.PENDING,
                    created_at=self.clock.now(),
                    created_by_id=filer_id,
                )
                self.session.add(dispute)
                try:
                    self.session.flush()
                except IntegrityError:
                    # A concurrent filer won the unique constraint
                    raise DuplicateDisputeError(str(bid_uuid)) from None

                AuditTrail(self.session, self.clock).record(
                    "Dispute",
                    dispute.id,
                    AuditAction.DISPUTE_FILED,
                    filer_id,
                    bid_id=bid_uuid,
                    reason=dispute.reason,
                )
                self.session.flush()

                outbox = Outbox()
                messages.dispute_filed(outbox, self.terms.operator, dispute)
                self._commit()

            logger.info("dispute_filed", extra={"dispute_id": str(dispute.id)})
            self._notify(outbox)
            return dispute.id

    def update_dispute_status(
        self,
        dispute_id: UUID | str,
        new_status: DisputeStatus | str,
        operator_id: UUID,
    ) -> DisputeStatus:
        """Move a dispute forward and tell both parties."""
        try:
            target = DisputeStatus(new_status)
        except ValueError:
            raise InvalidDisputeStatusError(new_status, _ALLOWED_STATUSES) from None
        did = coerce_uuid(dispute_id)
        if did is None:
            raise DisputeNotFoundError(str(dispute_id))

        with LogContext.bind(actor_id=operator_id):
            with self._transition("update_dispute_status"):
                # Each failed swap means someone else moved the status
                # forward, so this loop ends.
                while True:
                    current = self._load_status(did)
                    if target.rank <= current.rank:
                        raise InvalidDisputeTransitionError(
                            str(did), current.value, target.value
                        )
                    changes = {"status": target, "updated_by_id": operator_id}
                    if target == DisputeStatus.RESOLVED:
                        changes["resolved_at"] = self.clock.now()
                    moved = self.session.execute(
                        update(DisputeModel)
                        .where(
                            DisputeModel.id == did,
                            DisputeModel.status == current,
                        )
                        .values(**changes)
                        .execution_options(synchronize_session=False)
                    ).rowcount
                    if moved == 1:
                        break

                dispute = self.session.get(DisputeModel, did, populate_existing=True)
                AuditTrail(self.session, self.clock).record(
                    "Dispute",
                    did,
                    AuditAction.DISPUTE_STATUS_CHANGED,
                    operator_id,
                    from_status=current,
                    to_status=target,
                )
                self.session.flush()

                outbox = Outbox()
                messages.dispute_status_updated(outbox, dispute, target.value)
                self._commit()

            logger.info(
                "dispute_status_updated",
                extra={
                    "dispute_id": str(did),
                    "from_status": current.value,
                    "to_status": target.value,
                },
            )
            self._notify(outbox)
            return target

    def _load_status(self, dispute_id: UUID) -> DisputeStatus:
        status = self.session.execute(
            select(DisputeModel.status).where(DisputeModel.id == dispute_id)
        ).scalar_one_or_none()
        if status is None:
            raise DisputeNotFoundError(str(dispute_id))
        return DisputeStatus(status)
