"""
Typed Exception Hierarchy for the Escrow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Operator tooling and the API layer must tell a race with another operator
(refresh and re-query) apart from malformed input (never valid) and from a
quotation that simply is not ready yet (retry later).  Parsing message
strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.award_bid(quotation_id, bid_id, Decimal("10"), operator_id)
    except AlreadyAwardedError as e:
        refresh_view(e.quotation_id)         # idempotent no-op for the caller
    except PreconditionFailedError as e:
        if e.retryable:
            schedule_retry()
        else:
            show_error(e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    EscrowKernelError (base)
    |
    +-- ValidationError                    rejected before any state change
    |   +-- InvalidPriceError
    |   +-- InvalidCommissionError
    |   +-- MissingFieldError
    |   +-- InvalidCategoryError
    |   +-- InvalidDisputeStatusError
    |   +-- InvalidDisputeTransitionError
    |   +-- NotFoundError
    |       +-- QuotationNotFoundError
    |       +-- BidNotFoundError
    |       +-- DisputeNotFoundError
    |
    +-- PreconditionFailedError            rejected before any state change
    |   +-- QuotationNotOpenError
    |   +-- AuctionWindowOpenError         (retryable)
    |   +-- AuctionDisabledError           (retryable)
    |   +-- NoPendingBidsError             (retryable)
    |   +-- BidQuotationMismatchError
    |   +-- BidNotPendingError
    |   +-- BidNotAcceptedError
    |   +-- PaymentNotPendingError
    |   +-- PaymentNotCompletedError
    |   +-- DuplicateDisputeError
    |
    +-- ConflictError                      lost a race; safe to re-query
    |   +-- AlreadyAwardedError
    |   +-- AlreadyDisbursedError
    |
    +-- PersistenceError                   durable store failure, rolled back
    |   +-- AwardFailedError
    |
    +-- NotificationError                  never fatal to a transition
    |
    +-- ImmutabilityViolationError         append-only rows touched

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                         | When Raised
--------------|------------------------------|------------------------------------
Validation    | INVALID_PRICE                | Quoted price missing or <= 0
              | INVALID_COMMISSION           | Commission percent missing or <= 0
              | MISSING_FIELD                | Required text field empty
              | INVALID_CATEGORY             | Unknown quotation category
              | INVALID_DISPUTE_STATUS       | Unknown dispute status value
              | INVALID_DISPUTE_TRANSITION   | Backward / same-status dispute move
              | QUOTATION_NOT_FOUND          | Unknown quotation id
              | BID_NOT_FOUND                | Unknown bid id
              | DISPUTE_NOT_FOUND            | Unknown dispute id
--------------|------------------------------|------------------------------------
Precondition  | QUOTATION_NOT_OPEN           | Quotation closed
              | AUCTION_WINDOW_OPEN          | Auto-award before window elapsed
              | AUCTION_DISABLED             | Auto-award while auctions are off
              | NO_PENDING_BIDS              | Auto-award with nothing to pick
              | BID_QUOTATION_MISMATCH       | Bid belongs to another quotation
              | BID_NOT_PENDING              | Winning bid already decided
              | BID_NOT_ACCEPTED             | Capture / dispute on non-winner
              | PAYMENT_NOT_PENDING          | Capture twice
              | PAYMENT_NOT_COMPLETED        | Disburse before escrow release
              | DUPLICATE_DISPUTE            | Second dispute on one bid
--------------|------------------------------|------------------------------------
Conflict      | ALREADY_AWARDED              | Quotation awarded by someone else
              | ALREADY_DISBURSED            | Funds already marked disbursed
--------------|------------------------------|------------------------------------
Persistence   | PERSISTENCE_ERROR            | Store failure during a transition
              | AWARD_FAILED                 | Store failure during an award
--------------|------------------------------|------------------------------------
Notification  | NOTIFICATION_FAILED          | Sink raised (logged, swallowed)
Immutability  | IMMUTABILITY_VIOLATION       | Update/delete of append-only row
"""


class EscrowKernelError(Exception):
    """
    Base exception for all escrow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ESCROW_KERNEL_ERROR"


# Validation errors


class ValidationError(EscrowKernelError):
    """Missing or invalid input.  Never valid; retrying cannot help."""

    code: str = "VALIDATION_ERROR"


class InvalidPriceError(ValidationError):
    """Quoted price is missing, non-numeric or not positive."""

    code: str = "INVALID_PRICE"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Bid price must be a positive number, got {value!r}")


class InvalidCommissionError(ValidationError):
    """Commission percentage is missing, non-numeric or not positive."""

    code: str = "INVALID_COMMISSION"

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Commission percentage must be a positive number, got {value!r}"
        )


class MissingFieldError(ValidationError):
    """A required text field is empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class InvalidCategoryError(ValidationError):
    """Quotation category is not one of the known service categories."""

    code: str = "INVALID_CATEGORY"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown quotation category: {value!r}")


class InvalidDisputeStatusError(ValidationError):
    """Requested dispute status is not one of the known values."""

    code: str = "INVALID_DISPUTE_STATUS"

    def __init__(self, value: object, allowed: tuple[str, ...]):
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid dispute status {value!r}. Allowed values: {', '.join(allowed)}"
        )


class InvalidDisputeTransitionError(ValidationError):
    """Dispute status may only move forward (pending -> under_review -> resolved)."""

    code: str = "INVALID_DISPUTE_TRANSITION"

    def __init__(self, dispute_id: str, current_status: str, requested_status: str):
        self.dispute_id = dispute_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Dispute {dispute_id} cannot move from '{current_status}' "
            f"to '{requested_status}'"
        )


class NotFoundError(ValidationError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class QuotationNotFoundError(NotFoundError):
    """Quotation with given ID was not found."""

    code: str = "QUOTATION_NOT_FOUND"

    def __init__(self, quotation_id: str):
        self.quotation_id = quotation_id
        super().__init__(f"Quotation not found: {quotation_id}")


class BidNotFoundError(NotFoundError):
    """Bid with given ID was not found."""

    code: str = "BID_NOT_FOUND"

    def __init__(self, bid_id: str):
        self.bid_id = bid_id
        super().__init__(f"Bid not found: {bid_id}")


class DisputeNotFoundError(NotFoundError):
    """Dispute with given ID was not found."""

    code: str = "DISPUTE_NOT_FOUND"

    def __init__(self, dispute_id: str):
        self.dispute_id = dispute_id
        super().__init__(f"Dispute not found: {dispute_id}")


# Precondition errors


class PreconditionFailedError(EscrowKernelError):
    """
    Entity is not in a state that permits the operation.

    ``retryable`` is True when the same request may succeed later without
    any change on the caller's side (e.g. the auction window has not
    elapsed yet).
    """

    code: str = "PRECONDITION_FAILED"
    retryable: bool = False


class QuotationNotOpenError(PreconditionFailedError):
    """Quotation status has already advanced past ``open``."""

    code: str = "QUOTATION_NOT_OPEN"

    def __init__(self, quotation_id: str, status: str):
        self.quotation_id = quotation_id
        self.status = status
        super().__init__(f"Quotation {quotation_id} is not open (status: {status})")


class AuctionWindowOpenError(PreconditionFailedError):
    """Automatic award attempted before the bidding window elapsed."""

    code: str = "AUCTION_WINDOW_OPEN"
    retryable = True

    def __init__(self, quotation_id: str, closes_at: str):
        self.quotation_id = quotation_id
        self.closes_at = closes_at
        super().__init__(
            f"Bidding on quotation {quotation_id} stays open until {closes_at}"
        )


class AuctionDisabledError(PreconditionFailedError):
    """Automatic awarding is switched off in the platform settings."""

    code: str = "AUCTION_DISABLED"
    retryable = True

    def __init__(self):
        super().__init__("Automatic auction closing is currently disabled")


class NoPendingBidsError(PreconditionFailedError):
    """Automatic award found no pending bid to select."""

    code: str = "NO_PENDING_BIDS"
    retryable = True

    def __init__(self, quotation_id: str):
        self.quotation_id = quotation_id
        super().__init__(f"No pending bids for quotation {quotation_id}")


class BidQuotationMismatchError(PreconditionFailedError):
    """Bid does not belong to the quotation being awarded."""

    code: str = "BID_QUOTATION_MISMATCH"

    def __init__(self, bid_id: str, quotation_id: str):
        self.bid_id = bid_id
        self.quotation_id = quotation_id
        super().__init__(f"Bid {bid_id} does not belong to quotation {quotation_id}")


class BidNotPendingError(PreconditionFailedError):
    """Winning bid candidate is no longer pending."""

    code: str = "BID_NOT_PENDING"

    def __init__(self, bid_id: str, status: str):
        self.bid_id = bid_id
        self.status = status
        super().__init__(f"Bid {bid_id} is not pending (status: {status})")


class BidNotAcceptedError(PreconditionFailedError):
    """Operation requires an accepted bid."""

    code: str = "BID_NOT_ACCEPTED"

    def __init__(self, bid_id: str, status: str):
        self.bid_id = bid_id
        self.status = status
        super().__init__(f"Bid {bid_id} is not accepted (status: {status})")


class PaymentNotPendingError(PreconditionFailedError):
    """Payment was already captured or released."""

    code: str = "PAYMENT_NOT_PENDING"

    def __init__(self, bid_id: str, payment_status: str):
        self.bid_id = bid_id
        self.payment_status = payment_status
        super().__init__(
            f"Payment for bid {bid_id} already completed or in process "
            f"(payment status: {payment_status})"
        )


class PaymentNotCompletedError(PreconditionFailedError):
    """Funds can only be disbursed once the escrow hold is released."""

    code: str = "PAYMENT_NOT_COMPLETED"

    def __init__(self, bid_id: str, payment_status: str):
        self.bid_id = bid_id
        self.payment_status = payment_status
        super().__init__(
            f"Funds for bid {bid_id} can only be disbursed for completed "
            f"payments (payment status: {payment_status})"
        )


class DuplicateDisputeError(PreconditionFailedError):
    """A dispute for this bid has already been filed."""

    code: str = "DUPLICATE_DISPUTE"

    def __init__(self, bid_id: str, dispute_id: str | None = None):
        self.bid_id = bid_id
        self.dispute_id = dispute_id
        super().__init__(f"A dispute for bid {bid_id} has already been filed")


# Conflict errors


class ConflictError(EscrowKernelError):
    """
    The request lost a race with an equivalent request.

    Callers should treat these as idempotent no-ops: re-query state and
    refresh rather than retrying blindly.
    """

    code: str = "CONFLICT"


class AlreadyAwardedError(ConflictError):
    """Quotation was already awarded (possibly by a concurrent caller)."""

    code: str = "ALREADY_AWARDED"

    def __init__(self, quotation_id: str, accepted_bid_id: str | None = None):
        self.quotation_id = quotation_id
        self.accepted_bid_id = accepted_bid_id
        super().__init__(f"Quotation {quotation_id} has already been awarded")


class AlreadyDisbursedError(ConflictError):
    """Funds for this bid were already marked as disbursed."""

    code: str = "ALREADY_DISBURSED"

    def __init__(self, bid_id: str):
        self.bid_id = bid_id
        super().__init__(f"Funds for bid {bid_id} have already been disbursed")


# Persistence errors


class PersistenceError(EscrowKernelError):
    """Durable-store failure during a transition.  The transition was rolled back."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class AwardFailedError(PersistenceError):
    """Award aborted by a store failure; every bid is still pending."""

    code: str = "AWARD_FAILED"

    def __init__(self, quotation_id: str, reason: str):
        self.quotation_id = quotation_id
        super().__init__("award", reason)


# Notification errors


class NotificationError(EscrowKernelError):
    """A notification or email sink failed.  Never fatal to a transition."""

    code: str = "NOTIFICATION_FAILED"

    def __init__(self, channel: str, recipient: str, reason: str):
        self.channel = channel
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"{channel} delivery to {recipient} failed: {reason}")


# Immutability errors


class ImmutabilityViolationError(EscrowKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
