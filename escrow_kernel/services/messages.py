"""
Notification and email wording for every lifecycle event.

Each builder appends to an Outbox; nothing here performs I/O.  Amounts are
rendered to two decimals.  Suppliers are always shown their own quoted
price; requesters and operators see the commission-inclusive settlement
price.
"""

from escrow_kernel.domain.pricing import format_money
from escrow_kernel.domain.types import (
    EmailMessage,
    Notification,
    OperatorContact,
    RecipientType,
)
from escrow_kernel.services.notifier import Outbox


def _label(category) -> str:
    value = getattr(category, "value", category)
    return str(value).replace("_", " ").title()


def _money(amount) -> str:
    return f"${format_money(amount)}"


def _html(*paragraphs: str) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return f"{body}<p>Best regards,<br>Your Platform</p>"


def bid_submitted(outbox: Outbox, operator: OperatorContact, quotation, bid) -> None:
    outbox.notify(
        Notification(
            recipient_id=operator.recipient_id,
            recipient_type=RecipientType.ADMIN,
            title="New Bid Submitted",
            message=(
                f"A new bid of {_money(bid.bid_price)} was submitted for "
                f"{_label(quotation.category)} quotation #{quotation.id}."
            ),
            event_type="bid",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )


def award_completed(
    outbox: Outbox,
    quotation,
    winner,
    losers,
    automatic: bool,
) -> None:
    """Winner, every rejected supplier and the requester hear about an award."""
    label = _label(quotation.category)

    if automatic:
        title = "Auction Won"
        subject = f"Congratulations! You've won the auction - {label}"
    else:
        title = "Bid Accepted"
        subject = f"Bid Approved - {label}"
    outbox.notify(
        Notification(
            recipient_id=str(winner.supplier_id),
            recipient_type=RecipientType.SUPPLIER,
            title=title,
            message=(
                f"Your bid of {_money(winner.bid_price)} for {label} "
                f"quotation #{quotation.id} has been accepted."
            ),
            event_type="bid",
            reference_id=str(winner.id),
            reference_type="bid",
        )
    )
    outbox.email(
        winner.supplier_email,
        EmailMessage(
            subject=subject,
            html=_html(
                f"Your bid #{winner.id} for {label} has been accepted.",
                f"<strong>Bid Price:</strong> {_money(winner.bid_price)}",
                "The customer will now proceed with payment.",
            ),
        ),
    )

    for loser in losers:
        outbox.notify(
            Notification(
                recipient_id=str(loser.supplier_id),
                recipient_type=RecipientType.SUPPLIER,
                title="Bid Not Selected",
                message=(
                    f"Your bid for {label} quotation #{quotation.id} was not "
                    "selected. Thank you for participating."
                ),
                event_type="bid",
                reference_id=str(loser.id),
                reference_type="bid",
            )
        )
        outbox.email(
            loser.supplier_email,
            EmailMessage(
                subject=f"Bid Update - {label}",
                html=_html(
                    f"Your bid #{loser.id} for {label} was not selected.",
                    "Thank you for participating.",
                ),
            ),
        )

    outbox.notify(
        Notification(
            recipient_id=str(quotation.requester_id),
            recipient_type=RecipientType.CUSTOMER,
            title="Auction Completed" if automatic else "Supplier Selected",
            message=(
                f"A supplier has been selected for your {label} quotation "
                f"#{quotation.id}. Total price: {_money(winner.settlement_price)}."
            ),
            event_type="quotation",
            reference_id=str(quotation.id),
            reference_type="quotation",
        )
    )
    outbox.email(
        quotation.requester_email,
        EmailMessage(
            subject=f"Auction Completed - {label}",
            html=_html(
                f"A supplier has been selected for your {label} request.",
                f"<strong>Total Price:</strong> {_money(winner.settlement_price)}",
                "Please proceed with the payment to confirm the booking.",
            ),
        ),
    )


def quotation_closed(outbox: Outbox, quotation, rejected) -> None:
    label = _label(quotation.category)
    for bid in rejected:
        outbox.notify(
            Notification(
                recipient_id=str(bid.supplier_id),
                recipient_type=RecipientType.SUPPLIER,
                title="Quotation Closed",
                message=f"{label} quotation #{quotation.id} was closed without an award.",
                event_type="bid",
                reference_id=str(bid.id),
                reference_type="bid",
            )
        )


def payment_captured(outbox: Outbox, quotation, bid) -> None:
    label = _label(quotation.category)
    outbox.notify(
        Notification(
            recipient_id=str(quotation.requester_id),
            recipient_type=RecipientType.CUSTOMER,
            title="Payment Successful",
            message=(
                f"Your payment of {_money(bid.settlement_price)} for {label} is "
                "held in escrow until the work is complete."
            ),
            event_type="payment",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )
    outbox.email(
        quotation.requester_email,
        EmailMessage(
            subject=f"Payment Initiated for {label} - Bid #{bid.id}",
            html=_html(
                f"<strong>Amount:</strong> {_money(bid.settlement_price)}",
                "Your payment is held in escrow.",
            ),
        ),
    )
    outbox.notify(
        Notification(
            recipient_id=str(bid.supplier_id),
            recipient_type=RecipientType.SUPPLIER,
            title="Payment Received",
            message=(
                f"Payment of {_money(bid.bid_price)} for bid #{bid.id} is held "
                "in escrow. You can start the job."
            ),
            event_type="payment",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )
    outbox.email(
        bid.supplier_email,
        EmailMessage(
            subject=f"Payment Initiated for {label} - Bid #{bid.id}",
            html=_html(
                f"<strong>Bid Price:</strong> {_money(bid.bid_price)}",
                "The customer's payment is held in escrow.",
            ),
        ),
    )


def escrow_released(outbox: Outbox, operator: OperatorContact, bid) -> None:
    """Supplier sees the quoted price; the operator sees the settlement price."""
    outbox.notify(
        Notification(
            recipient_id=str(bid.supplier_id),
            recipient_type=RecipientType.SUPPLIER,
            title="Escrow Period Ended",
            message=(
                f"The escrow period for your payment of {_money(bid.bid_price)} "
                f"for Bid #{bid.id} has ended. You will receive your payment soon."
            ),
            event_type="payment",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )
    outbox.email(
        bid.supplier_email,
        EmailMessage(
            subject=f"Payment Notification for Bid #{bid.id}",
            html=_html(
                f"The escrow period for your bid #{bid.id} has ended.",
                f"<strong>Bid Price:</strong> {_money(bid.bid_price)}",
                "You will receive your payment soon.",
            ),
        ),
    )
    outbox.notify(
        Notification(
            recipient_id=operator.recipient_id,
            recipient_type=RecipientType.ADMIN,
            title="Manual Payment Required",
            message=(
                f"The escrow period for Bid #{bid.id} has ended. Please proceed "
                f"to disburse {_money(bid.settlement_price)} to the supplier."
            ),
            event_type="payment",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )
    outbox.email(
        operator.email,
        EmailMessage(
            subject=f"Manual Payment Required for Bid #{bid.id}",
            html=_html(
                f"The escrow period for Bid #{bid.id} has ended.",
                f"<strong>Final Price:</strong> {_money(bid.settlement_price)}",
                "Please proceed to manually disburse the payment to the supplier.",
            ),
        ),
    )


def funds_disbursed(outbox: Outbox, bid) -> None:
    outbox.notify(
        Notification(
            recipient_id=str(bid.supplier_id),
            recipient_type=RecipientType.SUPPLIER,
            title="Funds Disbursed",
            message=(
                f"Funds of {_money(bid.settlement_price)} for Bid #{bid.id} "
                "have been disbursed."
            ),
            event_type="payment",
            reference_id=str(bid.id),
            reference_type="bid",
        )
    )
    outbox.email(
        bid.supplier_email,
        EmailMessage(
            subject=f"Payment Released - Bid #{bid.id}",
            html=_html(
                f"<strong>Amount:</strong> {_money(bid.settlement_price)}",
                "The funds have been released to your account.",
            ),
        ),
    )


def dispute_filed(outbox: Outbox, operator: OperatorContact, dispute) -> None:
    outbox.notify(
        Notification(
            recipient_id=operator.recipient_id,
            recipient_type=RecipientType.ADMIN,
            title="New Dispute Submitted",
            message=f"A new dispute was filed for bid #{dispute.bid_id}: {dispute.reason}",
            event_type="dispute",
            reference_id=str(dispute.id),
            reference_type="dispute",
        )
    )
    outbox.email(
        operator.email,
        EmailMessage(
            subject=f"New Dispute for Bid #{dispute.bid_id}",
            html=_html(
                f"<strong>Reason:</strong> {dispute.reason}",
                dispute.detail,
            ),
        ),
    )


def dispute_status_updated(outbox: Outbox, dispute, status_label: str) -> None:
    message = f"The status of dispute #{dispute.id} has been updated to '{status_label}'."
    for recipient_id, recipient_type in (
        (dispute.filer_id, RecipientType.CUSTOMER),
        (dispute.supplier_id, RecipientType.SUPPLIER),
    ):
        outbox.notify(
            Notification(
                recipient_id=str(recipient_id),
                recipient_type=recipient_type,
                title="Dispute Status Updated",
                message=message,
                event_type="dispute",
                reference_id=str(dispute.id),
                reference_type="dispute",
            )
        )
