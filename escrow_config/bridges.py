"""
Config -> Kernel Bridges.

Converts the EscrowPolicy into the kernel's ``EscrowTerms``.  Lives here
because the kernel must never import escrow_config.
"""

from __future__ import annotations

from datetime import timedelta

from escrow_config.schema import EscrowPolicy
from escrow_kernel.domain.types import EscrowTerms, OperatorContact


def build_escrow_terms(policy: EscrowPolicy) -> EscrowTerms:
    return EscrowTerms(
        escrow_hold=timedelta(days=policy.escrow_hold_days),
        auction_window=timedelta(hours=policy.auction_window_hours),
        default_commission_percent=policy.commission_percent,
        default_auction_enabled=policy.auction_enabled,
        operator=OperatorContact(
            recipient_id=policy.operator.recipient_id,
            email=policy.operator.email,
        ),
    )
