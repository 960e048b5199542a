"""Domain models for the escrow kernel."""

from escrow_kernel.models.audit_event import AuditAction, AuditEvent
from escrow_kernel.models.bid import (
    BidModel,
    BidStatus,
    DisbursementStatus,
    PaymentStatus,
)
from escrow_kernel.models.commission import AwardMode, CommissionRecord
from escrow_kernel.models.dispute import DisputeModel, DisputeStatus
from escrow_kernel.models.quotation import (
    QuotationCategory,
    QuotationModel,
    QuotationStatus,
)
from escrow_kernel.models.settings import (
    DEFAULT_SETTINGS_KEY,
    PlatformSettingsModel,
)

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AwardMode",
    "BidModel",
    "BidStatus",
    "CommissionRecord",
    "DEFAULT_SETTINGS_KEY",
    "DisbursementStatus",
    "DisputeModel",
    "DisputeStatus",
    "PaymentStatus",
    "PlatformSettingsModel",
    "QuotationCategory",
    "QuotationModel",
    "QuotationStatus",
]
