"""Read-only query selectors."""

from escrow_kernel.selectors.bid_selector import BidDTO, BidSelector, CommissionDTO
from escrow_kernel.selectors.dispute_selector import DisputeDTO, DisputeSelector
from escrow_kernel.selectors.earnings_selector import EarningsSelector
from escrow_kernel.selectors.quotation_selector import QuotationDTO, QuotationSelector

__all__ = [
    "BidDTO",
    "BidSelector",
    "CommissionDTO",
    "DisputeDTO",
    "DisputeSelector",
    "EarningsSelector",
    "QuotationDTO",
    "QuotationSelector",
]
