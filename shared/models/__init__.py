"""
Shared Models
=============

Pydantic models shared across the warranty claim service.

Models:
- Warranty models (Purchase, WarrantyClaim, RefundTransaction, ClaimStats)
- Common response models (BaseResponse, ErrorResponse, HealthResponse)
"""

from shared.models.warranty import (
    ACTIVE_CLAIM_STATUSES,
    RESOLVED_CLAIM_STATUSES,
    TERMINAL_CLAIM_STATUSES,
    ClaimPage,
    ClaimReason,
    ClaimStats,
    ClaimStatus,
    ClaimStatusUpdateRequest,
    ClaimSubmitRequest,
    ClaimType,
    EligibleAccount,
    EvidenceUpload,
    PaginationInfo,
    ProductSnapshot,
    Purchase,
    PurchaseStatus,
    PurchaseSummary,
    RefundTransaction,
    SettlementResult,
    WarrantyClaim,
    split_legacy_reason,
    utcnow,
    warranty_remaining,
)
from shared.models.common import (
    BaseResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Warranty
    "ACTIVE_CLAIM_STATUSES",
    "RESOLVED_CLAIM_STATUSES",
    "TERMINAL_CLAIM_STATUSES",
    "ClaimPage",
    "ClaimReason",
    "ClaimStats",
    "ClaimStatus",
    "ClaimStatusUpdateRequest",
    "ClaimSubmitRequest",
    "ClaimType",
    "EligibleAccount",
    "EvidenceUpload",
    "PaginationInfo",
    "ProductSnapshot",
    "Purchase",
    "PurchaseStatus",
    "PurchaseSummary",
    "RefundTransaction",
    "SettlementResult",
    "WarrantyClaim",
    "split_legacy_reason",
    "utcnow",
    "warranty_remaining",
    # Common
    "BaseResponse",
    "ErrorResponse",
    "HealthResponse",
]
