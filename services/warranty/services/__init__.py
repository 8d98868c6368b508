"""
Warranty Services
=================

Business logic for the warranty claim lifecycle.

Services:
- EligibilityEvaluator: Claimable purchases
- ClaimSubmissionService: New claims
- ClaimReviewService: Admin status workflow
- RefundSettlementService: Balance refunds
- ClaimStatsService: Dashboard counts

Version: 0.1.0
"""

from services.warranty.services.eligibility import EligibilityEvaluator
from services.warranty.services.refund import RefundSettlementService
from services.warranty.services.review import ClaimReviewService, ClaimWorkflow
from services.warranty.services.stats import ClaimStatsService, month_keys
from services.warranty.services.submission import (
    ClaimSubmissionService,
    validate_claim_input,
)

__all__ = [
    "EligibilityEvaluator",
    "RefundSettlementService",
    "ClaimReviewService",
    "ClaimWorkflow",
    "ClaimStatsService",
    "month_keys",
    "ClaimSubmissionService",
    "validate_claim_input",
]
