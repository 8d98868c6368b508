"""
Claim Submission Service
========================

Creates warranty claims.

Input is validated before any repository access; evidence references must
point at files the member actually uploaded. Uniqueness of the active
claim per purchase is enforced by the repository's atomic insert, never by
a read-then-write check here.

Version: 0.1.0
"""

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

from shared.config import settings
from shared.logging import get_logger
from shared.models.warranty import (
    ClaimReason,
    ClaimStatus,
    ClaimType,
    PurchaseStatus,
    WarrantyClaim,
    utcnow,
)
from services.warranty.errors import (
    ClaimValidationError,
    NotAuthenticatedError,
    NotFoundError,
    WarrantyExpiredError,
)
from services.warranty.evidence import (
    EvidenceStorage,
    check_stored_evidence,
    evidence_owner,
)
from services.warranty.realtime import ClaimEventBus, ClaimInserted
from services.warranty.repositories.base import ClaimRepository, PurchaseStore


logger = get_logger(__name__)


def validate_claim_input(
    user_id: str,
    reason: str | None,
    evidence_urls: Sequence[str],
) -> str:
    """
    Check reason length and evidence references; returns the trimmed reason.

    Raises:
        ClaimValidationError: on the first violated rule
    """
    cfg = settings.warranty
    text = (reason or "").strip()

    if not text:
        raise ClaimValidationError("Reason is required")
    if len(text) < cfg.reason_min_length:
        raise ClaimValidationError(
            f"Reason must be at least {cfg.reason_min_length} characters",
            length=len(text),
        )
    if len(text) > cfg.reason_max_length:
        raise ClaimValidationError(
            f"Reason must be at most {cfg.reason_max_length} characters",
            length=len(text),
        )

    if len(evidence_urls) > cfg.max_evidence_files:
        raise ClaimValidationError(
            f"At most {cfg.max_evidence_files} evidence files are allowed",
            count=len(evidence_urls),
        )
    for ref in evidence_urls:
        if evidence_owner(ref) != user_id:
            raise ClaimValidationError("Unknown evidence reference", ref=ref)

    return text


class ClaimSubmissionService:
    """Submits new claims against eligible purchases."""

    def __init__(
        self,
        purchases: PurchaseStore,
        claims: ClaimRepository,
        events: ClaimEventBus,
        evidence: EvidenceStorage,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.purchases = purchases
        self.claims = claims
        self.events = events
        self.evidence = evidence
        self.clock = clock

    async def submit_claim(
        self,
        user_id: str | None,
        purchase_id: str,
        reason: str,
        evidence_urls: Sequence[str] = (),
        claim_type: ClaimType = ClaimType.REPLACEMENT,
        reason_code: ClaimReason | None = None,
    ) -> WarrantyClaim:
        """
        Submit a claim for one of the user's purchases.

        Returns:
            The new pending claim with its purchase summary

        Raises:
            NotAuthenticatedError: no user
            ClaimValidationError: bad reason, evidence not uploaded or not an
                allowed image, or purchase not active
            NotFoundError: purchase missing or owned by someone else
            WarrantyExpiredError: warranty missing or expired
            DuplicateClaimError: purchase already has an open claim
        """
        if not user_id:
            raise NotAuthenticatedError()

        text = validate_claim_input(user_id, reason, evidence_urls)
        for ref in evidence_urls:
            await check_stored_evidence(self.evidence, ref)

        purchase = await self.purchases.get_purchase(purchase_id, user_id=user_id)
        if purchase is None:
            raise NotFoundError(f"Purchase not found: {purchase_id}")

        if purchase.status != PurchaseStatus.ACTIVE:
            raise ClaimValidationError(
                f"Purchase is not active (status: {purchase.status.value})",
                purchase_id=purchase_id,
            )

        now = self.clock()
        if not purchase.warranty_valid_at(now):
            raise WarrantyExpiredError(
                "Warranty has expired for this purchase",
                purchase_id=purchase_id,
                warranty_expires_at=(
                    purchase.warranty_expires_at.isoformat()
                    if purchase.warranty_expires_at
                    else None
                ),
            )

        claim = await self.claims.create_claim(
            WarrantyClaim(
                id=str(uuid.uuid4()),
                user_id=user_id,
                purchase_id=purchase_id,
                claim_type=claim_type,
                reason_code=reason_code,
                reason=text,
                evidence_urls=list(evidence_urls),
                status=ClaimStatus.PENDING,
                created_at=now,
                updated_at=now,
                resolved_at=None,
            )
        )

        logger.info(
            "claim_submitted",
            claim_id=claim.id,
            user_id=user_id,
            purchase_id=purchase_id,
            claim_type=claim_type.value,
        )

        await self.events.publish(ClaimInserted(claim))
        return claim
