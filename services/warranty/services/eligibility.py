"""
Eligibility Service
===================

Decides which purchased accounts may receive a new warranty claim.

A purchase is eligible when it is active, its warranty expires strictly in
the future, and it has no claim in pending, reviewing or approved.

Version: 0.1.0
"""

from collections.abc import Callable
from datetime import datetime

from shared.logging import get_logger
from shared.models.warranty import EligibleAccount, utcnow
from services.warranty.errors import NotAuthenticatedError
from services.warranty.repositories.base import ClaimRepository, PurchaseStore


logger = get_logger(__name__)


class EligibilityEvaluator:
    """Lists a member's claimable purchases."""

    def __init__(
        self,
        purchases: PurchaseStore,
        claims: ClaimRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.purchases = purchases
        self.claims = claims
        self.clock = clock

    async def list_eligible_accounts(self, user_id: str | None) -> list[EligibleAccount]:
        """
        List purchases that can be claimed right now, newest first.

        Raises:
            NotAuthenticatedError: no user
        """
        if not user_id:
            raise NotAuthenticatedError()

        now = self.clock()
        candidates = await self.purchases.list_active_purchases_with_warranty(user_id, now)
        claimed = await self.claims.active_claim_purchase_ids(user_id)

        eligible = [
            EligibleAccount.from_purchase(p, now)
            for p in candidates
            if p.id not in claimed and p.warranty_valid_at(now)
        ]

        logger.debug(
            "eligible_accounts_listed",
            user_id=user_id,
            candidates=len(candidates),
            eligible=len(eligible),
        )
        return eligible
