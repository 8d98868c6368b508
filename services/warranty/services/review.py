"""
Claim Review Service
====================

Admin review state machine for warranty claims.

Workflow:
    pending   -> reviewing | approved | rejected
    reviewing -> approved | rejected
    approved  -> completed
    rejected, completed: terminal

Version: 0.1.0
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from shared.logging import get_logger
from shared.models.warranty import (
    RESOLVED_CLAIM_STATUSES,
    ClaimStatus,
    ClaimType,
    WarrantyClaim,
    utcnow,
)
from services.warranty.errors import InvalidTransitionError, NotFoundError
from services.warranty.realtime import ClaimDeleted, ClaimEventBus, ClaimUpdated
from services.warranty.repositories.base import ClaimRepository, PurchaseStore


logger = get_logger(__name__)


@dataclass
class ClaimWorkflow:
    """Claim status state machine."""

    transitions: dict[ClaimStatus, frozenset[ClaimStatus]] = field(
        default_factory=lambda: {
            ClaimStatus.PENDING: frozenset(
                {ClaimStatus.REVIEWING, ClaimStatus.APPROVED, ClaimStatus.REJECTED}
            ),
            ClaimStatus.REVIEWING: frozenset({ClaimStatus.APPROVED, ClaimStatus.REJECTED}),
            ClaimStatus.APPROVED: frozenset({ClaimStatus.COMPLETED}),
            ClaimStatus.REJECTED: frozenset(),
            ClaimStatus.COMPLETED: frozenset(),
        }
    )

    def can_transition(self, current: ClaimStatus, new: ClaimStatus) -> bool:
        """Check if transition is valid."""
        return new in self.transitions.get(current, frozenset())

    def allowed_from(self, current: ClaimStatus) -> list[ClaimStatus]:
        return sorted(self.transitions.get(current, frozenset()), key=lambda s: s.value)


class ClaimReviewService:
    """
    Applies admin decisions to claims.

    Role checks happen at the route layer; this service trusts its caller.
    """

    def __init__(
        self,
        claims: ClaimRepository,
        purchases: PurchaseStore,
        events: ClaimEventBus,
        workflow: ClaimWorkflow | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.claims = claims
        self.purchases = purchases
        self.events = events
        self.workflow = workflow or ClaimWorkflow()
        self.clock = clock

    async def update_claim_status(
        self,
        claim_id: str,
        new_status: ClaimStatus,
        admin_notes: str | None = None,
    ) -> WarrantyClaim:
        """
        Move a claim to `new_status`.

        Args:
            claim_id: Claim to update
            new_status: Target status
            admin_notes: Stored verbatim when given, left untouched when None

        Returns:
            The updated claim

        Raises:
            NotFoundError: claim does not exist
            InvalidTransitionError: transition not allowed, or another admin
                changed the claim first
        """
        current = await self.claims.get_claim(claim_id)
        if current is None:
            raise NotFoundError(f"Warranty claim not found: {claim_id}")

        if not self.workflow.can_transition(current.status, new_status):
            raise InvalidTransitionError(
                f"Cannot change claim status from {current.status.value} to {new_status.value}",
                claim_id=claim_id,
                current_status=current.status.value,
                requested_status=new_status.value,
                allowed=[s.value for s in self.workflow.allowed_from(current.status)],
            )

        now = self.clock()
        resolved_at = now if new_status in RESOLVED_CLAIM_STATUSES else None

        updated = await self.claims.update_status(
            claim_id,
            expected_status=current.status,
            new_status=new_status,
            updated_at=now,
            resolved_at=resolved_at,
            admin_notes=admin_notes,
        )
        if updated is None:
            logger.warning(
                "claim_status_update_lost_race",
                claim_id=claim_id,
                expected_status=current.status.value,
                requested_status=new_status.value,
            )
            raise InvalidTransitionError(
                "Claim was modified concurrently, reload and try again",
                claim_id=claim_id,
                requested_status=new_status.value,
            )

        if new_status == ClaimStatus.APPROVED and updated.claim_type == ClaimType.REFUND:
            await self.purchases.mark_claimed(updated.purchase_id)

        logger.info(
            "claim_status_updated",
            claim_id=claim_id,
            old_status=current.status.value,
            new_status=new_status.value,
        )

        await self.events.publish(ClaimUpdated(old=current, new=updated))
        return updated

    async def delete_claim(self, claim_id: str) -> WarrantyClaim:
        """
        Remove a claim outright.

        Raises:
            NotFoundError: claim does not exist
        """
        removed = await self.claims.delete_claim(claim_id)
        if removed is None:
            raise NotFoundError(f"Warranty claim not found: {claim_id}")

        logger.info(
            "claim_deleted",
            claim_id=claim_id,
            user_id=removed.user_id,
            status=removed.status.value,
        )

        await self.events.publish(ClaimDeleted(removed))
        return removed
