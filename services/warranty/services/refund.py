"""
Refund Settlement Service
=========================

Settles approved claims by crediting the purchase price back to the
member's balance, exactly once per claim.

Version: 0.1.0
"""

from collections.abc import Callable
from datetime import datetime

from shared.logging import get_logger
from shared.models.warranty import SettlementResult, utcnow
from services.warranty.realtime import ClaimEventBus, ClaimUpdated
from services.warranty.repositories.base import ClaimRepository


logger = get_logger(__name__)


class RefundSettlementService:
    """Runs refund settlement and announces the completed claim."""

    def __init__(
        self,
        claims: ClaimRepository,
        events: ClaimEventBus,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.claims = claims
        self.events = events
        self.clock = clock

    async def settle_refund(self, claim_id: str) -> SettlementResult:
        """
        Settle an approved claim.

        The status change, refund transaction, balance credit and purchase
        update commit together or not at all.

        Raises:
            NotFoundError: claim does not exist
            AlreadySettledError: claim already completed
            InvalidStateError: claim not approved
        """
        record = await self.claims.settle_refund(claim_id, settled_at=self.clock())
        result = record.result

        logger.info(
            "refund_settled",
            claim_id=claim_id,
            user_id=result.transaction.user_id,
            transaction_id=result.transaction.id,
            amount=str(result.transaction.amount),
            new_balance=str(result.new_balance),
        )

        await self.events.publish(ClaimUpdated(old=record.previous, new=result.claim))
        return result
