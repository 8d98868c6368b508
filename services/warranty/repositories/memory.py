"""
In-Memory Repositories
======================

Process-local implementations of the warranty storage contracts, used in
development and tests. A single asyncio.Lock per repository serializes every
check-then-write, which gives the same guarantees the Postgres backend gets
from its partial unique index and conditional updates.

Version: 0.1.0
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from datetime import datetime
from decimal import Decimal

from shared.logging import get_logger
from shared.models.warranty import (
    ACTIVE_CLAIM_STATUSES,
    ClaimStatus,
    ClaimType,
    Purchase,
    PurchaseStatus,
    PurchaseSummary,
    RefundTransaction,
    SettlementResult,
    WarrantyClaim,
)
from services.warranty.errors import (
    AlreadySettledError,
    DuplicateClaimError,
    InvalidStateError,
    NotFoundError,
)
from services.warranty.repositories.base import ClaimRepository, SettlementRecord


logger = get_logger(__name__)


class InMemoryPurchaseStore:
    """Purchase store backed by a dict."""

    def __init__(self, purchases: list[Purchase] | None = None) -> None:
        self._purchases: dict[str, Purchase] = {}
        for purchase in purchases or []:
            self.add_purchase(purchase)

    def add_purchase(self, purchase: Purchase) -> Purchase:
        self._purchases[purchase.id] = purchase
        return purchase

    async def get_purchase(
        self,
        purchase_id: str,
        user_id: str | None = None,
    ) -> Purchase | None:
        purchase = self._purchases.get(purchase_id)
        if purchase is None or (user_id is not None and purchase.user_id != user_id):
            return None
        return purchase

    async def list_active_purchases_with_warranty(
        self,
        user_id: str,
        now: datetime,
    ) -> list[Purchase]:
        matches = [
            p
            for p in self._purchases.values()
            if p.user_id == user_id
            and p.status == PurchaseStatus.ACTIVE
            and p.warranty_valid_at(now)
        ]
        return sorted(matches, key=lambda p: p.created_at, reverse=True)

    async def mark_claimed(self, purchase_id: str) -> None:
        purchase = self._purchases.get(purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase not found: {purchase_id}")
        self._purchases[purchase_id] = purchase.model_copy(
            update={"status": PurchaseStatus.CLAIMED}
        )

    def restore(self, purchase: Purchase) -> None:
        self._purchases[purchase.id] = purchase


class InMemoryBalanceLedger:
    """Balance ledger backed by a dict of Decimals."""

    def __init__(self, balances: dict[str, Decimal] | None = None) -> None:
        self._balances: dict[str, Decimal] = dict(balances or {})

    async def credit_balance(self, user_id: str, amount: Decimal) -> Decimal:
        new_balance = self._balances.get(user_id, Decimal("0")) + amount
        self._balances[user_id] = new_balance
        return new_balance

    async def get_balance(self, user_id: str) -> Decimal:
        return self._balances.get(user_id, Decimal("0"))


class InMemoryClaimRepository(ClaimRepository):
    """Claim repository holding claims and refund transactions in memory."""

    def __init__(
        self,
        purchases: InMemoryPurchaseStore,
        ledger: InMemoryBalanceLedger,
    ) -> None:
        self._purchases = purchases
        self._ledger = ledger
        self._claims: dict[str, WarrantyClaim] = {}
        self._refunds: dict[str, RefundTransaction] = {}
        self._lock = asyncio.Lock()

    @property
    def refund_transactions(self) -> list[RefundTransaction]:
        return list(self._refunds.values())

    async def _with_purchase(self, claim: WarrantyClaim) -> WarrantyClaim:
        purchase = await self._purchases.get_purchase(claim.purchase_id)
        summary = PurchaseSummary.from_purchase(purchase) if purchase else None
        return claim.model_copy(update={"purchase": summary})

    async def create_claim(self, claim: WarrantyClaim) -> WarrantyClaim:
        async with self._lock:
            for existing in self._claims.values():
                if existing.purchase_id == claim.purchase_id and existing.is_active:
                    raise DuplicateClaimError(
                        "This purchase already has an open warranty claim",
                        purchase_id=claim.purchase_id,
                        claim_id=existing.id,
                    )
            stored = claim.model_copy(update={"purchase": None})
            self._claims[stored.id] = stored
        return await self._with_purchase(stored)

    async def get_claim(
        self,
        claim_id: str,
        user_id: str | None = None,
    ) -> WarrantyClaim | None:
        claim = self._claims.get(claim_id)
        if claim is None or (user_id is not None and claim.user_id != user_id):
            return None
        return await self._with_purchase(claim)

    def _filtered(
        self,
        user_id: str | None,
        status: ClaimStatus | None,
    ) -> list[WarrantyClaim]:
        return [
            c
            for c in self._claims.values()
            if (user_id is None or c.user_id == user_id)
            and (status is None or c.status == status)
        ]

    async def list_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[WarrantyClaim]:
        claims = sorted(
            self._filtered(user_id, status),
            key=lambda c: c.created_at,
            reverse=True,
        )
        return [await self._with_purchase(c) for c in claims[offset : offset + limit]]

    async def count_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
    ) -> int:
        return len(self._filtered(user_id, status))

    async def count_by_status(self, user_id: str | None = None) -> dict[ClaimStatus, int]:
        return dict(Counter(c.status for c in self._filtered(user_id, None)))

    async def count_by_month(self, since: datetime) -> dict[str, int]:
        return dict(
            Counter(
                c.created_at.strftime("%Y-%m")
                for c in self._claims.values()
                if c.created_at >= since
            )
        )

    async def active_claim_purchase_ids(self, user_id: str) -> set[str]:
        return {
            c.purchase_id
            for c in self._claims.values()
            if c.user_id == user_id and c.status in ACTIVE_CLAIM_STATUSES
        }

    async def update_status(
        self,
        claim_id: str,
        expected_status: ClaimStatus,
        new_status: ClaimStatus,
        updated_at: datetime,
        resolved_at: datetime | None = None,
        admin_notes: str | None = None,
    ) -> WarrantyClaim | None:
        async with self._lock:
            claim = self._claims.get(claim_id)
            if claim is None or claim.status != expected_status:
                return None

            changes: dict[str, object] = {
                "status": new_status,
                "updated_at": updated_at,
                "resolved_at": resolved_at,
            }
            if admin_notes is not None:
                changes["admin_notes"] = admin_notes

            updated = claim.model_copy(update=changes)
            self._claims[claim_id] = updated
        return await self._with_purchase(updated)

    async def delete_claim(self, claim_id: str) -> WarrantyClaim | None:
        async with self._lock:
            claim = self._claims.pop(claim_id, None)
        if claim is None:
            return None
        return await self._with_purchase(claim)

    async def settle_refund(self, claim_id: str, settled_at: datetime) -> SettlementRecord:
        async with self._lock:
            claim = self._claims.get(claim_id)
            if claim is None:
                raise NotFoundError(f"Warranty claim not found: {claim_id}")
            if claim.claim_type != ClaimType.REFUND:
                raise InvalidStateError(
                    "Only refund claims can be settled",
                    claim_id=claim_id,
                    claim_type=claim.claim_type.value,
                )
            if claim.status == ClaimStatus.COMPLETED:
                raise AlreadySettledError(
                    "Refund has already been processed for this claim",
                    claim_id=claim_id,
                )
            if claim.status != ClaimStatus.APPROVED:
                raise InvalidStateError(
                    f"Only approved claims can be refunded (status: {claim.status.value})",
                    claim_id=claim_id,
                    status=claim.status.value,
                )

            purchase = await self._purchases.get_purchase(claim.purchase_id)
            if purchase is None:
                raise NotFoundError(f"Purchase not found: {claim.purchase_id}")

            transaction = RefundTransaction(
                id=str(uuid.uuid4()),
                user_id=claim.user_id,
                amount=purchase.total_price,
                linked_claim_id=claim.id,
                linked_purchase_id=purchase.id,
                created_at=settled_at,
            )
            settled = claim.model_copy(
                update={
                    "status": ClaimStatus.COMPLETED,
                    "updated_at": settled_at,
                    "resolved_at": settled_at,
                    "resolution_details": {
                        "refund_transaction_id": transaction.id,
                        "refund_amount": str(transaction.amount),
                        "refund_processed_at": settled_at.isoformat(),
                    },
                }
            )

            credited = False
            try:
                new_balance = await self._ledger.credit_balance(
                    claim.user_id, transaction.amount
                )
                credited = True
                await self._purchases.mark_claimed(purchase.id)
                self._refunds[transaction.id] = transaction
                self._claims[claim_id] = settled
            except Exception:
                logger.error("refund_settlement_rolled_back", claim_id=claim_id)
                if credited:
                    await self._ledger.credit_balance(claim.user_id, -transaction.amount)
                self._purchases.restore(purchase)
                self._refunds.pop(transaction.id, None)
                self._claims[claim_id] = claim
                raise

        return SettlementRecord(
            previous=await self._with_purchase(claim),
            result=SettlementResult(
                transaction=transaction,
                claim=await self._with_purchase(settled),
                new_balance=new_balance,
            ),
        )
