"""
Repository Interfaces
=====================

Storage contracts for the claim lifecycle. The claim repository is the only
component that writes claim records; purchases and balances belong to other
parts of the storefront and are reached through narrow protocols.

Version: 0.1.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from shared.models.warranty import (
    ClaimStatus,
    Purchase,
    SettlementResult,
    WarrantyClaim,
)


class PurchaseStore(Protocol):
    """Read access to purchased accounts owned by checkout."""

    async def get_purchase(
        self,
        purchase_id: str,
        user_id: str | None = None,
    ) -> Purchase | None:
        """Fetch a purchase, scoped to `user_id` when given."""
        ...

    async def list_active_purchases_with_warranty(
        self,
        user_id: str,
        now: datetime,
    ) -> list[Purchase]:
        """Active purchases whose warranty expires after `now`, newest first."""
        ...

    async def mark_claimed(self, purchase_id: str) -> None:
        """Flip a purchase to `claimed`."""
        ...


class BalanceLedger(Protocol):
    """Member wallet balances."""

    async def credit_balance(self, user_id: str, amount: Decimal) -> Decimal:
        """Add `amount` and return the new balance."""
        ...

    async def get_balance(self, user_id: str) -> Decimal:
        ...


@dataclass(frozen=True)
class SettlementRecord:
    """Settlement outcome together with the claim as it was before."""

    previous: WarrantyClaim
    result: SettlementResult


class ClaimRepository(ABC):
    """
    Persistence for warranty claims.

    Implementations must make `create_claim`, `update_status` and
    `settle_refund` atomic with respect to concurrent callers:

    - `create_claim` raises DuplicateClaimError when the purchase already
      holds a claim in pending, reviewing or approved.
    - `update_status` only applies when the stored status still equals
      `expected_status`, returning None otherwise.
    - `settle_refund` moves approved to completed, records the refund,
      credits the balance and marks the purchase claimed as one unit.
    """

    @abstractmethod
    async def create_claim(self, claim: WarrantyClaim) -> WarrantyClaim:
        """Insert a new claim and return it with its purchase summary."""

    @abstractmethod
    async def get_claim(
        self,
        claim_id: str,
        user_id: str | None = None,
    ) -> WarrantyClaim | None:
        """Fetch a claim, scoped to `user_id` when given."""

    @abstractmethod
    async def list_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[WarrantyClaim]:
        """List claims newest first."""

    @abstractmethod
    async def count_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
    ) -> int:
        ...

    @abstractmethod
    async def count_by_status(self, user_id: str | None = None) -> dict[ClaimStatus, int]:
        ...

    @abstractmethod
    async def count_by_month(self, since: datetime) -> dict[str, int]:
        """Claims created since `since`, keyed by `YYYY-MM`."""

    @abstractmethod
    async def active_claim_purchase_ids(self, user_id: str) -> set[str]:
        """Purchase ids of the user's claims in pending, reviewing or approved."""

    @abstractmethod
    async def update_status(
        self,
        claim_id: str,
        expected_status: ClaimStatus,
        new_status: ClaimStatus,
        updated_at: datetime,
        resolved_at: datetime | None = None,
        admin_notes: str | None = None,
    ) -> WarrantyClaim | None:
        """
        Conditionally move a claim from `expected_status` to `new_status`.

        `admin_notes` of None leaves the stored notes untouched. Returns the
        updated claim, or None when the stored status no longer matches.
        """

    @abstractmethod
    async def delete_claim(self, claim_id: str) -> WarrantyClaim | None:
        """Remove a claim and return what was removed."""

    @abstractmethod
    async def settle_refund(self, claim_id: str, settled_at: datetime) -> SettlementRecord:
        """
        Settle an approved claim.

        Raises:
            NotFoundError: claim does not exist
            AlreadySettledError: claim is already completed
            InvalidStateError: claim is in any other non-approved status
        """
