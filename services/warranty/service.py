"""
Warranty Claim Service
======================

Single entry point used by the routes. Composes the lifecycle services,
serves the member/admin read views through the Redis cache, and wires the
realtime consumers onto the event bus.

Usage:
    service = WarrantyClaimService.in_memory()
    claim = await service.submit_claim(user.id, purchase_id, reason)

Version: 0.1.0
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from pydantic import TypeAdapter

from shared.config import StorageBackend, settings
from shared.logging import get_logger
from shared.models.warranty import (
    ClaimPage,
    ClaimReason,
    ClaimStats,
    ClaimStatus,
    ClaimType,
    EligibleAccount,
    EvidenceUpload,
    PaginationInfo,
    SettlementResult,
    WarrantyClaim,
    utcnow,
)
from services.warranty.errors import NotAuthenticatedError, NotFoundError
from services.warranty.evidence import EvidenceStorage, LocalEvidenceStorage
from services.warranty.realtime import (
    CacheInvalidator,
    ClaimCache,
    ClaimEventBus,
    ClaimEventHandler,
    KafkaClaimEventForwarder,
    NotificationSink,
    StatusNotifier,
    Subscription,
    admin_key,
    member_key,
)
from services.warranty.repositories import (
    BalanceLedger,
    ClaimRepository,
    InMemoryBalanceLedger,
    InMemoryClaimRepository,
    InMemoryPurchaseStore,
    PostgresBalanceLedger,
    PostgresClaimRepository,
    PostgresPurchaseStore,
    PurchaseStore,
)
from services.warranty.services import (
    ClaimReviewService,
    ClaimStatsService,
    ClaimSubmissionService,
    EligibilityEvaluator,
    RefundSettlementService,
)


logger = get_logger(__name__)

V = TypeVar("V")

_eligible_adapter = TypeAdapter(list[EligibleAccount])
_claims_adapter = TypeAdapter(list[WarrantyClaim])
_claim_adapter = TypeAdapter(WarrantyClaim)
_page_adapter = TypeAdapter(ClaimPage)
_stats_adapter = TypeAdapter(ClaimStats)


class WarrantyClaimService:
    """Facade over the warranty claim lifecycle."""

    def __init__(
        self,
        purchases: PurchaseStore,
        claims: ClaimRepository,
        ledger: BalanceLedger,
        evidence: EvidenceStorage,
        events: ClaimEventBus | None = None,
        cache: ClaimCache | None = None,
        notifications: NotificationSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.purchases = purchases
        self.claims = claims
        self.ledger = ledger
        self.evidence = evidence
        self.events = events or ClaimEventBus()
        self.cache = cache or ClaimCache()
        self.clock = clock

        self.eligibility = EligibilityEvaluator(purchases, claims, clock=clock)
        self.submission = ClaimSubmissionService(
            purchases, claims, self.events, evidence, clock=clock
        )
        self.review = ClaimReviewService(claims, purchases, self.events, clock=clock)
        self.refunds = RefundSettlementService(claims, self.events, clock=clock)
        self.stats = ClaimStatsService(claims, clock=clock)

        self._consumers: list[Subscription] = []
        if self.cache.enabled:
            self._consumers.append(
                self.events.subscribe(CacheInvalidator(self.cache), name="cache_invalidator")
            )
        self._consumers.append(
            self.events.subscribe(StatusNotifier(notifications), name="status_notifier")
        )
        if settings.warranty.kafka_forwarding:
            self._consumers.append(
                self.events.subscribe(KafkaClaimEventForwarder(), name="kafka_forwarder")
            )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def in_memory(
        cls,
        purchases: InMemoryPurchaseStore | None = None,
        ledger: InMemoryBalanceLedger | None = None,
        evidence: EvidenceStorage | None = None,
        **kwargs: Any,
    ) -> WarrantyClaimService:
        """Service over process-local storage."""
        purchases = purchases or InMemoryPurchaseStore()
        ledger = ledger or InMemoryBalanceLedger()
        return cls(
            purchases=purchases,
            claims=InMemoryClaimRepository(purchases, ledger),
            ledger=ledger,
            evidence=evidence or LocalEvidenceStorage(),
            **kwargs,
        )

    @classmethod
    def postgres(cls, evidence: EvidenceStorage | None = None, **kwargs: Any) -> WarrantyClaimService:
        """Service over the shared PostgreSQL database."""
        purchases = PostgresPurchaseStore()
        ledger = PostgresBalanceLedger()
        return cls(
            purchases=purchases,
            claims=PostgresClaimRepository(purchases=purchases, ledger=ledger),
            ledger=ledger,
            evidence=evidence or LocalEvidenceStorage(),
            **kwargs,
        )

    @classmethod
    def from_settings(cls) -> WarrantyClaimService:
        backend = settings.warranty.storage_backend
        logger.info("warranty_service_created", storage_backend=backend.value)
        if backend == StorageBackend.POSTGRES:
            return cls.postgres()
        return cls.in_memory()

    def close(self) -> None:
        for subscription in self._consumers:
            subscription.close()
        self._consumers.clear()

    # =========================================================================
    # Read-view cache
    # =========================================================================

    async def _cached(
        self,
        key: str,
        adapter: TypeAdapter[V],
        loader: Callable[[], Awaitable[V]],
    ) -> V:
        cached = await self.cache.get(key)
        if cached is not None:
            return adapter.validate_python(cached)
        value = await loader()
        await self.cache.set(key, adapter.dump_python(value, mode="json"))
        return value

    # =========================================================================
    # Member operations
    # =========================================================================

    async def list_eligible_accounts(self, user_id: str | None) -> list[EligibleAccount]:
        if not user_id:
            raise NotAuthenticatedError()

        accounts = await self._cached(
            member_key(user_id, "eligible-accounts"),
            _eligible_adapter,
            lambda: self.eligibility.list_eligible_accounts(user_id),
        )
        # Cached entries may outlive a warranty; recompute against the clock
        now = self.clock()
        return [fresh for a in accounts if (fresh := a.at(now)) is not None]

    async def submit_claim(
        self,
        user_id: str | None,
        purchase_id: str,
        reason: str,
        evidence_urls: Sequence[str] = (),
        claim_type: ClaimType = ClaimType.REPLACEMENT,
        reason_code: ClaimReason | None = None,
    ) -> WarrantyClaim:
        return await self.submission.submit_claim(
            user_id,
            purchase_id,
            reason,
            evidence_urls=evidence_urls,
            claim_type=claim_type,
            reason_code=reason_code,
        )

    async def list_claims(
        self,
        user_id: str | None,
        status: ClaimStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[WarrantyClaim]:
        if not user_id:
            raise NotAuthenticatedError()

        limit = self._clamp_limit(limit)
        return await self._cached(
            member_key(user_id, "claims", status.value if status else "all", limit, offset),
            _claims_adapter,
            lambda: self.claims.list_claims(
                user_id=user_id,
                status=status,
                limit=limit,
                offset=max(offset, 0),
            ),
        )

    async def get_claim(self, user_id: str | None, claim_id: str) -> WarrantyClaim:
        if not user_id:
            raise NotAuthenticatedError()

        async def load() -> WarrantyClaim:
            claim = await self.claims.get_claim(claim_id, user_id=user_id)
            if claim is None:
                raise NotFoundError(f"Warranty claim not found: {claim_id}")
            return claim

        return await self._cached(member_key(user_id, "claim", claim_id), _claim_adapter, load)

    async def get_claim_evidence_urls(self, user_id: str | None, claim_id: str) -> list[str]:
        """Signed, time-limited view URLs for a claim's evidence."""
        claim = await self.get_claim(user_id, claim_id)
        return [self.evidence.resolve_view_url(ref) for ref in claim.evidence_urls]

    async def upload_evidence(
        self,
        user_id: str | None,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> EvidenceUpload:
        if not user_id:
            raise NotAuthenticatedError()

        ref = await self.evidence.upload_evidence(user_id, filename, content_type, data)
        return EvidenceUpload(ref=ref, url=self.evidence.resolve_view_url(ref))

    async def get_claim_stats(self, user_id: str | None = None) -> ClaimStats:
        """Member stats when `user_id` is given, global stats otherwise."""
        key = member_key(user_id, "stats") if user_id else admin_key("stats")
        return await self._cached(key, _stats_adapter, lambda: self.stats.get_claim_stats(user_id))

    # =========================================================================
    # Admin operations
    # =========================================================================

    async def list_all_claims(
        self,
        status: ClaimStatus | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ClaimPage:
        page = max(page, 1)
        limit = self._clamp_limit(limit)

        async def load() -> ClaimPage:
            total = await self.claims.count_claims(status=status)
            claims = await self.claims.list_claims(
                status=status,
                limit=limit,
                offset=(page - 1) * limit,
            )
            return ClaimPage(claims=claims, pagination=PaginationInfo.build(page, limit, total))

        return await self._cached(
            admin_key("claims", status.value if status else "all", page, limit),
            _page_adapter,
            load,
        )

    async def update_claim_status(
        self,
        claim_id: str,
        new_status: ClaimStatus,
        admin_notes: str | None = None,
    ) -> WarrantyClaim:
        return await self.review.update_claim_status(claim_id, new_status, admin_notes)

    async def settle_refund(self, claim_id: str) -> SettlementResult:
        return await self.refunds.settle_refund(claim_id)

    async def delete_claim(self, claim_id: str) -> WarrantyClaim:
        return await self.review.delete_claim(claim_id)

    # =========================================================================
    # Realtime
    # =========================================================================

    def subscribe(
        self,
        handler: ClaimEventHandler,
        user_id: str | None = None,
        name: str | None = None,
    ) -> Subscription:
        """Member subscription when `user_id` is given, admin otherwise."""
        return self.events.subscribe(handler, user_id=user_id, name=name)

    @staticmethod
    def _clamp_limit(limit: int | None) -> int:
        if limit is None:
            return settings.warranty.default_page_size
        return min(max(limit, 1), settings.warranty.max_page_size)
