"""
Claim Submission Tests
======================

Tests for claim creation, input validation and the one-open-claim rule.

Version: 0.1.0
"""

import asyncio

import pytest

from shared.config import settings
from shared.models.warranty import (
    ClaimReason,
    ClaimStatus,
    ClaimType,
    PurchaseStatus,
)
from services.warranty.errors import (
    ClaimValidationError,
    DuplicateClaimError,
    NotAuthenticatedError,
    NotFoundError,
    WarrantyExpiredError,
)
from services.warranty.realtime import ClaimInserted


VALID_REASON = "Akun tidak bisa login setelah 2 hari"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def purchase(warranty_service, purchase_factory, member_id):
    return warranty_service.purchases.add_purchase(purchase_factory(member_id))


class TestSubmitClaim:
    """Tests for ClaimSubmissionService."""

    @pytest.mark.asyncio
    async def test_creates_pending_claim(self, warranty_service, purchase, member_id, clock) -> None:
        claim = await warranty_service.submit_claim(
            member_id,
            purchase.id,
            VALID_REASON,
            claim_type=ClaimType.REPLACEMENT,
            reason_code=ClaimReason.ACCOUNT_INVALID,
        )

        assert claim.status == ClaimStatus.PENDING
        assert claim.user_id == member_id
        assert claim.purchase_id == purchase.id
        assert claim.reason == VALID_REASON
        assert claim.reason_code == ClaimReason.ACCOUNT_INVALID
        assert claim.resolved_at is None
        assert claim.created_at == clock.now
        assert claim.purchase is not None
        assert claim.purchase.product.name == "BM Verified"

    @pytest.mark.asyncio
    async def test_reason_is_trimmed(self, warranty_service, purchase, member_id) -> None:
        claim = await warranty_service.submit_claim(member_id, purchase.id, f"  {VALID_REASON}  ")

        assert claim.reason == VALID_REASON

    @pytest.mark.asyncio
    async def test_purchase_record_is_not_modified(
        self, warranty_service, purchase, member_id
    ) -> None:
        await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

        stored = await warranty_service.purchases.get_purchase(purchase.id)
        assert stored == purchase

    @pytest.mark.asyncio
    async def test_requires_user(self, warranty_service, purchase) -> None:
        with pytest.raises(NotAuthenticatedError):
            await warranty_service.submit_claim(None, purchase.id, VALID_REASON)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   ", "Rusak", "x" * 9, "x" * 501])
    async def test_rejects_bad_reason_length(
        self, warranty_service, purchase, member_id, reason
    ) -> None:
        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(member_id, purchase.id, reason)

        assert await warranty_service.claims.count_claims() == 0

    @pytest.mark.asyncio
    async def test_accepts_reason_length_bounds(
        self, warranty_service, purchase_factory, member_id
    ) -> None:
        short = warranty_service.purchases.add_purchase(purchase_factory(member_id))
        long = warranty_service.purchases.add_purchase(purchase_factory(member_id))

        await warranty_service.submit_claim(member_id, short.id, "x" * 10)
        await warranty_service.submit_claim(member_id, long.id, "x" * 500)

        assert await warranty_service.claims.count_claims() == 2

    @pytest.mark.asyncio
    async def test_rejects_more_than_three_evidence_files(
        self, warranty_service, purchase, member_id
    ) -> None:
        evidence = [f"{member_id}/shot-{i}.png" for i in range(4)]

        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(
                member_id, purchase.id, VALID_REASON, evidence_urls=evidence
            )

        assert await warranty_service.claims.count_claims() == 0

    @pytest.mark.asyncio
    async def test_accepts_three_evidence_files(
        self, warranty_service, purchase, member_id
    ) -> None:
        evidence = []
        for i in range(3):
            upload = await warranty_service.upload_evidence(
                member_id, f"bukti-{i}.png", "image/png", PNG_BYTES
            )
            evidence.append(upload.ref)

        claim = await warranty_service.submit_claim(
            member_id, purchase.id, VALID_REASON, evidence_urls=evidence
        )

        assert claim.evidence_urls == evidence

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["never-uploaded.exe", "never-uploaded.png"])
    async def test_rejects_evidence_never_uploaded(
        self, warranty_service, purchase, member_id, name
    ) -> None:
        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(
                member_id,
                purchase.id,
                VALID_REASON,
                evidence_urls=[f"{member_id}/{name}"],
            )

        assert await warranty_service.claims.count_claims() == 0

    @pytest.mark.asyncio
    async def test_rejects_oversized_stored_evidence(
        self, warranty_service, purchase, member_id, evidence_dir
    ) -> None:
        ref = f"{member_id}/besar.png"
        path = evidence_dir / ref
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\x00" * (settings.warranty.max_evidence_bytes + 1))

        with pytest.raises(ClaimValidationError) as exc_info:
            await warranty_service.submit_claim(
                member_id, purchase.id, VALID_REASON, evidence_urls=[ref]
            )

        assert exc_info.value.details["max_bytes"] == settings.warranty.max_evidence_bytes
        assert await warranty_service.claims.count_claims() == 0

    @pytest.mark.asyncio
    async def test_rejects_stored_file_with_disallowed_extension(
        self, warranty_service, purchase, member_id, evidence_dir
    ) -> None:
        ref = f"{member_id}/skrip.exe"
        path = evidence_dir / ref
        path.parent.mkdir(parents=True)
        path.write_bytes(b"MZ")

        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(
                member_id, purchase.id, VALID_REASON, evidence_urls=[ref]
            )

    @pytest.mark.asyncio
    async def test_rejects_evidence_of_another_member(
        self, warranty_service, purchase, member_id, other_member_id
    ) -> None:
        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(
                member_id,
                purchase.id,
                VALID_REASON,
                evidence_urls=[f"{other_member_id}/shot.png"],
            )

    @pytest.mark.asyncio
    async def test_unknown_purchase(self, warranty_service, member_id) -> None:
        with pytest.raises(NotFoundError):
            await warranty_service.submit_claim(member_id, "missing-purchase", VALID_REASON)

    @pytest.mark.asyncio
    async def test_purchase_of_another_member(
        self, warranty_service, purchase, other_member_id
    ) -> None:
        with pytest.raises(NotFoundError):
            await warranty_service.submit_claim(other_member_id, purchase.id, VALID_REASON)

    @pytest.mark.asyncio
    async def test_inactive_purchase(self, warranty_service, purchase_factory, member_id) -> None:
        disabled = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, status=PurchaseStatus.DISABLED)
        )

        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(member_id, disabled.id, VALID_REASON)

    @pytest.mark.asyncio
    async def test_expired_warranty(self, warranty_service, purchase_factory, member_id) -> None:
        expired = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, warranty_days=-1)
        )

        with pytest.raises(WarrantyExpiredError):
            await warranty_service.submit_claim(member_id, expired.id, VALID_REASON)

        assert await warranty_service.claims.count_claims() == 0

    @pytest.mark.asyncio
    async def test_missing_warranty(self, warranty_service, purchase_factory, member_id) -> None:
        no_warranty = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, warranty_days=None)
        )

        with pytest.raises(WarrantyExpiredError):
            await warranty_service.submit_claim(member_id, no_warranty.id, VALID_REASON)

    @pytest.mark.asyncio
    async def test_warranty_expiring_after_eligibility_check(
        self, warranty_service, purchase_factory, member_id, clock
    ) -> None:
        purchase = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, warranty_days=1)
        )
        assert await warranty_service.list_eligible_accounts(member_id)

        clock.advance(days=1)

        with pytest.raises(WarrantyExpiredError):
            await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

    @pytest.mark.asyncio
    async def test_second_claim_is_duplicate(self, warranty_service, purchase, member_id) -> None:
        await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

        with pytest.raises(DuplicateClaimError):
            await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

    @pytest.mark.asyncio
    async def test_concurrent_submissions_create_one_claim(
        self, warranty_service, purchase, member_id
    ) -> None:
        results = await asyncio.gather(
            warranty_service.submit_claim(member_id, purchase.id, VALID_REASON),
            warranty_service.submit_claim(member_id, purchase.id, VALID_REASON),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], DuplicateClaimError)
        assert await warranty_service.claims.count_claims() == 1

    @pytest.mark.asyncio
    async def test_new_claim_allowed_after_rejection(
        self, warranty_service, purchase, member_id
    ) -> None:
        first = await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)
        await warranty_service.update_claim_status(first.id, ClaimStatus.REJECTED)

        second = await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

        assert second.id != first.id
        assert second.status == ClaimStatus.PENDING

    @pytest.mark.asyncio
    async def test_publishes_insert_event(self, warranty_service, purchase, member_id) -> None:
        received = []
        warranty_service.subscribe(received.append, user_id=member_id)

        claim = await warranty_service.submit_claim(member_id, purchase.id, VALID_REASON)

        assert len(received) == 1
        assert isinstance(received[0], ClaimInserted)
        assert received[0].claim.id == claim.id

    @pytest.mark.asyncio
    async def test_failed_submission_publishes_nothing(
        self, warranty_service, purchase, member_id
    ) -> None:
        received = []
        warranty_service.subscribe(received.append)

        with pytest.raises(ClaimValidationError):
            await warranty_service.submit_claim(member_id, purchase.id, "short")

        assert received == []
