"""
Claim Lifecycle Scenarios
=========================

End-to-end walks through the claim lifecycle as a member and an admin
see it, including realtime delivery.

Version: 0.1.0
"""

from decimal import Decimal

import pytest

from shared.models.warranty import ClaimStatus, ClaimType, PurchaseStatus
from services.warranty.errors import DuplicateClaimError
from services.warranty.realtime import ClaimInserted, ClaimUpdated


class TestReplacementScenario:
    @pytest.mark.asyncio
    async def test_submit_approve_and_notify(
        self, warranty_service, purchase_factory, member_id, clock
    ) -> None:
        purchase = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, warranty_days=5, created_days_ago=2)
        )
        member_events, admin_events = [], []
        warranty_service.subscribe(member_events.append, user_id=member_id)
        warranty_service.subscribe(admin_events.append)

        eligible = await warranty_service.list_eligible_accounts(member_id)
        assert [a.id for a in eligible] == [purchase.id]

        claim = await warranty_service.submit_claim(
            member_id, purchase.id, "Akun tidak bisa login setelah 2 hari"
        )
        assert claim.status == ClaimStatus.PENDING
        assert await warranty_service.list_eligible_accounts(member_id) == []

        clock.advance(hours=3)
        approved = await warranty_service.update_claim_status(
            claim.id, ClaimStatus.APPROVED, "Disetujui, akan diganti"
        )

        assert approved.status == ClaimStatus.APPROVED
        assert approved.admin_notes == "Disetujui, akan diganti"
        assert approved.resolved_at == clock.now

        assert [type(e) for e in member_events] == [ClaimInserted, ClaimUpdated]
        update = member_events[-1]
        assert update.old.status == ClaimStatus.PENDING
        assert update.new.status == ClaimStatus.APPROVED
        assert admin_events == member_events

        # Approved claims stay open, so the purchase is still not claimable
        assert await warranty_service.list_eligible_accounts(member_id) == []
        with pytest.raises(DuplicateClaimError):
            await warranty_service.submit_claim(
                member_id, purchase.id, "Akun masih tidak bisa login"
            )

        stats = await warranty_service.get_claim_stats(member_id)
        assert stats.approved == 1
        assert stats.success_rate == 100.0

    @pytest.mark.asyncio
    async def test_rejected_claim_frees_purchase(
        self, warranty_service, purchase_factory, member_id
    ) -> None:
        purchase = warranty_service.purchases.add_purchase(purchase_factory(member_id))
        claim = await warranty_service.submit_claim(
            member_id, purchase.id, "Akun tidak bisa login setelah 2 hari"
        )

        await warranty_service.update_claim_status(claim.id, ClaimStatus.REVIEWING)
        await warranty_service.update_claim_status(
            claim.id, ClaimStatus.REJECTED, "Bukti tidak cukup"
        )

        eligible = await warranty_service.list_eligible_accounts(member_id)
        assert [a.id for a in eligible] == [purchase.id]

        second = await warranty_service.submit_claim(
            member_id, purchase.id, "Akun terkena checkpoint, lampiran baru"
        )
        assert second.status == ClaimStatus.PENDING
        assert len(await warranty_service.list_claims(member_id)) == 2


class TestRefundScenario:
    @pytest.mark.asyncio
    async def test_refund_claim_credits_balance(
        self, warranty_service, purchase_factory, member_id
    ) -> None:
        purchase = warranty_service.purchases.add_purchase(
            purchase_factory(member_id, total_price=Decimal("275000"))
        )
        member_events = []
        warranty_service.subscribe(member_events.append, user_id=member_id)

        claim = await warranty_service.submit_claim(
            member_id,
            purchase.id,
            "Akun dinonaktifkan oleh Facebook",
            claim_type=ClaimType.REFUND,
        )
        await warranty_service.update_claim_status(claim.id, ClaimStatus.APPROVED)

        stored = await warranty_service.purchases.get_purchase(purchase.id)
        assert stored.status == PurchaseStatus.CLAIMED

        result = await warranty_service.settle_refund(claim.id)

        assert result.claim.status == ClaimStatus.COMPLETED
        assert result.new_balance == Decimal("275000")
        assert [e.new.status for e in member_events if isinstance(e, ClaimUpdated)] == [
            ClaimStatus.APPROVED,
            ClaimStatus.COMPLETED,
        ]

        page = await warranty_service.list_all_claims(status=ClaimStatus.COMPLETED)
        assert [c.id for c in page.claims] == [claim.id]
        assert page.pagination.total == 1

        stats = await warranty_service.get_claim_stats()
        assert stats.completed == 1
        assert stats.success_rate == 100.0
