"""
Admin Claim Routes
==================

Claim review, refund settlement and reporting for admins.

Version: 0.1.0
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from shared.auth import User, require_admin
from shared.logging import get_logger
from shared.models.common import BaseResponse
from shared.models.warranty import (
    ClaimPage,
    ClaimStats,
    ClaimStatus,
    ClaimStatusUpdateRequest,
    SettlementResult,
    WarrantyClaim,
)
from services.warranty.dependencies import get_warranty_service
from services.warranty.service import WarrantyClaimService


logger = get_logger(__name__)

router = APIRouter()

Admin = Annotated[User, Depends(require_admin)]
Service = Annotated[WarrantyClaimService, Depends(get_warranty_service)]


@router.get("", response_model=BaseResponse[ClaimPage])
async def list_all_claims(
    admin: Admin,
    service: Service,
    status: ClaimStatus | None = Query(default=None, description="Filter by status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BaseResponse[ClaimPage]:
    """All claims, newest first, with pagination."""
    claims = await service.list_all_claims(status=status, page=page, limit=limit)
    return BaseResponse(data=claims)


@router.get("/stats", response_model=BaseResponse[ClaimStats])
async def get_claim_stats(admin: Admin, service: Service) -> BaseResponse[ClaimStats]:
    """Global claim counts, success rate and claims per month."""
    stats = await service.get_claim_stats()
    return BaseResponse(data=stats)


@router.put("/{claim_id}", response_model=BaseResponse[WarrantyClaim])
async def update_claim_status(
    claim_id: str,
    body: ClaimStatusUpdateRequest,
    admin: Admin,
    service: Service,
) -> BaseResponse[WarrantyClaim]:
    claim = await service.update_claim_status(claim_id, body.status, body.admin_notes)
    logger.info(
        "admin_claim_reviewed",
        claim_id=claim_id,
        admin_id=admin.id,
        status=body.status.value,
    )
    return BaseResponse(data=claim, message="Claim status updated")


@router.post("/{claim_id}/refund", response_model=BaseResponse[SettlementResult])
async def settle_refund(
    claim_id: str,
    admin: Admin,
    service: Service,
) -> BaseResponse[SettlementResult]:
    """Credit the purchase price to the member and complete the claim."""
    result = await service.settle_refund(claim_id)
    logger.info("admin_refund_processed", claim_id=claim_id, admin_id=admin.id)
    return BaseResponse(data=result, message="Refund processed")


@router.delete("/{claim_id}", response_model=BaseResponse[WarrantyClaim])
async def delete_claim(
    claim_id: str,
    admin: Admin,
    service: Service,
) -> BaseResponse[WarrantyClaim]:
    claim = await service.delete_claim(claim_id)
    logger.info("admin_claim_deleted", claim_id=claim_id, admin_id=admin.id)
    return BaseResponse(data=claim, message="Claim deleted")
