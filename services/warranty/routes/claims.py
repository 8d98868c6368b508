"""
Member Claim Routes
===================

Warranty endpoints for the member area.

Version: 0.1.0
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from shared.auth import User, get_optional_user
from shared.logging import get_logger
from shared.models.common import BaseResponse
from shared.models.warranty import (
    ClaimStats,
    ClaimStatus,
    ClaimSubmitRequest,
    EligibleAccount,
    EvidenceUpload,
    WarrantyClaim,
)
from services.warranty.dependencies import get_warranty_service
from services.warranty.errors import NotAuthenticatedError
from services.warranty.service import WarrantyClaimService


logger = get_logger(__name__)

router = APIRouter()

OptionalUser = Annotated[User | None, Depends(get_optional_user)]
Service = Annotated[WarrantyClaimService, Depends(get_warranty_service)]


def _user_id(user: User | None) -> str | None:
    return user.id if user else None


@router.get("/eligible-accounts", response_model=BaseResponse[list[EligibleAccount]])
async def list_eligible_accounts(
    user: OptionalUser,
    service: Service,
) -> BaseResponse[list[EligibleAccount]]:
    """Purchased accounts that can be claimed right now."""
    accounts = await service.list_eligible_accounts(_user_id(user))
    return BaseResponse(data=accounts)


@router.post(
    "/claims",
    response_model=BaseResponse[WarrantyClaim],
    status_code=status.HTTP_201_CREATED,
)
async def submit_claim(
    body: ClaimSubmitRequest,
    user: OptionalUser,
    service: Service,
) -> BaseResponse[WarrantyClaim]:
    """
    Submit a warranty claim.

    The purchase must be active, under warranty, and free of open claims.
    """
    claim = await service.submit_claim(
        _user_id(user),
        body.purchase_id,
        body.reason,
        evidence_urls=body.evidence_urls,
        claim_type=body.claim_type,
        reason_code=body.reason_code,
    )
    return BaseResponse(data=claim, message="Warranty claim submitted")


@router.get("/claims", response_model=BaseResponse[list[WarrantyClaim]])
async def list_claims(
    user: OptionalUser,
    service: Service,
    status: ClaimStatus | None = Query(default=None, description="Filter by status"),
    limit: int | None = Query(default=None, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> BaseResponse[list[WarrantyClaim]]:
    claims = await service.list_claims(_user_id(user), status=status, limit=limit, offset=offset)
    return BaseResponse(data=claims)


@router.get("/claims/{claim_id}", response_model=BaseResponse[WarrantyClaim])
async def get_claim(
    claim_id: str,
    user: OptionalUser,
    service: Service,
) -> BaseResponse[WarrantyClaim]:
    claim = await service.get_claim(_user_id(user), claim_id)
    return BaseResponse(data=claim)


@router.get("/claims/{claim_id}/evidence", response_model=BaseResponse[list[str]])
async def get_claim_evidence(
    claim_id: str,
    user: OptionalUser,
    service: Service,
) -> BaseResponse[list[str]]:
    """Signed view URLs for the claim's screenshots."""
    urls = await service.get_claim_evidence_urls(_user_id(user), claim_id)
    return BaseResponse(data=urls)


@router.post(
    "/evidence",
    response_model=BaseResponse[EvidenceUpload],
    status_code=status.HTTP_201_CREATED,
)
async def upload_evidence(
    user: OptionalUser,
    service: Service,
    file: UploadFile = File(..., description="Screenshot (JPEG, PNG, GIF or WebP, max 5 MB)"),
) -> BaseResponse[EvidenceUpload]:
    data = await file.read()
    uploaded = await service.upload_evidence(
        _user_id(user),
        file.filename or "evidence",
        file.content_type or "",
        data,
    )
    return BaseResponse(data=uploaded)


@router.get("/stats", response_model=BaseResponse[ClaimStats])
async def get_claim_stats(
    user: OptionalUser,
    service: Service,
) -> BaseResponse[ClaimStats]:
    """Claim counts for the current member."""
    user_id = _user_id(user)
    if user_id is None:
        raise NotAuthenticatedError()
    stats = await service.get_claim_stats(user_id)
    return BaseResponse(data=stats)
