"""
Evidence File Route
===================

Serves uploaded evidence behind signed, expiring URLs.

Version: 0.1.0
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from shared.logging import get_logger
from services.warranty.dependencies import get_warranty_service
from services.warranty.evidence import LocalEvidenceStorage
from services.warranty.service import WarrantyClaimService


logger = get_logger(__name__)

router = APIRouter()


@router.get("/{owner}/{name}", include_in_schema=False)
async def view_evidence(
    owner: str,
    name: str,
    service: Annotated[WarrantyClaimService, Depends(get_warranty_service)],
    expires: int = Query(...),
    signature: str = Query(...),
) -> FileResponse:
    storage = service.evidence
    ref = f"{owner}/{name}"

    if not isinstance(storage, LocalEvidenceStorage):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")

    if not storage.verify(ref, expires, signature):
        logger.warning("evidence_signature_rejected", ref=ref)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Link expired or invalid")

    path = storage.path_for(ref)
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")
    return FileResponse(path)
