"""
Evidence Storage
================

Screenshot uploads attached to warranty claims.

Uploads are validated for type and size, stored under the uploader's
namespace (`<user_id>/<uuid>.<ext>`), and viewed through short-lived signed
URLs so a leaked link stops working after `evidence_url_ttl_seconds`.

Version: 0.1.0
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import urlencode

from shared.config import settings
from shared.logging import get_logger
from services.warranty.errors import ClaimValidationError, NotFoundError


logger = get_logger(__name__)

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class EvidenceStorage(Protocol):
    """Blob storage for claim evidence."""

    async def upload_evidence(
        self,
        user_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> str:
        """Store one file and return its evidence reference."""
        ...

    def resolve_view_url(self, ref: str, ttl_seconds: int | None = None) -> str:
        """Return a time-limited URL for viewing `ref`."""
        ...

    async def evidence_size(self, ref: str) -> int | None:
        """Stored size of `ref` in bytes, or None if nothing was uploaded there."""
        ...


def validate_evidence_file(content_type: str | None, size: int) -> None:
    """
    Check one upload against the allowed types and size cap.

    Raises:
        ClaimValidationError: unsupported type, empty file, or too large
    """
    allowed = settings.warranty.allowed_evidence_types
    if content_type not in allowed:
        raise ClaimValidationError(
            "Evidence must be a JPEG, PNG, GIF or WebP image",
            content_type=content_type,
            allowed_types=allowed,
        )
    if size <= 0:
        raise ClaimValidationError("Evidence file is empty")

    max_bytes = settings.warranty.max_evidence_bytes
    if size > max_bytes:
        raise ClaimValidationError(
            f"Evidence file exceeds {max_bytes // (1024 * 1024)} MB",
            size=size,
            max_bytes=max_bytes,
        )


def evidence_owner(ref: str) -> str | None:
    """User id namespace of an evidence reference, or None if malformed."""
    owner, sep, name = ref.partition("/")
    if not sep or not owner or not name or "/" in name or ".." in ref:
        return None
    return owner


def evidence_content_type(ref: str) -> str | None:
    """Image type implied by the reference's extension."""
    suffix = PurePosixPath(ref).suffix.lower()
    for content_type, ext in EXTENSIONS.items():
        if ext == suffix:
            return content_type
    return None


async def check_stored_evidence(storage: EvidenceStorage, ref: str) -> None:
    """
    Check that `ref` was uploaded and is still an allowed image.

    Raises:
        ClaimValidationError: missing file, wrong type, or too large
    """
    content_type = evidence_content_type(ref)
    if content_type is None:
        raise ClaimValidationError(
            "Evidence must be a JPEG, PNG, GIF or WebP image",
            ref=ref,
        )
    size = await storage.evidence_size(ref)
    if size is None:
        raise ClaimValidationError("Evidence not found", ref=ref)
    validate_evidence_file(content_type, size)


class LocalEvidenceStorage:
    """
    Evidence storage on the local filesystem.

    Files are served back by the `/evidence` route after signature checks.
    """

    def __init__(
        self,
        base_dir: Path | None = None,
        base_url: str | None = None,
        signing_key: str | None = None,
    ) -> None:
        self.base_dir = Path(base_dir or settings.warranty.evidence_dir)
        self.base_url = (base_url or settings.warranty.evidence_base_url).rstrip("/")
        self._key = (signing_key or settings.secret_key.get_secret_value()).encode()

    def _sign(self, ref: str, expires: int) -> str:
        message = f"{ref}:{expires}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def path_for(self, ref: str) -> Path:
        if evidence_owner(ref) is None:
            raise NotFoundError(f"Evidence not found: {ref}")
        return self.base_dir / ref

    async def upload_evidence(
        self,
        user_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> str:
        validate_evidence_file(content_type, len(data))

        ref = f"{user_id}/{uuid.uuid4().hex}{EXTENSIONS[content_type]}"
        path = self.base_dir / ref
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)

        logger.info(
            "evidence_uploaded",
            user_id=user_id,
            ref=ref,
            original_filename=filename,
            size=len(data),
        )
        return ref

    async def evidence_size(self, ref: str) -> int | None:
        if evidence_owner(ref) is None:
            return None
        path = self.base_dir / ref
        if not await asyncio.to_thread(path.is_file):
            return None
        stat = await asyncio.to_thread(path.stat)
        return stat.st_size

    def resolve_view_url(self, ref: str, ttl_seconds: int | None = None) -> str:
        ttl = ttl_seconds if ttl_seconds is not None else settings.warranty.evidence_url_ttl_seconds
        expires = int(time.time()) + ttl
        query = urlencode({"expires": expires, "signature": self._sign(ref, expires)})
        return f"{self.base_url}/{ref}?{query}"

    def verify(self, ref: str, expires: int, signature: str) -> bool:
        """Check a signed URL's parameters for `ref`."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._sign(ref, expires), signature)
