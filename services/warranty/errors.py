"""
Warranty Claim Errors
=====================

Error taxonomy for the claim lifecycle. Every error carries a stable `code`
for API clients and the HTTP status the app maps it to.

Version: 0.1.0
"""

from typing import Any


class WarrantyClaimError(Exception):
    """Base class for claim lifecycle errors."""

    code = "WARRANTY_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or None


class NotAuthenticatedError(WarrantyClaimError):
    """No authenticated user for a user-scoped operation."""

    code = "NOT_AUTHENTICATED"
    status_code = 401

    def __init__(self, message: str = "Authentication required", **details: Any) -> None:
        super().__init__(message, **details)


class NotFoundError(WarrantyClaimError):
    """Claim or purchase missing, or not owned by the caller."""

    code = "NOT_FOUND"
    status_code = 404


class WarrantyExpiredError(WarrantyClaimError):
    code = "WARRANTY_EXPIRED"
    status_code = 409


class DuplicateClaimError(WarrantyClaimError):
    """Purchase already has a pending, reviewing or approved claim."""

    code = "DUPLICATE_CLAIM"
    status_code = 409


class InvalidTransitionError(WarrantyClaimError):
    code = "INVALID_TRANSITION"
    status_code = 409


class InvalidStateError(WarrantyClaimError):
    """Operation not allowed for the claim's current status."""

    code = "INVALID_STATE"
    status_code = 409


class AlreadySettledError(WarrantyClaimError):
    code = "ALREADY_SETTLED"
    status_code = 409


class ClaimValidationError(WarrantyClaimError):
    """Malformed claim input: reason length, evidence count or type."""

    code = "VALIDATION_ERROR"
    status_code = 422


class TransportError(WarrantyClaimError):
    """Storage backend unreachable. Retryable on read paths."""

    code = "TRANSPORT_ERROR"
    status_code = 503


__all__ = [
    "WarrantyClaimError",
    "NotAuthenticatedError",
    "NotFoundError",
    "WarrantyExpiredError",
    "DuplicateClaimError",
    "InvalidTransitionError",
    "InvalidStateError",
    "AlreadySettledError",
    "ClaimValidationError",
    "TransportError",
]
