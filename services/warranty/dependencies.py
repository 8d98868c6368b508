"""
Warranty Service Dependencies
=============================

Process-wide WarrantyClaimService used by routes and WebSocket handlers.

Version: 0.1.0
"""

from services.warranty.service import WarrantyClaimService


_service: WarrantyClaimService | None = None


def get_warranty_service() -> WarrantyClaimService:
    """FastAPI dependency returning the configured service."""
    global _service
    if _service is None:
        _service = WarrantyClaimService.from_settings()
    return _service


def set_warranty_service(service: WarrantyClaimService | None) -> None:
    """Replace the process-wide service (startup wiring and tests)."""
    global _service
    if _service is not None and _service is not service:
        _service.close()
    _service = service
