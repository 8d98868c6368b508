"""
Test Configuration
==================

Pytest fixtures for the Canvango warranty service tests.
"""

import os
import uuid
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["WARRANTY_STORAGE_BACKEND"] = "memory"
os.environ["WARRANTY_CACHE_ENABLED"] = "false"
os.environ["WARRANTY_KAFKA_FORWARDING"] = "false"

from shared.models.warranty import ProductSnapshot, Purchase, PurchaseStatus  # noqa: E402


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Controllable clock injected into the claim services."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def member_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def other_member_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def purchase_factory(clock: FrozenClock) -> Callable[..., Purchase]:
    """Build purchases relative to the frozen clock."""

    def make(
        user_id: str,
        warranty_days: float | None = 5,
        status: PurchaseStatus = PurchaseStatus.ACTIVE,
        total_price: Decimal = Decimal("150000"),
        product_name: str = "BM Verified",
        created_days_ago: float = 2,
    ) -> Purchase:
        return Purchase(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=str(uuid.uuid4()),
            product=ProductSnapshot(
                name=product_name,
                type="bm_account",
                category="business_manager",
            ),
            account_details={"email": "akun@example.com", "password": "rahasia"},
            total_price=total_price,
            warranty_expires_at=(
                clock.now + timedelta(days=warranty_days) if warranty_days is not None else None
            ),
            status=status,
            created_at=clock.now - timedelta(days=created_days_ago),
        )

    return make


@pytest.fixture
def evidence_dir(tmp_path: Path) -> Path:
    return tmp_path / "evidence"


@pytest.fixture
def warranty_service(clock: FrozenClock, evidence_dir: Path) -> Iterator[Any]:
    """In-memory WarrantyClaimService with a frozen clock and cache off."""
    from services.warranty.evidence import LocalEvidenceStorage
    from services.warranty.realtime import ClaimCache
    from services.warranty.service import WarrantyClaimService

    service = WarrantyClaimService.in_memory(
        evidence=LocalEvidenceStorage(
            base_dir=evidence_dir,
            base_url="http://test/evidence",
            signing_key="test-signing-key",
        ),
        cache=ClaimCache(enabled=False),
        clock=clock,
    )
    yield service
    service.close()


def make_token(user_id: str, roles: list[str]) -> str:
    from shared.auth import create_access_token

    return create_access_token({
        "sub": user_id,
        "email": f"{user_id[:8]}@canvango.test",
        "roles": roles,
    })


@pytest.fixture
def member_token(member_id: str) -> str:
    return make_token(member_id, ["member"])


@pytest.fixture
def admin_token() -> str:
    return make_token(str(uuid.uuid4()), ["admin"])


@pytest.fixture
def auth_headers(member_token: str) -> dict[str, str]:
    """Authorization header for the member."""
    return {"Authorization": f"Bearer {member_token}"}


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def other_member_headers(other_member_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(other_member_id, ['member'])}"}
