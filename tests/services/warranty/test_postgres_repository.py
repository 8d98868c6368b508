"""
PostgreSQL Repository Tests
===========================

Tests for the SQLAlchemy repositories against mocked sessions: constraint
mapping, conditional updates and transport error handling.

Version: 0.1.0
"""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from shared.models.warranty import ClaimStatus, ClaimType, WarrantyClaim
from services.warranty.errors import (
    AlreadySettledError,
    DuplicateClaimError,
    InvalidStateError,
    NotFoundError,
    TransportError,
)
from services.warranty.repositories import (
    PostgresClaimRepository,
    PostgresPurchaseStore,
)
from services.warranty.repositories.postgres import ACTIVE_CLAIM_INDEX


class FakeSessionFactory:
    """Stands in for `async_sessionmaker`; every session is the same mock."""

    def __init__(self, session: MagicMock) -> None:
        self.session = session
        self.calls = 0

    def __call__(self) -> "FakeSessionFactory":
        self.calls += 1
        return self

    async def __aenter__(self) -> MagicMock:
        return self.session

    async def __aexit__(self, *exc_info) -> bool:
        return False


def make_session() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def make_result(first=None, scalar=None) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.first.return_value = first
    result.first.return_value = first
    result.scalar_one_or_none.return_value = scalar
    return result


def make_claim(
    status: ClaimStatus = ClaimStatus.PENDING,
    claim_type: ClaimType = ClaimType.REPLACEMENT,
) -> WarrantyClaim:
    return WarrantyClaim(
        id=str(uuid.uuid4()),
        user_id=str(uuid.uuid4()),
        purchase_id=str(uuid.uuid4()),
        reason="Akun tidak bisa login setelah 2 hari",
        claim_type=claim_type,
        status=status,
    )


@pytest.fixture
def session() -> MagicMock:
    return make_session()


@pytest.fixture
def factory(session) -> FakeSessionFactory:
    return FakeSessionFactory(session)


@pytest.fixture
def repository(factory) -> PostgresClaimRepository:
    return PostgresClaimRepository(session_factory=factory)


class TestCreateClaim:
    """Tests for insert constraint handling."""

    @pytest.mark.asyncio
    async def test_active_claim_index_maps_to_duplicate(self, repository, session) -> None:
        session.flush.side_effect = IntegrityError(
            "INSERT INTO warranty_claims",
            {},
            Exception(f'duplicate key value violates unique constraint "{ACTIVE_CLAIM_INDEX}"'),
        )

        with pytest.raises(DuplicateClaimError):
            await repository.create_claim(make_claim())

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, repository, session) -> None:
        session.flush.side_effect = IntegrityError(
            "INSERT INTO warranty_claims",
            {},
            Exception('violates foreign key constraint "warranty_claims_purchase_id_fkey"'),
        )

        with pytest.raises(IntegrityError):
            await repository.create_claim(make_claim())


class TestReads:
    """Tests for read paths and transport retries."""

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, repository, factory) -> None:
        assert await repository.get_claim("not-a-uuid") is None
        assert factory.calls == 0

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, repository, factory, session) -> None:
        session.execute.side_effect = [
            OperationalError("SELECT", {}, Exception("connection reset")),
            make_result(first=None),
        ]

        assert await repository.get_claim(str(uuid.uuid4())) is None
        assert factory.calls == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_transport_error(
        self, repository, factory, session
    ) -> None:
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        with pytest.raises(TransportError) as exc_info:
            await repository.get_claim(str(uuid.uuid4()))

        assert exc_info.value.status_code == 503
        assert factory.calls == 3

    @pytest.mark.asyncio
    async def test_purchase_lookup_scoped_to_owner(self, factory) -> None:
        store = PostgresPurchaseStore(session_factory=factory)

        assert await store.get_purchase(str(uuid.uuid4()), user_id="not-a-uuid") is None
        assert factory.calls == 0


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_lost_race_returns_none(self, repository, session) -> None:
        session.execute.return_value = make_result(scalar=None)

        updated = await repository.update_status(
            str(uuid.uuid4()),
            expected_status=ClaimStatus.PENDING,
            new_status=ClaimStatus.REVIEWING,
            updated_at=make_claim().updated_at,
        )

        assert updated is None
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_transport_errors_are_not_retried(self, repository, factory, session) -> None:
        session.execute.side_effect = OperationalError("UPDATE", {}, Exception("server closed"))

        with pytest.raises(TransportError):
            await repository.update_status(
                str(uuid.uuid4()),
                expected_status=ClaimStatus.PENDING,
                new_status=ClaimStatus.REVIEWING,
                updated_at=make_claim().updated_at,
            )

        assert factory.calls == 1


class TestSettleRefund:
    """Tests for the zero-row branches of refund settlement."""

    async def settle_with_status(
        self, repository, session, current, claim_type=ClaimType.REFUND
    ):
        claim = make_claim(status=ClaimStatus.APPROVED, claim_type=ClaimType.REFUND)
        model = MagicMock()
        model.to_domain.return_value = claim
        row = None
        if current is not None:
            row = SimpleNamespace(status=current, claim_type=claim_type)
        session.execute.side_effect = [
            make_result(first=model),
            make_result(first=None),
            make_result(first=row),
        ]
        return await repository.settle_refund(claim.id, claim.updated_at)

    @pytest.mark.asyncio
    async def test_completed_claim_is_already_settled(self, repository, session) -> None:
        with pytest.raises(AlreadySettledError):
            await self.settle_with_status(repository, session, ClaimStatus.COMPLETED)

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unapproved_claim_is_invalid_state(self, repository, session) -> None:
        with pytest.raises(InvalidStateError) as exc_info:
            await self.settle_with_status(repository, session, ClaimStatus.PENDING)

        assert exc_info.value.details["status"] == "pending"

    @pytest.mark.asyncio
    async def test_claim_type_mismatch_on_reread(self, repository, session) -> None:
        with pytest.raises(InvalidStateError) as exc_info:
            await self.settle_with_status(
                repository, session, ClaimStatus.APPROVED, claim_type=ClaimType.REPLACEMENT
            )

        assert exc_info.value.details["claim_type"] == "replacement"

    @pytest.mark.asyncio
    async def test_replacement_claim_is_never_updated(self, repository, session) -> None:
        claim = make_claim(status=ClaimStatus.APPROVED)
        model = MagicMock()
        model.to_domain.return_value = claim
        session.execute.return_value = make_result(first=model)

        with pytest.raises(InvalidStateError) as exc_info:
            await repository.settle_refund(claim.id, claim.updated_at)

        assert exc_info.value.details["claim_type"] == "replacement"
        session.execute.assert_awaited_once()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_deleted_mid_settlement(self, repository, session) -> None:
        with pytest.raises(NotFoundError):
            await self.settle_with_status(repository, session, None)

    @pytest.mark.asyncio
    async def test_unknown_claim(self, repository, session) -> None:
        session.execute.return_value = make_result(first=None)

        with pytest.raises(NotFoundError):
            await repository.settle_refund(str(uuid.uuid4()), make_claim().updated_at)

    @pytest.mark.asyncio
    async def test_malformed_id(self, repository, factory) -> None:
        with pytest.raises(NotFoundError):
            await repository.settle_refund("claim-1", make_claim().updated_at)

        assert factory.calls == 0


class TestMarkClaimed:
    @pytest.mark.asyncio
    async def test_joins_caller_session(self, factory) -> None:
        store = PostgresPurchaseStore(session_factory=factory)
        outer = make_session()

        await store.mark_claimed(str(uuid.uuid4()), session=outer)

        outer.execute.assert_awaited_once()
        assert factory.calls == 0
