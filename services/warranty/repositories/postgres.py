"""
PostgreSQL Repositories
=======================

SQLAlchemy 2.0 async implementations of the warranty storage contracts.

Atomicity comes from the database:
- duplicate active claims are rejected by `uq_warranty_claims_active_purchase`
- status changes are `UPDATE ... WHERE status = :expected`
- refund settlement runs in one session and rolls back as a whole

Version: 0.1.0
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import settings
from shared.database.postgres import is_transport_error, postgres_session
from shared.logging import get_logger
from shared.models.warranty import (
    ACTIVE_CLAIM_STATUSES,
    ClaimStatus,
    ClaimType,
    Purchase,
    PurchaseStatus,
    SettlementResult,
    WarrantyClaim,
)
from services.warranty.errors import (
    AlreadySettledError,
    DuplicateClaimError,
    InvalidStateError,
    NotFoundError,
    TransportError,
)
from services.warranty.models import (
    MemberBalanceModel,
    PurchaseModel,
    RefundTransactionModel,
    WarrantyClaimModel,
)
from services.warranty.repositories.base import ClaimRepository, SettlementRecord


logger = get_logger(__name__)

ACTIVE_CLAIM_INDEX = "uq_warranty_claims_active_purchase"

read_retry = retry(
    retry=retry_if_exception_type(TransportError),
    stop=stop_after_attempt(settings.warranty.transport_retries),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "warranty_storage_retry",
        attempt=retry_state.attempt_number,
    ),
)


def _as_uuid(value: str | uuid.UUID | None) -> uuid.UUID | None:
    """Parse an id; malformed ids simply match nothing."""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise connection-level failures as TransportError."""
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        if not is_transport_error(e):
            raise
        logger.error("warranty_storage_unavailable", operation=operation, error=str(e))
        raise TransportError("Claim storage is unavailable", operation=operation) from e


@asynccontextmanager
async def _session_scope(
    session_factory: async_sessionmaker[AsyncSession] | None,
    session: AsyncSession | None,
) -> AsyncIterator[AsyncSession]:
    """Join the caller's session, or open a committing one."""
    if session is not None:
        yield session
        return
    async with postgres_session(session_factory) as own:
        yield own


class PostgresPurchaseStore:
    """Purchase store over the `purchases` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @read_retry
    async def get_purchase(
        self,
        purchase_id: str,
        user_id: str | None = None,
    ) -> Purchase | None:
        pid = _as_uuid(purchase_id)
        if pid is None:
            return None

        stmt = select(PurchaseModel).where(PurchaseModel.id == pid)
        if user_id is not None:
            uid = _as_uuid(user_id)
            if uid is None:
                return None
            stmt = stmt.where(PurchaseModel.user_id == uid)

        with storage_errors("get_purchase"):
            async with postgres_session(self._session_factory) as session:
                model = (await session.execute(stmt)).scalars().first()
                return model.to_domain() if model else None

    @read_retry
    async def list_active_purchases_with_warranty(
        self,
        user_id: str,
        now: datetime,
    ) -> list[Purchase]:
        uid = _as_uuid(user_id)
        if uid is None:
            return []

        stmt = (
            select(PurchaseModel)
            .where(
                PurchaseModel.user_id == uid,
                PurchaseModel.status == PurchaseStatus.ACTIVE,
                PurchaseModel.warranty_expires_at.is_not(None),
                PurchaseModel.warranty_expires_at > now,
            )
            .order_by(PurchaseModel.created_at.desc())
        )

        with storage_errors("list_active_purchases_with_warranty"):
            async with postgres_session(self._session_factory) as session:
                models = (await session.execute(stmt)).scalars().all()
                return [m.to_domain() for m in models]

    async def mark_claimed(self, purchase_id: str, session: AsyncSession | None = None) -> None:
        stmt = (
            update(PurchaseModel)
            .where(PurchaseModel.id == _as_uuid(purchase_id))
            .values(status=PurchaseStatus.CLAIMED, updated_at=datetime.now(UTC))
        )
        with storage_errors("mark_claimed"):
            async with _session_scope(self._session_factory, session) as s:
                await s.execute(stmt)


class PostgresBalanceLedger:
    """Balance ledger over the `member_balances` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    async def credit_balance(
        self,
        user_id: str,
        amount: Decimal,
        session: AsyncSession | None = None,
    ) -> Decimal:
        """Upsert-increment the balance and return the new value."""
        stmt = (
            pg_insert(MemberBalanceModel)
            .values(user_id=_as_uuid(user_id), balance=amount)
            .on_conflict_do_update(
                index_elements=[MemberBalanceModel.user_id],
                set_={
                    "balance": MemberBalanceModel.balance + amount,
                    "updated_at": datetime.now(UTC),
                },
            )
            .returning(MemberBalanceModel.balance)
        )
        with storage_errors("credit_balance"):
            async with _session_scope(self._session_factory, session) as s:
                new_balance = (await s.execute(stmt)).scalar_one()
        return Decimal(new_balance)

    @read_retry
    async def get_balance(self, user_id: str) -> Decimal:
        stmt = select(MemberBalanceModel.balance).where(
            MemberBalanceModel.user_id == _as_uuid(user_id)
        )
        with storage_errors("get_balance"):
            async with postgres_session(self._session_factory) as session:
                balance = await session.scalar(stmt)
        return Decimal(balance) if balance is not None else Decimal("0")


class PostgresClaimRepository(ClaimRepository):
    """Claim repository over the `warranty_claims` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        purchases: PostgresPurchaseStore | None = None,
        ledger: PostgresBalanceLedger | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._purchases = purchases or PostgresPurchaseStore(session_factory)
        self._ledger = ledger or PostgresBalanceLedger(session_factory)

    @staticmethod
    def _filters(user_id: str | None, status: ClaimStatus | None) -> list[Any]:
        conditions: list[Any] = []
        if user_id is not None:
            conditions.append(WarrantyClaimModel.user_id == _as_uuid(user_id))
        if status is not None:
            conditions.append(WarrantyClaimModel.status == status)
        return conditions

    async def create_claim(self, claim: WarrantyClaim) -> WarrantyClaim:
        model = WarrantyClaimModel(
            id=_as_uuid(claim.id),
            user_id=_as_uuid(claim.user_id),
            purchase_id=_as_uuid(claim.purchase_id),
            claim_type=claim.claim_type,
            reason_code=claim.reason_code.value if claim.reason_code else None,
            reason=claim.reason,
            evidence_urls=list(claim.evidence_urls),
            status=claim.status,
            created_at=claim.created_at,
            updated_at=claim.updated_at,
        )

        try:
            with storage_errors("create_claim"):
                async with postgres_session(self._session_factory) as session:
                    session.add(model)
                    await session.flush()
        except IntegrityError as e:
            if ACTIVE_CLAIM_INDEX in str(e.orig):
                raise DuplicateClaimError(
                    "This purchase already has an open warranty claim",
                    purchase_id=claim.purchase_id,
                ) from e
            raise

        created = await self.get_claim(claim.id)
        if created is None:
            raise NotFoundError(f"Warranty claim not found: {claim.id}")
        return created

    @read_retry
    async def get_claim(
        self,
        claim_id: str,
        user_id: str | None = None,
    ) -> WarrantyClaim | None:
        cid = _as_uuid(claim_id)
        if cid is None:
            return None

        stmt = select(WarrantyClaimModel).where(
            WarrantyClaimModel.id == cid,
            *self._filters(user_id, None),
        )
        with storage_errors("get_claim"):
            async with postgres_session(self._session_factory) as session:
                model = (await session.execute(stmt)).scalars().first()
                return model.to_domain() if model else None

    @read_retry
    async def list_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[WarrantyClaim]:
        stmt = (
            select(WarrantyClaimModel)
            .where(*self._filters(user_id, status))
            .order_by(WarrantyClaimModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        with storage_errors("list_claims"):
            async with postgres_session(self._session_factory) as session:
                models = (await session.execute(stmt)).scalars().all()
                return [m.to_domain() for m in models]

    @read_retry
    async def count_claims(
        self,
        user_id: str | None = None,
        status: ClaimStatus | None = None,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(WarrantyClaimModel)
            .where(*self._filters(user_id, status))
        )
        with storage_errors("count_claims"):
            async with postgres_session(self._session_factory) as session:
                return (await session.scalar(stmt)) or 0

    @read_retry
    async def count_by_status(self, user_id: str | None = None) -> dict[ClaimStatus, int]:
        stmt = (
            select(WarrantyClaimModel.status, func.count())
            .where(*self._filters(user_id, None))
            .group_by(WarrantyClaimModel.status)
        )
        with storage_errors("count_by_status"):
            async with postgres_session(self._session_factory) as session:
                rows = (await session.execute(stmt)).all()
        return {ClaimStatus(status): count for status, count in rows}

    @read_retry
    async def count_by_month(self, since: datetime) -> dict[str, int]:
        month = func.to_char(WarrantyClaimModel.created_at, "YYYY-MM").label("month")
        stmt = (
            select(month, func.count())
            .where(WarrantyClaimModel.created_at >= since)
            .group_by(month)
        )
        with storage_errors("count_by_month"):
            async with postgres_session(self._session_factory) as session:
                rows = (await session.execute(stmt)).all()
        return {m: count for m, count in rows}

    @read_retry
    async def active_claim_purchase_ids(self, user_id: str) -> set[str]:
        stmt = select(WarrantyClaimModel.purchase_id).where(
            WarrantyClaimModel.user_id == _as_uuid(user_id),
            WarrantyClaimModel.status.in_(list(ACTIVE_CLAIM_STATUSES)),
        )
        with storage_errors("active_claim_purchase_ids"):
            async with postgres_session(self._session_factory) as session:
                rows = (await session.execute(stmt)).scalars().all()
        return {str(pid) for pid in rows}

    async def update_status(
        self,
        claim_id: str,
        expected_status: ClaimStatus,
        new_status: ClaimStatus,
        updated_at: datetime,
        resolved_at: datetime | None = None,
        admin_notes: str | None = None,
    ) -> WarrantyClaim | None:
        cid = _as_uuid(claim_id)
        if cid is None:
            return None

        values: dict[str, Any] = {
            "status": new_status,
            "updated_at": updated_at,
            "resolved_at": resolved_at,
        }
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        stmt = (
            update(WarrantyClaimModel)
            .where(
                WarrantyClaimModel.id == cid,
                WarrantyClaimModel.status == expected_status,
            )
            .values(**values)
            .returning(WarrantyClaimModel.id)
        )
        with storage_errors("update_status"):
            async with postgres_session(self._session_factory) as session:
                updated_id = (await session.execute(stmt)).scalar_one_or_none()

        if updated_id is None:
            return None
        return await self.get_claim(claim_id)

    async def delete_claim(self, claim_id: str) -> WarrantyClaim | None:
        cid = _as_uuid(claim_id)
        if cid is None:
            return None

        with storage_errors("delete_claim"):
            async with postgres_session(self._session_factory) as session:
                model = (
                    await session.execute(
                        select(WarrantyClaimModel).where(WarrantyClaimModel.id == cid)
                    )
                ).scalars().first()
                if model is None:
                    return None
                removed = model.to_domain()
                await session.execute(
                    delete(WarrantyClaimModel).where(WarrantyClaimModel.id == cid)
                )
        return removed

    async def settle_refund(self, claim_id: str, settled_at: datetime) -> SettlementRecord:
        cid = _as_uuid(claim_id)
        if cid is None:
            raise NotFoundError(f"Warranty claim not found: {claim_id}")

        with storage_errors("settle_refund"):
            async with postgres_session(self._session_factory) as session:
                model = (
                    await session.execute(
                        select(WarrantyClaimModel).where(WarrantyClaimModel.id == cid)
                    )
                ).scalars().first()
                if model is None:
                    raise NotFoundError(f"Warranty claim not found: {claim_id}")
                previous = model.to_domain()
                if previous.claim_type != ClaimType.REFUND:
                    raise InvalidStateError(
                        "Only refund claims can be settled",
                        claim_id=claim_id,
                        claim_type=previous.claim_type.value,
                    )

                claimed = (
                    await session.execute(
                        update(WarrantyClaimModel)
                        .where(
                            WarrantyClaimModel.id == cid,
                            WarrantyClaimModel.status == ClaimStatus.APPROVED,
                            WarrantyClaimModel.claim_type == ClaimType.REFUND,
                        )
                        .values(
                            status=ClaimStatus.COMPLETED,
                            updated_at=settled_at,
                            resolved_at=settled_at,
                        )
                        .returning(WarrantyClaimModel.user_id, WarrantyClaimModel.purchase_id)
                    )
                ).first()

                if claimed is None:
                    current = (
                        await session.execute(
                            select(
                                WarrantyClaimModel.status, WarrantyClaimModel.claim_type
                            ).where(WarrantyClaimModel.id == cid)
                        )
                    ).first()
                    if current is None:
                        raise NotFoundError(f"Warranty claim not found: {claim_id}")
                    status = ClaimStatus(current.status)
                    if ClaimType(current.claim_type) != ClaimType.REFUND:
                        raise InvalidStateError(
                            "Only refund claims can be settled",
                            claim_id=claim_id,
                            claim_type=ClaimType(current.claim_type).value,
                        )
                    if status == ClaimStatus.COMPLETED:
                        raise AlreadySettledError(
                            "Refund has already been processed for this claim",
                            claim_id=claim_id,
                        )
                    raise InvalidStateError(
                        f"Only approved claims can be refunded (status: {status.value})",
                        claim_id=claim_id,
                        status=status.value,
                    )

                amount = await session.scalar(
                    select(PurchaseModel.total_price).where(PurchaseModel.id == claimed.purchase_id)
                )
                if amount is None:
                    raise NotFoundError(f"Purchase not found: {claimed.purchase_id}")
                amount = Decimal(amount)

                transaction = RefundTransactionModel(
                    id=uuid.uuid4(),
                    user_id=claimed.user_id,
                    amount=amount,
                    status="completed",
                    warranty_claim_id=cid,
                    purchase_id=claimed.purchase_id,
                    created_at=settled_at,
                )
                session.add(transaction)
                await session.flush()

                new_balance = await self._ledger.credit_balance(
                    str(claimed.user_id), amount, session=session
                )

                await session.execute(
                    update(WarrantyClaimModel)
                    .where(WarrantyClaimModel.id == cid)
                    .values(
                        resolution_details={
                            "refund_transaction_id": str(transaction.id),
                            "refund_amount": str(amount),
                            "refund_processed_at": settled_at.isoformat(),
                        }
                    )
                )
                await self._purchases.mark_claimed(str(claimed.purchase_id), session=session)
                refund = transaction.to_domain()

        settled = await self.get_claim(claim_id)
        if settled is None:
            raise NotFoundError(f"Warranty claim not found: {claim_id}")

        return SettlementRecord(
            previous=previous,
            result=SettlementResult(
                transaction=refund,
                claim=settled,
                new_balance=new_balance,
            ),
        )
