"""
Warranty Database Models
========================

SQLAlchemy ORM models for purchases, warranty claims, refund transactions
and member balances.

Version: 0.1.0
"""

from datetime import UTC, datetime
from decimal import Decimal
import uuid

from sqlalchemy import (
    Column,
    String,
    Text,
    Numeric,
    DateTime,
    Enum as SQLEnum,
    JSON,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from shared.database.postgres import Base
from shared.models.warranty import (
    ClaimReason,
    ClaimStatus,
    ClaimType,
    ProductSnapshot,
    Purchase,
    PurchaseStatus,
    PurchaseSummary,
    RefundTransaction,
    WarrantyClaim,
    split_legacy_reason,
)


def _now() -> datetime:
    return datetime.now(UTC)


def _enum(enum_cls: type, name: str) -> SQLEnum:
    # Store enum values ("pending"), not member names, so raw SQL predicates
    # such as the partial index below can match them.
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


class ProductModel(Base):
    """Catalog product referenced by purchases. Owned by the catalog service."""

    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_name = Column(String(255), nullable=False)
    product_type = Column(String(50))
    category = Column(String(100))

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.product_name}>"


class PurchaseModel(Base):
    """
    SQLAlchemy model for purchased accounts.

    Written by checkout; this service only reads purchases and flips their
    status to `claimed`.
    """

    __tablename__ = "purchases"
    __table_args__ = (
        Index("ix_purchases_user", "user_id"),
        Index("ix_purchases_user_status", "user_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"))

    account_details = Column(JSON, default=dict)
    total_price = Column(Numeric(14, 2), nullable=False, default=0)
    warranty_expires_at = Column(DateTime(timezone=True))
    status = Column(_enum(PurchaseStatus, "purchase_status"), nullable=False, default=PurchaseStatus.ACTIVE)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    product = relationship("ProductModel", lazy="joined")

    def __repr__(self) -> str:
        return f"<Purchase {self.id}: {self.user_id} ({self.status.value})>"

    def product_snapshot(self) -> ProductSnapshot:
        if self.product is None:
            return ProductSnapshot(name="Unknown product")
        return ProductSnapshot(
            name=self.product.product_name,
            type=self.product.product_type,
            category=self.product.category,
        )

    def to_domain(self) -> Purchase:
        """Convert to the shared Purchase model."""
        return Purchase(
            id=str(self.id),
            user_id=str(self.user_id),
            product_id=str(self.product_id) if self.product_id else None,
            product=self.product_snapshot(),
            account_details=self.account_details or {},
            total_price=Decimal(self.total_price or 0),
            warranty_expires_at=self.warranty_expires_at,
            status=self.status,
            created_at=self.created_at,
        )


class WarrantyClaimModel(Base):
    """
    SQLAlchemy model for warranty claims.

    The partial unique index allows any number of rejected or completed
    claims per purchase but only one in pending, reviewing or approved.
    """

    __tablename__ = "warranty_claims"
    __table_args__ = (
        Index("ix_warranty_claims_user", "user_id"),
        Index("ix_warranty_claims_status", "status"),
        Index("ix_warranty_claims_created", "created_at"),
        Index(
            "uq_warranty_claims_active_purchase",
            "purchase_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'reviewing', 'approved')"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    purchase_id = Column(
        UUID(as_uuid=True),
        ForeignKey("purchases.id", ondelete="CASCADE"),
        nullable=False,
    )

    claim_type = Column(_enum(ClaimType, "claim_type"), nullable=False, default=ClaimType.REPLACEMENT)
    reason_code = Column(String(50))
    reason = Column(Text, nullable=False)
    evidence_urls = Column(JSON, default=list)

    status = Column(_enum(ClaimStatus, "claim_status"), nullable=False, default=ClaimStatus.PENDING)
    admin_notes = Column(Text)
    resolution_details = Column(JSON)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
    resolved_at = Column(DateTime(timezone=True))

    purchase = relationship("PurchaseModel", lazy="joined")

    def __repr__(self) -> str:
        return f"<WarrantyClaim {self.id}: {self.purchase_id} ({self.status.value})>"

    def to_domain(self, with_purchase: bool = True) -> WarrantyClaim:
        """Convert to the shared WarrantyClaim model."""
        reason_code: ClaimReason | None = None
        reason = self.reason
        if self.reason_code:
            try:
                reason_code = ClaimReason(self.reason_code)
            except ValueError:
                reason_code = None
        else:
            reason_code, reason = split_legacy_reason(self.reason)

        summary = None
        if with_purchase and self.purchase is not None:
            summary = PurchaseSummary.from_purchase(self.purchase.to_domain())

        return WarrantyClaim(
            id=str(self.id),
            user_id=str(self.user_id),
            purchase_id=str(self.purchase_id),
            claim_type=self.claim_type,
            reason_code=reason_code,
            reason=reason,
            evidence_urls=list(self.evidence_urls or []),
            status=self.status,
            admin_notes=self.admin_notes,
            resolution_details=self.resolution_details,
            created_at=self.created_at,
            updated_at=self.updated_at,
            resolved_at=self.resolved_at,
            purchase=summary,
        )


class RefundTransactionModel(Base):
    """Immutable balance credit, one per completed refund claim."""

    __tablename__ = "refund_transactions"
    __table_args__ = (
        Index("ix_refund_transactions_user", "user_id"),
        Index("uq_refund_transactions_claim", "warranty_claim_id", unique=True),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    # Nulled when an admin deletes the claim; the transaction row stays.
    warranty_claim_id = Column(
        UUID(as_uuid=True),
        ForeignKey("warranty_claims.id", ondelete="SET NULL"),
    )
    purchase_id = Column(UUID(as_uuid=True), ForeignKey("purchases.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def to_domain(self) -> RefundTransaction:
        return RefundTransaction(
            id=str(self.id),
            user_id=str(self.user_id),
            amount=Decimal(self.amount),
            status=self.status,
            linked_claim_id=str(self.warranty_claim_id) if self.warranty_claim_id else "",
            linked_purchase_id=str(self.purchase_id),
            created_at=self.created_at,
        )


class MemberBalanceModel(Base):
    """Member wallet balance credited by refunds."""

    __tablename__ = "member_balances"

    user_id = Column(UUID(as_uuid=True), primary_key=True)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
