"""
Warranty Models
===============

Domain models for purchases, warranty claims and refund settlement.

Version: 0.1.0
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


class PurchaseStatus(str, Enum):
    """Lifecycle status of a purchased account."""

    ACTIVE = "active"
    DISABLED = "disabled"
    CLAIMED = "claimed"


class ClaimStatus(str, Enum):
    """Warranty claim workflow status."""

    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ClaimType(str, Enum):
    """Resolution the member asks for."""

    REPLACEMENT = "replacement"
    REFUND = "refund"
    REPAIR = "repair"


class ClaimReason(str, Enum):
    """Machine-readable claim reasons offered by the claim form."""

    ACCOUNT_INVALID = "account_invalid"
    ACCOUNT_DISABLED = "account_disabled"
    ACCOUNT_SUSPENDED = "account_suspended"
    PASSWORD_INCORRECT = "password_incorrect"
    NOT_AS_DESCRIBED = "not_as_described"
    OTHER = "other"


# A purchase may hold at most one claim in these states.
ACTIVE_CLAIM_STATUSES = frozenset(
    {ClaimStatus.PENDING, ClaimStatus.REVIEWING, ClaimStatus.APPROVED}
)
TERMINAL_CLAIM_STATUSES = frozenset({ClaimStatus.REJECTED, ClaimStatus.COMPLETED})
RESOLVED_CLAIM_STATUSES = frozenset(
    {ClaimStatus.APPROVED, ClaimStatus.REJECTED, ClaimStatus.COMPLETED}
)

SECONDS_PER_DAY = 86_400


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes from the database as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def warranty_remaining(expires_at: datetime, now: datetime | None = None) -> timedelta:
    """
    Remaining warranty time, floored at zero.

    Computed from `expires_at - now` only; callers derive days or hours from
    the returned duration rather than mixing units.
    """
    now = now or utcnow()
    remaining = ensure_aware(expires_at) - now  # type: ignore[operator]
    return max(remaining, timedelta(0))


def split_legacy_reason(reason: str) -> tuple[ClaimReason | None, str]:
    """
    Recover a reason code from the legacy "<code>: <detail>" encoding.

    Rows written by the old portal stored the code as a colon prefix of the
    free-text reason. Unknown prefixes are left untouched.
    """
    prefix, sep, detail = reason.partition(":")
    if not sep:
        return None, reason
    try:
        code = ClaimReason(prefix.strip())
    except ValueError:
        return None, reason
    return code, detail.strip()


class ProductSnapshot(BaseModel):
    """Denormalized product fields captured on the purchase."""

    name: str
    type: str | None = None
    category: str | None = None


class Purchase(BaseModel):
    """A purchased account with its own warranty window."""

    id: str
    user_id: str
    product_id: str | None = None
    product: ProductSnapshot
    account_details: dict[str, Any] = Field(default_factory=dict)
    total_price: Decimal = Decimal("0")
    warranty_expires_at: datetime | None = None
    status: PurchaseStatus = PurchaseStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("warranty_expires_at", "created_at", mode="after")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    def warranty_valid_at(self, now: datetime) -> bool:
        """True when the warranty is set and strictly in the future."""
        return self.warranty_expires_at is not None and self.warranty_expires_at > now


class PurchaseSummary(BaseModel):
    """Purchase fields joined onto claim views."""

    id: str
    product_id: str | None = None
    product: ProductSnapshot
    warranty_expires_at: datetime | None = None
    status: PurchaseStatus

    @classmethod
    def from_purchase(cls, purchase: Purchase) -> "PurchaseSummary":
        return cls(
            id=purchase.id,
            product_id=purchase.product_id,
            product=purchase.product,
            warranty_expires_at=purchase.warranty_expires_at,
            status=purchase.status,
        )


class EligibleAccount(BaseModel):
    """A purchase that currently qualifies for a new claim."""

    id: str
    product_id: str | None = None
    product_name: str
    product_type: str | None = None
    category: str | None = None
    account_details: dict[str, Any] = Field(default_factory=dict)
    warranty_expires_at: datetime
    warranty_remaining_seconds: int
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def days_remaining(self) -> int:
        return self.warranty_remaining_seconds // SECONDS_PER_DAY

    def at(self, now: datetime) -> "EligibleAccount | None":
        """Recompute remaining time at `now`; None once the warranty lapsed."""
        if self.warranty_expires_at <= now:
            return None
        seconds = int(warranty_remaining(self.warranty_expires_at, now).total_seconds())
        return self.model_copy(update={"warranty_remaining_seconds": seconds})

    @classmethod
    def from_purchase(cls, purchase: Purchase, now: datetime) -> "EligibleAccount":
        expires_at = purchase.warranty_expires_at
        if expires_at is None:
            raise ValueError(f"Purchase {purchase.id} has no warranty")
        return cls(
            id=purchase.id,
            product_id=purchase.product_id,
            product_name=purchase.product.name,
            product_type=purchase.product.type,
            category=purchase.product.category,
            account_details=purchase.account_details,
            warranty_expires_at=expires_at,
            warranty_remaining_seconds=int(
                warranty_remaining(expires_at, now).total_seconds()
            ),
            created_at=purchase.created_at,
        )


class WarrantyClaim(BaseModel):
    """A member's warranty claim against one purchase."""

    id: str
    user_id: str
    purchase_id: str
    claim_type: ClaimType = ClaimType.REPLACEMENT
    reason_code: ClaimReason | None = None
    reason: str
    evidence_urls: list[str] = Field(default_factory=list)
    status: ClaimStatus = ClaimStatus.PENDING
    admin_notes: str | None = None
    resolution_details: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None

    # Joined view data, not persisted on the claim row
    purchase: PurchaseSummary | None = None

    @field_validator("created_at", "updated_at", "resolved_at", mode="after")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_CLAIM_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CLAIM_STATUSES


class RefundTransaction(BaseModel):
    """Balance credit produced by settling a refund claim."""

    id: str
    user_id: str
    amount: Decimal
    status: str = "completed"
    linked_claim_id: str
    linked_purchase_id: str
    created_at: datetime = Field(default_factory=utcnow)


class SettlementResult(BaseModel):
    """Outcome of a refund settlement."""

    transaction: RefundTransaction
    claim: WarrantyClaim
    new_balance: Decimal


class ClaimStats(BaseModel):
    """Claim counts per status with the derived success rate."""

    total: int = 0
    pending: int = 0
    reviewing: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
    success_rate: float = 0.0
    claims_by_month: dict[str, int] | None = None

    @classmethod
    def from_counts(
        cls,
        counts: dict[ClaimStatus, int],
        claims_by_month: dict[str, int] | None = None,
    ) -> "ClaimStats":
        approved = counts.get(ClaimStatus.APPROVED, 0)
        rejected = counts.get(ClaimStatus.REJECTED, 0)
        completed = counts.get(ClaimStatus.COMPLETED, 0)

        decided = approved + rejected + completed
        success_rate = round((approved + completed) / decided * 100, 1) if decided else 0.0

        return cls(
            total=sum(counts.values()),
            pending=counts.get(ClaimStatus.PENDING, 0),
            reviewing=counts.get(ClaimStatus.REVIEWING, 0),
            approved=approved,
            rejected=rejected,
            completed=completed,
            success_rate=success_rate,
            claims_by_month=claims_by_month,
        )


class PaginationInfo(BaseModel):
    """Page metadata for admin listings."""

    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationInfo":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit if limit else 0,
        )


class ClaimPage(BaseModel):
    """One page of claims with pagination metadata."""

    claims: list[WarrantyClaim]
    pagination: PaginationInfo


class ClaimSubmitRequest(BaseModel):
    """Body of a member's claim submission."""

    purchase_id: str = Field(
        ...,
        validation_alias=AliasChoices("purchase_id", "accountId"),
        description="Purchase being claimed",
    )
    claim_type: ClaimType = Field(default=ClaimType.REPLACEMENT)
    reason_code: ClaimReason | None = Field(default=None, description="Reason picked in the form")
    reason: str = Field(
        ...,
        validation_alias=AliasChoices("reason", "description"),
        description="Free-text description of the problem",
    )
    evidence_urls: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("evidence_urls", "screenshotUrls"),
        description="Evidence references returned by the upload endpoint",
    )

    @model_validator(mode="before")
    @classmethod
    def split_storefront_reason(cls, data: Any) -> Any:
        """
        Storefront forms send the picked reason code as `reason` and the
        free text as `description`.
        """
        if not isinstance(data, dict) or "reason" not in data or "description" not in data:
            return data
        try:
            code = ClaimReason(data["reason"])
        except ValueError:
            raise ValueError(f"Unknown claim reason: {data['reason']}") from None
        data = dict(data)
        data.setdefault("reason_code", code)
        data["reason"] = data.pop("description")
        return data


class ClaimStatusUpdateRequest(BaseModel):
    """Body of an admin status change."""

    status: ClaimStatus
    admin_notes: str | None = None


class EvidenceUpload(BaseModel):
    """Stored evidence reference with a short-lived view URL."""

    ref: str
    url: str
