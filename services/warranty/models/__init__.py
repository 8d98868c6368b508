"""
Warranty Database Models
========================

SQLAlchemy ORM models for the warranty claim service.

Tables:
- products: Catalog products (read-only here)
- purchases: Purchased accounts with warranty expiry
- warranty_claims: Claims and their review state
- refund_transactions: Balance credits from settled refunds
- member_balances: Member wallet balances

Version: 0.1.0
"""

from services.warranty.models.warranty import (
    MemberBalanceModel,
    ProductModel,
    PurchaseModel,
    RefundTransactionModel,
    WarrantyClaimModel,
)

__all__ = [
    "MemberBalanceModel",
    "ProductModel",
    "PurchaseModel",
    "RefundTransactionModel",
    "WarrantyClaimModel",
]
