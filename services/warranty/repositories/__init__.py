"""
Warranty Repositories
=====================

Storage contracts and their memory/Postgres implementations.
"""

from services.warranty.repositories.base import (
    BalanceLedger,
    ClaimRepository,
    PurchaseStore,
    SettlementRecord,
)
from services.warranty.repositories.memory import (
    InMemoryBalanceLedger,
    InMemoryClaimRepository,
    InMemoryPurchaseStore,
)
from services.warranty.repositories.postgres import (
    PostgresBalanceLedger,
    PostgresClaimRepository,
    PostgresPurchaseStore,
)

__all__ = [
    "BalanceLedger",
    "ClaimRepository",
    "PurchaseStore",
    "SettlementRecord",
    "InMemoryBalanceLedger",
    "InMemoryClaimRepository",
    "InMemoryPurchaseStore",
    "PostgresBalanceLedger",
    "PostgresClaimRepository",
    "PostgresPurchaseStore",
]
