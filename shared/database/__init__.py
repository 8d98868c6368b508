"""
Database Module
===============

Async clients for the data stores behind the warranty claim service.

Clients:
- PostgreSQL (asyncpg + SQLAlchemy): claims, purchases, balances
- Redis: read-view cache
- Kafka (aiokafka): claim change forwarding

Usage:
    from shared.database import postgres_session, RedisClient

    async with postgres_session() as session:
        result = await session.execute(select(WarrantyClaimModel))
"""

from shared.database.kafka import KafkaClient
from shared.database.postgres import (
    Base,
    PostgresClient,
    is_transport_error,
    postgres_session,
)
from shared.database.redis import RedisClient


__all__ = [
    # PostgreSQL
    "postgres_session",
    "is_transport_error",
    "PostgresClient",
    "Base",
    # Redis
    "RedisClient",
    # Kafka
    "KafkaClient",
]
