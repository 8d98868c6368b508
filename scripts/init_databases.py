#!/usr/bin/env python3
"""
Database Initialization Script
==============================

Create the warranty claim tables (including the partial unique index on
open claims) and verify the Redis and Kafka connections.

Usage:
    python scripts/init_databases.py
    python scripts/init_databases.py --postgres-only
    python scripts/init_databases.py --seed --seed-user <user-uuid>

Version: 0.1.0
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shared.logging import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False, service_name="init-db")
logger = get_logger(__name__)


async def init_postgres() -> bool:
    """Create warranty tables and indexes."""
    from sqlalchemy import text
    from shared.database.postgres import PostgresClient

    # Registers the ORM tables on Base.metadata
    import services.warranty.models  # noqa: F401

    logger.info("Initializing PostgreSQL...")

    try:
        await PostgresClient.create_tables()

        async with PostgresClient.get_engine().begin() as conn:
            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()
            logger.info(f"PostgreSQL connected: {version[:50]}...")

        logger.info("PostgreSQL initialized successfully")
        return True

    except Exception as e:
        logger.error(f"PostgreSQL initialization failed: {e}")
        return False


async def init_redis() -> bool:
    """Initialize Redis and verify connection."""
    from shared.database.redis import RedisClient

    logger.info("Initializing Redis...")

    try:
        client = RedisClient.get_client()

        # Ping to verify
        await client.ping()

        # Get info
        info = await client.info("server")
        logger.info(f"Redis connected: v{info['redis_version']}")

        logger.info("Redis initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")
        return False


async def init_kafka() -> bool:
    """Verify the Kafka connection used for claim event forwarding."""
    from shared.config import settings
    from shared.database.kafka import KafkaClient

    logger.info("Initializing Kafka...")

    try:
        health = await KafkaClient.health_check()
        if health.get("status") == "healthy":
            logger.info(
                "kafka_connected",
                claims_topic=settings.warranty.claims_topic,
                bootstrap_servers=settings.kafka.bootstrap_servers,
            )
            return True

        logger.error(f"Kafka health check failed: {health.get('error')}")
        return False

    except Exception as e:
        logger.error(f"Kafka initialization failed: {e}")
        return False

    finally:
        await KafkaClient.close()


async def seed_data(user_id: str) -> bool:
    """Seed a product and a purchase under warranty for development."""
    import uuid
    from datetime import UTC, datetime, timedelta
    from decimal import Decimal

    from shared.database.postgres import postgres_session
    from shared.models.warranty import PurchaseStatus
    from services.warranty.models import ProductModel, PurchaseModel

    logger.info("Seeding initial data...")

    try:
        async with postgres_session() as session:
            product = ProductModel(
                id=uuid.uuid4(),
                product_name="BM Verified",
                product_type="bm_account",
                category="business_manager",
            )
            session.add(product)
            await session.flush()

            now = datetime.now(UTC)
            purchase = PurchaseModel(
                id=uuid.uuid4(),
                user_id=uuid.UUID(user_id),
                product_id=product.id,
                account_details={"email": "demo@example.com"},
                total_price=Decimal("150000"),
                warranty_expires_at=now + timedelta(days=7),
                status=PurchaseStatus.ACTIVE,
                created_at=now,
            )
            session.add(purchase)

        logger.info("seed_purchase_created", purchase_id=str(purchase.id), user_id=user_id)
        return True

    except Exception as e:
        logger.error(f"Data seeding failed: {e}")
        return False


async def main(args: argparse.Namespace) -> int:
    """Main initialization function."""
    logger.info("=" * 60)
    logger.info("Canvango Warranty Database Initialization")
    logger.info("=" * 60)

    results = {}

    if args.all or args.postgres_only:
        results["PostgreSQL"] = await init_postgres()

    if args.all:
        results["Redis"] = await init_redis()
        results["Kafka"] = await init_kafka()

    if args.seed:
        results["Seed Data"] = await seed_data(args.seed_user)

    # Summary
    logger.info("=" * 60)
    logger.info("Initialization Summary")
    logger.info("=" * 60)

    failed = []
    for name, success in results.items():
        status = "OK" if success else "FAILED"
        logger.info(f"  {name}: {status}")
        if not success:
            failed.append(name)

    from shared.database.postgres import PostgresClient
    from shared.database.redis import RedisClient

    await PostgresClient.close()
    await RedisClient.close()

    if failed:
        logger.error(f"Failed: {', '.join(failed)}")
        return 1

    logger.info("All databases initialized successfully!")
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize Canvango warranty databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--postgres-only",
        action="store_true",
        help="Initialize only PostgreSQL",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed a demo purchase under warranty",
    )
    parser.add_argument(
        "--seed-user",
        default="00000000-0000-0000-0000-000000000001",
        help="Member UUID owning the seeded purchase",
    )

    args = parser.parse_args()

    # If no specific database is selected, init all
    args.all = not args.postgres_only

    return args


if __name__ == "__main__":
    args = parse_args()
    exit_code = asyncio.run(main(args))
    sys.exit(exit_code)
