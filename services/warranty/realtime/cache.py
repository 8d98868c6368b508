"""
Claim Read-View Cache
=====================

Redis-backed cache for the read views members and admins poll (claim lists,
stats, eligible accounts), plus the event consumer that drops those views
whenever a claim changes.

Key layout:
    warranty:user:<user_id>:claims:<status>:<limit>:<offset>
    warranty:user:<user_id>:claim:<claim_id>
    warranty:user:<user_id>:stats
    warranty:user:<user_id>:eligible-accounts
    warranty:admin:claims:<status>:<page>:<limit>
    warranty:admin:stats

Version: 0.1.0
"""

from __future__ import annotations

from typing import Any

from redis.exceptions import RedisError

from shared.config import settings
from shared.database.redis import RedisClient
from shared.logging import get_logger
from services.warranty.realtime.events import (
    ClaimDeleted,
    ClaimEvent,
    ClaimInserted,
    ClaimUpdated,
)


logger = get_logger(__name__)


def member_key(user_id: str, view: str, *parts: Any) -> str:
    suffix = "".join(f":{p}" for p in parts)
    return f"warranty:user:{user_id}:{view}{suffix}"


def admin_key(view: str, *parts: Any) -> str:
    suffix = "".join(f":{p}" for p in parts)
    return f"warranty:admin:{view}{suffix}"


class ClaimCache:
    """
    JSON read-through cache over RedisClient.

    Redis failures degrade to cache misses; they are logged, never raised.
    """

    def __init__(self, enabled: bool | None = None, ttl_seconds: int | None = None) -> None:
        self.enabled = settings.warranty.cache_enabled if enabled is None else enabled
        self.ttl_seconds = ttl_seconds or settings.warranty.cache_ttl_seconds

    async def get(self, key: str) -> Any:
        if not self.enabled:
            return None
        try:
            return await RedisClient.get_cached(key)
        except RedisError as e:
            logger.warning("claim_cache_read_failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        try:
            await RedisClient.set_cached(key, value, ttl_seconds=self.ttl_seconds)
        except RedisError as e:
            logger.warning("claim_cache_write_failed", key=key, error=str(e))

    async def invalidate(self, *keys: str) -> int:
        """Delete exact keys, or all keys under a prefix ending in '*'."""
        if not self.enabled:
            return 0
        removed = 0
        exact = [k for k in keys if not k.endswith("*")]
        try:
            if exact:
                removed += await RedisClient.delete_cached(*exact)
            for pattern in (k for k in keys if k.endswith("*")):
                removed += await RedisClient.delete_pattern(pattern)
        except RedisError as e:
            logger.warning("claim_cache_invalidate_failed", keys=list(keys), error=str(e))
        return removed


class CacheInvalidator:
    """Event consumer that drops cached views affected by a claim change."""

    def __init__(self, cache: ClaimCache) -> None:
        self.cache = cache

    @staticmethod
    def keys_for(event: ClaimEvent) -> list[str]:
        user_id = event.user_id
        keys = [
            member_key(user_id, "claims") + "*",
            member_key(user_id, "stats"),
            admin_key("claims") + "*",
            admin_key("stats"),
        ]

        if isinstance(event, ClaimInserted):
            keys.append(member_key(user_id, "eligible-accounts"))
        elif isinstance(event, ClaimUpdated):
            keys.append(member_key(user_id, "claim", event.claim_id))
            if event.status_changed:
                # Rejection frees the purchase for a new claim
                keys.append(member_key(user_id, "eligible-accounts"))
        elif isinstance(event, ClaimDeleted):
            keys.append(member_key(user_id, "claim", event.claim_id))
            keys.append(member_key(user_id, "eligible-accounts"))

        return keys

    async def __call__(self, event: ClaimEvent) -> None:
        keys = self.keys_for(event)
        removed = await self.cache.invalidate(*keys)
        logger.debug(
            "claim_cache_invalidated",
            event_type=event.event_type,
            claim_id=event.claim_id,
            removed=removed,
        )
