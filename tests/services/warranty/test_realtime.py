"""
Realtime Tests
==============

Tests for the claim event bus and its consumers.

Version: 0.1.0
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.models.warranty import ClaimStatus, WarrantyClaim
from services.warranty.realtime import (
    CacheInvalidator,
    ClaimCache,
    ClaimDeleted,
    ClaimEventBus,
    ClaimInserted,
    ClaimUpdated,
    KafkaClaimEventForwarder,
    StatusNotifier,
    status_message,
)
from services.warranty.routes.realtime import event_message, queue_handler


def make_claim(user_id: str = "user-1", status: ClaimStatus = ClaimStatus.PENDING) -> WarrantyClaim:
    return WarrantyClaim(
        id="claim-1",
        user_id=user_id,
        purchase_id="purchase-1",
        reason="Akun tidak bisa login setelah 2 hari",
        status=status,
    )


class TestClaimEventBus:
    """Tests for subscription filtering and delivery."""

    @pytest.mark.asyncio
    async def test_member_subscription_is_filtered(self) -> None:
        bus = ClaimEventBus()
        mine, theirs, admin = [], [], []
        bus.subscribe(mine.append, user_id="user-1")
        bus.subscribe(theirs.append, user_id="user-2")
        bus.subscribe(admin.append)

        await bus.publish(ClaimInserted(make_claim("user-1")))

        assert len(mine) == 1
        assert theirs == []
        assert len(admin) == 1

    @pytest.mark.asyncio
    async def test_async_handlers_are_awaited(self) -> None:
        bus = ClaimEventBus()
        handler = AsyncMock()
        bus.subscribe(handler)
        event = ClaimInserted(make_claim())

        delivered = await bus.publish(event)

        assert delivered == 1
        handler.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self) -> None:
        bus = ClaimEventBus()
        received = []
        bus.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe(received.append)

        delivered = await bus.publish(ClaimInserted(make_claim()))

        assert delivered == 1
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_delivery(self) -> None:
        bus = ClaimEventBus()
        received = []
        subscription = bus.subscribe(received.append)

        subscription.close()
        await bus.publish(ClaimInserted(make_claim()))

        assert received == []
        assert subscription.active is False
        assert bus.subscriber_count == 0

    def test_unsubscribe_is_idempotent(self) -> None:
        bus = ClaimEventBus()
        subscription = bus.subscribe(lambda event: None)

        subscription.unsubscribe()
        subscription.unsubscribe()

        assert bus.subscriber_count == 0


class TestEventPayloads:
    """Tests for event serialization."""

    def test_update_payload(self) -> None:
        old = make_claim(status=ClaimStatus.PENDING)
        new = make_claim(status=ClaimStatus.APPROVED)

        payload = ClaimUpdated(old=old, new=new).to_payload()

        assert payload["event_type"] == "UPDATE"
        assert payload["claim_id"] == "claim-1"
        assert payload["old"]["status"] == "pending"
        assert payload["new"]["status"] == "approved"

    def test_delete_payload(self) -> None:
        payload = ClaimDeleted(make_claim()).to_payload()

        assert payload["event_type"] == "DELETE"
        assert payload["new"] is None
        assert payload["old"]["id"] == "claim-1"


class TestCacheInvalidator:
    """Tests for read-view invalidation on claim changes."""

    def test_insert_keys(self) -> None:
        keys = CacheInvalidator.keys_for(ClaimInserted(make_claim("user-1")))

        assert keys == [
            "warranty:user:user-1:claims*",
            "warranty:user:user-1:stats",
            "warranty:admin:claims*",
            "warranty:admin:stats",
            "warranty:user:user-1:eligible-accounts",
        ]

    def test_update_keys_include_claim_detail(self) -> None:
        event = ClaimUpdated(
            old=make_claim(status=ClaimStatus.PENDING),
            new=make_claim(status=ClaimStatus.REJECTED),
        )

        keys = CacheInvalidator.keys_for(event)

        assert "warranty:user:user-1:claim:claim-1" in keys
        assert "warranty:user:user-1:eligible-accounts" in keys
        assert "warranty:admin:stats" in keys

    def test_notes_only_update_keeps_eligibility(self) -> None:
        claim = make_claim(status=ClaimStatus.REVIEWING)

        keys = CacheInvalidator.keys_for(ClaimUpdated(old=claim, new=claim))

        assert "warranty:user:user-1:eligible-accounts" not in keys

    @pytest.mark.asyncio
    async def test_invalidates_through_cache(self) -> None:
        cache = MagicMock(spec=ClaimCache)
        cache.invalidate = AsyncMock(return_value=3)

        await CacheInvalidator(cache)(ClaimDeleted(make_claim()))

        cache.invalidate.assert_awaited_once()
        keys = cache.invalidate.await_args.args
        assert "warranty:user:user-1:claim:claim-1" in keys


class TestClaimCache:
    """Tests for the Redis read-through cache."""

    @pytest.mark.asyncio
    async def test_disabled_cache_never_touches_redis(self) -> None:
        cache = ClaimCache(enabled=False)

        with patch("services.warranty.realtime.cache.RedisClient") as redis:
            assert await cache.get("key") is None
            await cache.set("key", {"a": 1})
            assert await cache.invalidate("key") == 0

        redis.get_cached.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidate_splits_patterns(self) -> None:
        cache = ClaimCache(enabled=True, ttl_seconds=60)

        with patch("services.warranty.realtime.cache.RedisClient") as redis:
            redis.delete_cached = AsyncMock(return_value=1)
            redis.delete_pattern = AsyncMock(return_value=2)

            removed = await cache.invalidate("warranty:admin:stats", "warranty:admin:claims*")

        assert removed == 3
        redis.delete_cached.assert_awaited_once_with("warranty:admin:stats")
        redis.delete_pattern.assert_awaited_once_with("warranty:admin:claims*")

    @pytest.mark.asyncio
    async def test_redis_errors_become_misses(self) -> None:
        cache = ClaimCache(enabled=True)

        with patch("services.warranty.realtime.cache.RedisClient") as redis:
            redis.get_cached = AsyncMock(side_effect=RedisConnectionError("down"))

            assert await cache.get("warranty:admin:stats") is None


class TestStatusNotifier:
    """Tests for member notifications."""

    @pytest.mark.asyncio
    async def test_status_change_notifies_with_message(self) -> None:
        sink = MagicMock()
        sink.on_status_change = AsyncMock()
        sink.on_new_claim = AsyncMock()
        old = make_claim(status=ClaimStatus.REVIEWING)
        new = make_claim(status=ClaimStatus.APPROVED)

        await StatusNotifier(sink)(ClaimUpdated(old=old, new=new))

        sink.on_status_change.assert_awaited_once_with(
            new,
            ClaimStatus.REVIEWING,
            ClaimStatus.APPROVED,
            status_message(ClaimStatus.APPROVED),
        )

    @pytest.mark.asyncio
    async def test_unchanged_status_is_silent(self) -> None:
        sink = MagicMock()
        sink.on_status_change = AsyncMock()
        claim = make_claim()

        await StatusNotifier(sink)(ClaimUpdated(old=claim, new=claim))

        sink.on_status_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_claim_notifies(self) -> None:
        sink = MagicMock()
        sink.on_new_claim = AsyncMock()
        claim = make_claim()

        await StatusNotifier(sink)(ClaimInserted(claim))

        sink.on_new_claim.assert_awaited_once_with(claim)


class TestKafkaForwarder:
    """Tests for Kafka event forwarding."""

    @pytest.mark.asyncio
    async def test_publishes_keyed_by_claim(self) -> None:
        client = MagicMock()
        client.publish = AsyncMock()
        forwarder = KafkaClaimEventForwarder(topic="canvango.warranty.claims", client=client)
        event = ClaimInserted(make_claim())

        await forwarder(event)

        client.publish.assert_awaited_once_with(
            "canvango.warranty.claims",
            event.to_payload(),
            key="claim-1",
            headers={"event_type": "INSERT"},
        )


class TestSocketQueueHandler:
    """Tests for the per-socket queue behind the realtime routes."""

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking_publisher(self) -> None:
        bus = ClaimEventBus()
        queue = asyncio.Queue(maxsize=1)
        bus.subscribe(queue_handler(queue, "user-1"), user_id="user-1")

        first = ClaimInserted(make_claim())
        await bus.publish(first)
        delivered = await bus.publish(ClaimDeleted(make_claim()))

        assert delivered == 1
        assert queue.qsize() == 1
        assert queue.get_nowait() is first

    def test_event_message_adds_status_text(self) -> None:
        event = ClaimUpdated(
            make_claim(status=ClaimStatus.PENDING),
            make_claim(status=ClaimStatus.APPROVED),
        )

        payload = event_message(event)

        assert payload["message"] == status_message(ClaimStatus.APPROVED)
