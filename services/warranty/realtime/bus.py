"""
Claim Event Bus
===============

In-process fan-out of claim change events.

Member subscriptions pass their `user_id` and only see their own claims;
admin subscriptions pass None and see everything. A failing handler is
logged and skipped, the remaining subscribers still receive the event.

Usage:
    bus = ClaimEventBus()
    subscription = bus.subscribe(handler, user_id=user.id)
    ...
    subscription.close()

Version: 0.1.0
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Awaitable, Callable

from shared.logging import get_logger
from services.warranty.realtime.events import ClaimEvent


logger = get_logger(__name__)

ClaimEventHandler = Callable[[ClaimEvent], Awaitable[None] | None]


class Subscription:
    """Handle returned by `ClaimEventBus.subscribe`."""

    def __init__(
        self,
        bus: ClaimEventBus,
        handler: ClaimEventHandler,
        user_id: str | None,
        name: str | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.handler = handler
        self.user_id = user_id
        self.name = name or getattr(handler, "__qualname__", "handler")
        self._bus = bus

    @property
    def active(self) -> bool:
        return self._bus.is_subscribed(self)

    def matches(self, event: ClaimEvent) -> bool:
        return self.user_id is None or self.user_id == event.user_id

    def close(self) -> None:
        self._bus.unsubscribe(self)

    unsubscribe = close

    def __repr__(self) -> str:
        scope = self.user_id or "admin"
        return f"<Subscription {self.name} ({scope})>"


class ClaimEventBus:
    """Publish/subscribe hub for claim events."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(
        self,
        handler: ClaimEventHandler,
        user_id: str | None = None,
        name: str | None = None,
    ) -> Subscription:
        subscription = Subscription(self, handler, user_id, name)
        self._subscriptions[subscription.id] = subscription
        logger.debug(
            "claim_subscription_opened",
            subscription=subscription.name,
            user_id=user_id,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.id, None) is not None:
            logger.debug(
                "claim_subscription_closed",
                subscription=subscription.name,
                user_id=subscription.user_id,
            )

    def is_subscribed(self, subscription: Subscription) -> bool:
        return subscription.id in self._subscriptions

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ClaimEvent) -> int:
        """Deliver `event` to every matching subscriber; returns deliveries."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(event):
                continue
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    "claim_event_handler_failed",
                    subscription=subscription.name,
                    event_type=event.event_type,
                    claim_id=event.claim_id,
                    error=str(e),
                )

        logger.debug(
            "claim_event_published",
            event_type=event.event_type,
            claim_id=event.claim_id,
            delivered=delivered,
        )
        return delivered

    def clear(self) -> None:
        self._subscriptions.clear()
