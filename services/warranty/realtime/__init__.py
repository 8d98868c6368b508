"""
Warranty Realtime
=================

Claim change events and their consumers: cache invalidation, member
notifications, Kafka forwarding and WebSocket fan-out.
"""

from services.warranty.realtime.bus import ClaimEventBus, ClaimEventHandler, Subscription
from services.warranty.realtime.cache import (
    CacheInvalidator,
    ClaimCache,
    admin_key,
    member_key,
)
from services.warranty.realtime.events import (
    ClaimDeleted,
    ClaimEvent,
    ClaimInserted,
    ClaimUpdated,
)
from services.warranty.realtime.kafka import KafkaClaimEventForwarder
from services.warranty.realtime.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    StatusNotifier,
    status_message,
)

__all__ = [
    "ClaimEventBus",
    "ClaimEventHandler",
    "Subscription",
    "CacheInvalidator",
    "ClaimCache",
    "admin_key",
    "member_key",
    "ClaimDeleted",
    "ClaimEvent",
    "ClaimInserted",
    "ClaimUpdated",
    "KafkaClaimEventForwarder",
    "LoggingNotificationSink",
    "NotificationSink",
    "StatusNotifier",
    "status_message",
]
