"""
Kafka Event Forwarder
=====================

Forwards claim events to Kafka for other storefront services (audit,
notifications, analytics). Enabled with WARRANTY_KAFKA_FORWARDING=true.

Version: 0.1.0
"""

from __future__ import annotations

from shared.config import settings
from shared.database.kafka import KafkaClient
from shared.logging import get_logger
from services.warranty.realtime.events import ClaimEvent


logger = get_logger(__name__)


class KafkaClaimEventForwarder:
    """Event consumer publishing each claim event keyed by claim id."""

    def __init__(self, topic: str | None = None, client: type[KafkaClient] = KafkaClient) -> None:
        self.topic = topic or settings.warranty.claims_topic
        self.client = client

    async def __call__(self, event: ClaimEvent) -> None:
        await self.client.publish(
            self.topic,
            event.to_payload(),
            key=event.claim_id,
            headers={"event_type": event.event_type},
        )
        logger.debug(
            "claim_event_forwarded",
            topic=self.topic,
            event_type=event.event_type,
            claim_id=event.claim_id,
        )
