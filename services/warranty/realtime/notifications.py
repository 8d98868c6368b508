"""
Claim Status Notifications
==========================

Turns claim events into member-facing notifications.

Version: 0.1.0
"""

from __future__ import annotations

from typing import Protocol

from shared.logging import get_logger
from shared.models.warranty import ClaimStatus, WarrantyClaim
from services.warranty.realtime.events import ClaimEvent, ClaimInserted, ClaimUpdated


logger = get_logger(__name__)

STATUS_MESSAGES: dict[ClaimStatus, str] = {
    ClaimStatus.PENDING: "Klaim garansi Anda telah diterima dan menunggu peninjauan",
    ClaimStatus.REVIEWING: "Klaim garansi Anda sedang ditinjau",
    ClaimStatus.APPROVED: "Klaim garansi Anda disetujui",
    ClaimStatus.REJECTED: "Klaim garansi Anda ditolak",
    ClaimStatus.COMPLETED: "Klaim garansi Anda telah selesai diproses",
}


def status_message(new_status: ClaimStatus) -> str:
    return STATUS_MESSAGES[new_status]


class NotificationSink(Protocol):
    """Receiver of claim notifications (push, email, in-app feed)."""

    async def on_status_change(
        self,
        claim: WarrantyClaim,
        old_status: ClaimStatus,
        new_status: ClaimStatus,
        message: str,
    ) -> None:
        ...

    async def on_new_claim(self, claim: WarrantyClaim) -> None:
        ...


class LoggingNotificationSink:
    """Sink that records notifications in the service log."""

    async def on_status_change(
        self,
        claim: WarrantyClaim,
        old_status: ClaimStatus,
        new_status: ClaimStatus,
        message: str,
    ) -> None:
        logger.info(
            "claim_status_notification",
            claim_id=claim.id,
            user_id=claim.user_id,
            old_status=old_status.value,
            new_status=new_status.value,
            message=message,
        )

    async def on_new_claim(self, claim: WarrantyClaim) -> None:
        logger.info("claim_created_notification", claim_id=claim.id, user_id=claim.user_id)


class StatusNotifier:
    """Event consumer forwarding status changes and new claims to a sink."""

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self.sink = sink or LoggingNotificationSink()

    async def __call__(self, event: ClaimEvent) -> None:
        if isinstance(event, ClaimInserted):
            await self.sink.on_new_claim(event.claim)
        elif isinstance(event, ClaimUpdated) and event.status_changed:
            await self.sink.on_status_change(
                event.new,
                event.old.status,
                event.new.status,
                status_message(event.new.status),
            )
