"""
Realtime Routes
===============

WebSocket channels pushing claim changes to members and admins.

Members connect to `/api/v1/warranty/realtime?token=<jwt>` and receive
events for their own claims; admins connect to
`/api/v1/admin/warranty-claims/realtime?token=<jwt>` and receive all of
them. Each message is the event payload, plus a `message` for status
changes. Reconnection is up to the client.

Version: 0.1.0
"""

import asyncio
from collections.abc import Callable

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from shared.auth import User, user_from_token
from shared.config import settings
from shared.logging import get_logger
from services.warranty.dependencies import get_warranty_service
from services.warranty.realtime import ClaimEvent, ClaimUpdated, status_message


logger = get_logger(__name__)

member_router = APIRouter()
admin_router = APIRouter()


def event_message(event: ClaimEvent) -> dict:
    payload = event.to_payload()
    if isinstance(event, ClaimUpdated) and event.status_changed:
        payload["message"] = status_message(event.new.status)
    return payload


def queue_handler(
    queue: "asyncio.Queue[ClaimEvent]", subscriber: str
) -> Callable[[ClaimEvent], None]:
    """Bus handler that never blocks publishers; a full queue drops the event."""

    def enqueue(event: ClaimEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "realtime_event_dropped",
                subscriber=subscriber,
                event_type=event.event_type,
                claim_id=event.claim_id,
            )

    return enqueue


async def _forward(websocket: WebSocket, queue: "asyncio.Queue[ClaimEvent]") -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event_message(event))


async def stream_claim_events(websocket: WebSocket, user: User, user_id: str | None) -> None:
    """Subscribe, push events until the client disconnects, then tear down."""
    service = get_warranty_service()
    queue: asyncio.Queue[ClaimEvent] = asyncio.Queue(
        maxsize=settings.warranty.realtime_queue_size
    )

    await websocket.accept()
    subscription = service.subscribe(
        queue_handler(queue, user.id),
        user_id=user_id,
        name=f"websocket:{user.id}",
    )
    sender = asyncio.create_task(_forward(websocket, queue))
    logger.info("realtime_connected", user_id=user.id, scope=user_id or "admin")

    try:
        await websocket.send_json({"event_type": "SUBSCRIBED", "user_id": user_id})
        while True:
            # Client frames are keepalives only
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("realtime_disconnected", user_id=user.id)
    finally:
        subscription.close()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("realtime_sender_failed", user_id=user.id, error=str(e))


@member_router.websocket("/realtime")
async def member_claim_events(
    websocket: WebSocket,
    token: str | None = Query(default=None),
) -> None:
    user = user_from_token(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await stream_claim_events(websocket, user, user_id=user.id)


@admin_router.websocket("/realtime")
async def admin_claim_events(
    websocket: WebSocket,
    token: str | None = Query(default=None),
) -> None:
    user = user_from_token(token)
    if user is None or not user.is_admin:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await stream_claim_events(websocket, user, user_id=None)
