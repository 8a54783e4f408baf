"""WebSocket stream of scan progress and application errors."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from rummage.api.dependencies import get_event_broker
from rummage.core.logging import get_logger
from rummage.services.events import EventBroker

logger = get_logger(__name__)

router = APIRouter()


@router.websocket("/events")
async def stream_events(websocket: WebSocket, broker: EventBroker = Depends(get_event_broker)) -> None:
    # Subscribe before accepting so no event published after the handshake is missed.
    queue = broker.subscribe()
    await websocket.accept()

    async def forward() -> None:
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    sender = asyncio.create_task(forward())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Event subscriber disconnected")
    finally:
        sender.cancel()
        broker.unsubscribe(queue)


__all__ = ["router"]
