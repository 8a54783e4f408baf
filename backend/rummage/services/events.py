"""Fan-out of scan and application events to live subscribers."""

from __future__ import annotations

import asyncio
from typing import Any

from rummage.core.logging import get_logger
from rummage.scanning.orchestrator import APP_ERROR

logger = get_logger(__name__)


class EventBroker:
    """Broadcasts ``{"event", "payload"}`` messages to every open subscriber queue.

    ``publish`` must be called from the event loop thread; the orchestrator
    already marshals worker-thread progress onto the loop before emitting.
    """

    def __init__(self, max_queue: int = 1000) -> None:
        self.max_queue = max_queue
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.max_queue)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Dropping %s for a slow subscriber", event)

    def report_error(self, channel: str, error: str) -> None:
        self.publish(APP_ERROR, {"error": error, "channel": channel})


__all__ = ["EventBroker"]
