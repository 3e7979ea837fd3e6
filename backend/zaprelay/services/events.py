"""Server-Sent Events fan-out to every connected UI client.

Delivery is best-effort and at-most-once: events are not buffered for clients
that connect later, and a subscriber that stops draining its queue is evicted.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator

from fastapi import Request
from fastapi.responses import StreamingResponse

from zaprelay.core.config import settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    INIT = "init"
    MESSAGE = "message"
    CONVERSATION = "conversation"
    STATUS = "status"


def encode_event(event: str, data: Any) -> str:
    """Encode a named SSE frame."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


HEARTBEAT_FRAME = ": ping\n\n"


@dataclass
class Subscriber:
    queue: asyncio.Queue
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    evicted: bool = False


class EventHub:
    """In-process registry of live subscribers.

    Registration and broadcast never await, so they are atomic under the
    event loop and need no lock.
    """

    def __init__(self, queue_size: int = 100):
        self._queue_size = queue_size
        self._subscribers: dict[str, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        subscriber = Subscriber(queue=asyncio.Queue(maxsize=self._queue_size))
        self._subscribers[subscriber.id] = subscriber
        logger.info(f"SSE client {subscriber.id} connected ({len(self)} total)")
        return subscriber

    def unsubscribe(self, subscriber_id: str) -> None:
        if self._subscribers.pop(subscriber_id, None) is not None:
            logger.info(f"SSE client {subscriber_id} disconnected ({len(self)} total)")

    def broadcast(self, event: str, payload: Any) -> int:
        """Queue one event for every subscriber. Returns how many were reached."""
        frame = encode_event(event, payload)
        delivered = 0
        for subscriber in list(self._subscribers.values()):
            try:
                subscriber.queue.put_nowait(frame)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"SSE client {subscriber.id} is not draining, evicting")
                subscriber.evicted = True
                self.unsubscribe(subscriber.id)
        logger.debug(f"Broadcast '{event}' to {delivered} client(s)")
        return delivered

    def close(self) -> None:
        """End every open stream, e.g. on shutdown."""
        for subscriber in list(self._subscribers.values()):
            try:
                subscriber.queue.put_nowait(None)
            except asyncio.QueueFull:
                subscriber.evicted = True
            self.unsubscribe(subscriber.id)


event_hub = EventHub(queue_size=settings.sse_queue_size)


def get_event_hub() -> EventHub:
    return event_hub


async def event_stream(
    hub: EventHub,
    request: Request,
    heartbeat_interval: float = 25.0,
) -> AsyncGenerator[str, None]:
    """Stream frames for one client until it goes away or the hub closes.

    A comment line is written after every idle heartbeat interval; it keeps
    proxies from closing the connection and forces a disconnect check.
    """
    subscriber = hub.subscribe()
    try:
        yield encode_event(EventType.INIT.value, {"success": True})

        while not subscriber.evicted:
            if await request.is_disconnected():
                break
            try:
                frame = await asyncio.wait_for(subscriber.queue.get(), timeout=heartbeat_interval)
                if frame is None:
                    break
                yield frame
            except asyncio.TimeoutError:
                yield HEARTBEAT_FRAME
    finally:
        hub.unsubscribe(subscriber.id)


def create_sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
