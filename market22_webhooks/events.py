"""In-process fan-out of dispatched webhook events.

Subscribers (WebSocket bridges, background consumers) each get a bounded
asyncio queue. Publishing never blocks the request path: a full queue loses
its oldest message.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any

logger = logging.getLogger(__name__)

_QUEUE_MAXSIZE = 500


class EventBroadcaster:
    """Fan out webhook notifications to every registered subscriber queue."""

    def __init__(self) -> None:
        self._subscribers: dict[str, asyncio.Queue] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> tuple[str, asyncio.Queue]:
        """Register a subscriber. Returns (subscriber_id, queue)."""
        sub_id = uuid.uuid4().hex[:8]
        queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_MAXSIZE)
        self._subscribers[sub_id] = queue
        logger.info("Webhook subscriber %s attached (%d active)", sub_id, self.subscriber_count)
        return sub_id, queue

    def unsubscribe(self, sub_id: str) -> None:
        if self._subscribers.pop(sub_id, None) is not None:
            logger.info("Webhook subscriber %s detached (%d active)", sub_id, self.subscriber_count)

    def _offer(self, sub_id: str, queue: asyncio.Queue, message: dict[str, Any]) -> None:
        if queue.full():
            logger.debug("Subscriber %s backlog full, evicting oldest message", sub_id)
            queue.get_nowait()
        queue.put_nowait(message)

    def broadcast(self, message: dict[str, Any]) -> None:
        """Stamp *message* with the send time and offer it to each subscriber."""
        message["timestamp"] = time.time()
        for sub_id, queue in list(self._subscribers.items()):
            self._offer(sub_id, queue, message)


# Shared by the dispatcher and the app's health probe
broadcaster = EventBroadcaster()
