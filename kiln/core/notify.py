"""
Client notification channel.

Pushes launcher-level messages (not module updates) to clients that are
already connected, e.g. a browser overlay telling the user the launcher
configuration changed.
"""

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

CONFIG_UPDATED = "launcher-config-updated"


class NotificationChannel(Protocol):
    async def send(self, event: str, data: dict[str, Any]) -> None: ...


class ClientBroadcast:
    """
    In-process fan-out to connected client queues.

    Each client gets an ``asyncio.Queue`` of ``{"type", "event", "data"}``
    messages. A full queue drops the message for that client only.
    """

    def __init__(self, max_queue: int = 100):
        self.max_queue = max_queue
        self._clients: set[asyncio.Queue] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def connect(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self._clients.add(queue)
        return queue

    def disconnect(self, queue: asyncio.Queue) -> None:
        self._clients.discard(queue)

    async def send(self, event: str, data: dict[str, Any]) -> None:
        message = {"type": "custom", "event": event, "data": data}
        for queue in list(self._clients):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.debug("Client queue full; dropping '%s'", event)
