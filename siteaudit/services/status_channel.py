from __future__ import annotations

import asyncio
from collections import defaultdict

from siteaudit.models.events import StatusEvent
from siteaudit.services.logger import logger


class Subscription:
    """Async iterator over one channel; ends after a terminal event."""

    def __init__(self, broadcaster: "StatusBroadcaster", channel: str, queue: asyncio.Queue[StatusEvent]):
        self._broadcaster = broadcaster
        self.channel = channel
        self._queue = queue
        self._finished = False

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> StatusEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event.terminal:
            self._finished = True
            self.close()
        return event

    def close(self) -> None:
        self._broadcaster._unsubscribe(self.channel, self._queue)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class StatusBroadcaster:
    """In-process fan-out of status events, keyed by channel name.

    Publishing never blocks and never fails the publisher: events go to the
    subscribers present at that moment and are not replayed to late joiners.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[StatusEvent]]] = defaultdict(set)

    def publish(self, channel: str, event: StatusEvent) -> int:
        delivered = 0
        for queue in list(self._subscribers.get(channel, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Status subscriber on {channel} is lagging, dropping event")
        return delivered

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    def subscribe(self, channel: str) -> Subscription:
        queue: asyncio.Queue[StatusEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[channel].add(queue)
        return Subscription(self, channel, queue)

    def _unsubscribe(self, channel: str, queue: asyncio.Queue[StatusEvent]) -> None:
        subscribers = self._subscribers.get(channel)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            self._subscribers.pop(channel, None)
