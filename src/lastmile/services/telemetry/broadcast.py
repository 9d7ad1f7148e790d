"""In-process per-subject broadcast of location payloads.

All methods run on the event loop thread and never await while touching the
topic table, so no lock is needed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)


_CLOSED = object()


class Subscription:
    """A single consumer's queue on a subject topic.

    Iteration ends once the subscription is closed, including for a consumer
    already waiting on the queue.
    """

    def __init__(self, hub: "LocationHub", subject_id: str, maxsize: int) -> None:
        self.hub = hub
        self.subject_id = subject_id
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, payload: Any) -> None:
        if self.closed:
            return
        self._put(payload)

    def _put(self, item: Any) -> None:
        if self.queue.full():
            # newest position matters most; drop the oldest
            self.queue.get_nowait()
            logger.debug(f"Subscriber queue full for {self.subject_id}, dropped oldest payload")
        self.queue.put_nowait(item)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._put(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[Any]:
        while True:
            item = await self.queue.get()
            if item is _CLOSED:
                return
            yield item

    def unsubscribe(self) -> None:
        self.hub.unsubscribe(self)


class LocationHub:
    """Topic-per-subject fan-out; one publish reaches every current subscriber."""

    def __init__(self, queue_size: int = 32) -> None:
        self._topics: dict[str, set[Subscription]] = {}
        self.queue_size = queue_size

    def subscribe(self, subject_id: str) -> Subscription:
        subscription = Subscription(self, subject_id, self.queue_size)
        self._topics.setdefault(subject_id, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        subscribers = self._topics.get(subscription.subject_id)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._topics[subscription.subject_id]

    def publish(self, subject_id: str, payload: Any) -> int:
        subscribers = list(self._topics.get(subject_id, ()))
        for subscription in subscribers:
            subscription.offer(payload)
        return len(subscribers)

    def subscriber_count(self, subject_id: str) -> int:
        return len(self._topics.get(subject_id, ()))

    def clear(self) -> None:
        for subscribers in self._topics.values():
            for subscription in subscribers:
                subscription.close()
        self._topics.clear()


location_hub = LocationHub()
