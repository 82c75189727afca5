# rumlab/services/broadcaster.py
"""
Live fan-out of incoming RUM samples.

Each subscriber gets its own bounded queue. Delivery is best-effort and at
most once: there is no replay for late subscribers, and a subscriber whose
queue is full simply misses that sample.
"""
import asyncio
import itertools
import logging
from typing import Dict, Optional

from rumlab.models import RumSample

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100

# Wakes a consumer that is blocked waiting for the next sample
_CLOSED = object()

class Subscription:
    """A live feed handle. Iterate it to receive samples; close it to leave."""

    def __init__(self, broadcaster: "RumBroadcaster", subscriber_id: int, queue_size: int):
        self.id = subscriber_id
        self._broadcaster = broadcaster
        self._queue_size = queue_size
        # Capacity is enforced in offer() so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue()
        self.dropped = 0
        self.closed = False

    def offer(self, sample: RumSample) -> bool:
        if self.closed or self._queue.qsize() >= self._queue_size:
            self.dropped += 1
            return False
        self._queue.put_nowait(sample)
        return True

    async def get(self, timeout: Optional[float] = None) -> Optional[RumSample]:
        """
        Waits for the next sample. Returns None if ``timeout`` passes first or
        the subscription is closed.
        """
        if self.closed and self._queue.empty():
            return None
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            # Leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    def _shutdown(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> RumSample:
        if self.closed:
            raise StopAsyncIteration
        sample = await self.get()
        if sample is None:
            raise StopAsyncIteration
        return sample

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class RumBroadcaster:
    """Registry of live subscribers with explicit subscribe/unsubscribe."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, next(self._ids), self.queue_size)
        self._subscribers[subscription.id] = subscription
        logger.debug("RUM subscriber %d connected (%d active)", subscription.id, self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription._shutdown()
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.debug("RUM subscriber %d disconnected (%d active)", subscription.id, self.subscriber_count)

    def publish(self, sample: RumSample) -> int:
        """
        Hands ``sample`` to every current subscriber.

        Returns:
            How many subscribers accepted it.
        """
        delivered = 0
        # Copy so a subscriber leaving mid-publish does not break iteration
        for subscription in list(self._subscribers.values()):
            if subscription.offer(sample):
                delivered += 1
            else:
                logger.warning("RUM subscriber %d is not keeping up, dropped a sample", subscription.id)
        return delivered
