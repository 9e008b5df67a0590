"""In-process fan-out of broadcast events to connected clients.

Best effort: an event reaches the subscribers connected at the moment it is
published and nobody else. There is no history, no acknowledgement and no
retry; a client that missed something has to refetch.
"""

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import AsyncIterator, Set

from domain.events import BroadcastEvent

logger = logging.getLogger('uvicorn.error')

DEFAULT_QUEUE_SIZE = 256

_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """One connected client.

    Attributes:
        subscription_id: Unique, process-local identifier.
        queue: Bounded FIFO of events waiting to be sent to the client.
        dropped: Events discarded because the queue was full.
    """

    queue: asyncio.Queue
    subscription_id: int = field(default_factory=lambda: next(_subscription_ids))
    dropped: int = 0


class BroadcastBus:
    """Delivers every published event to all current subscribers.

    ``publish`` never blocks: each subscriber has its own bounded queue and a
    full queue drops the event for that subscriber only. Per subscriber,
    events arrive in publish order.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(queue=asyncio.Queue(maxsize=self.queue_size))
        with self._lock:
            self._subscribers.add(subscription)
        logger.debug(f"Subscriber {subscription.subscription_id} connected")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
        logger.debug(f"Subscriber {subscription.subscription_id} disconnected")

    def publish(self, event: BroadcastEvent) -> int:
        """Enqueue ``event`` for every subscriber; returns the number of deliveries."""
        with self._lock:
            subscribers = tuple(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.warning(
                    f"Dropped '{event.event}' for subscriber {subscription.subscription_id}: queue full "
                    f"({subscription.dropped} dropped so far)"
                )
        return delivered

    async def listen(self, subscription: Subscription) -> AsyncIterator[BroadcastEvent]:
        """Yield events queued for ``subscription`` forever.

        Cancelling the consuming task raises ``CancelledError`` out of the
        ``async for``, so the task ends cancelled.
        """
        while True:
            yield await subscription.queue.get()
