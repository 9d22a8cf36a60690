"""
In-process live updates.

Subscribers do not receive deltas: a notification only says "topic changed",
and the subscriber reloads the full snapshot (replace-on-change). Pending
notifications coalesce, so a burst of writes costs one reload per subscriber.
The broker lives in one process; several API workers do not share it.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], Awaitable[None]]


class Subscription:

    def __init__(self, broker: "LiveBroker", topic: str) -> None:
        self.broker = broker
        self.topic = topic
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self.closed = False

    async def wait(self) -> None:
        """Block until the topic changes."""
        await self.queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.broker._remove(self)


class LiveBroker:

    def __init__(self) -> None:
        self._topics: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(self, topic)
        self._topics[topic].add(subscription)
        return subscription

    def publish(self, topic: str) -> int:
        """Notify every subscriber of ``topic``. Returns how many were notified."""
        subscribers = list(self._topics.get(topic, ()))
        for subscription in subscribers:
            if subscription.queue.empty():
                subscription.queue.put_nowait(topic)
        return len(subscribers)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._topics.get(subscription.topic)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._topics[subscription.topic]


broker = LiveBroker()


def subscribe_snapshots(
    topic: str,
    load_snapshot: Callable[[], Awaitable[T]],
    on_change: Callable[[T], Awaitable[None]],
    on_error: Optional[Callable[[Exception], Awaitable[None]]] = None,
    live_broker: LiveBroker = broker,
) -> Unsubscribe:
    """
    Deliver ``load_snapshot()`` to ``on_change`` now and after every change
    of ``topic``. Returns a coroutine function that stops delivery.

    A failed load goes to ``on_error`` and the next change retries. Without
    ``on_error`` a failed load ends delivery.
    """
    subscription = live_broker.subscribe(topic)

    async def pump() -> None:
        while True:
            try:
                snapshot = await load_snapshot()
            except Exception as e:
                if on_error is None:
                    raise
                logger.warning("Snapshot for %s failed: %s", topic, e)
                await on_error(e)
            else:
                await on_change(snapshot)
            await subscription.wait()

    task = asyncio.create_task(pump())

    def _log_failure(done: asyncio.Task) -> None:
        if not done.cancelled() and done.exception() is not None:
            logger.error("Live delivery for %s stopped", topic, exc_info=done.exception())
            subscription.close()

    task.add_done_callback(_log_failure)

    async def unsubscribe() -> None:
        subscription.close()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    return unsubscribe
