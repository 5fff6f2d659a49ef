"""
In-process publish/subscribe bus for mutation events.

One ``ChangeNotifier`` is built by the app factory and handed to resolvers
through the GraphQL context; nothing here is a module-level global, so a
test can create a fresh bus per case.

Delivery model
--------------
- Broadcast: every subscription on a topic receives every event published
  to that topic after it was registered.  No backlog, no replay.
- FIFO per topic: each subscription has its own queue, filled in publish
  order.
- Non-blocking publish: events are placed with ``put_nowait``.  A subscriber
  whose queue is full loses that event (logged); the publisher and the other
  subscribers are unaffected.
- All registry mutations happen synchronously on the event loop thread, so
  subscribe / unsubscribe / publish cannot interleave mid-operation.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class Topic(enum.Enum):
    USER = "USER"
    POST = "POST"
    BOOK = "BOOK"
    COMMENT = "COMMENT"
    REVIEW = "REVIEW"
    COUNT = "COUNT"


class MutationKind(enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class ChangeEvent:
    topic: Topic
    mutation: MutationKind
    node: dict[str, Any] = field(default_factory=dict)


# Queue marker that ends a stream when the bus shuts down.
_CLOSED = object()


class Subscription:
    """
    A live, non-restartable stream of events for one topic.

    Registered as soon as it is created.  Use it as an async iterator, and
    preferably as an async context manager so that it is unregistered when
    the consumer goes away::

        async with notifier.subscribe(Topic.POST) as events:
            async for event in events:
                ...
    """

    def __init__(self, notifier: ChangeNotifier, topic: Topic, queue: asyncio.Queue) -> None:
        self.topic = topic
        self._notifier = notifier
        self._queue = queue
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._notifier._unregister(self.topic, self._queue)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        try:
            item = await self._queue.get()
        except BaseException:
            # Cancelled while waiting (client disconnect): drop registration.
            self.close()
            raise
        if item is _CLOSED:
            self.close()
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class ChangeNotifier:
    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[Topic, list[asyncio.Queue]] = defaultdict(list)
        self._closed = False
        self._dropped = 0

    # ------------------------------------------------------------------
    # Subscribing
    # ------------------------------------------------------------------

    def subscribe(self, topic: Topic) -> Subscription:
        if self._closed:
            raise RuntimeError("ChangeNotifier is closed")
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[topic].append(queue)
        logger.debug("Subscriber added on %s (%d live)", topic.value, len(self._subscribers[topic]))
        return Subscription(self, topic, queue)

    def _unregister(self, topic: Topic, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(topic)
        if not queues:
            return
        try:
            queues.remove(queue)
        except ValueError:
            return
        if not queues:
            del self._subscribers[topic]
        logger.debug("Subscriber removed from %s", topic.value)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver *event* to every current subscriber of ``event.topic``.

        Returns the number of subscriptions the event was queued for.
        """
        delivered = 0
        # Snapshot: a subscriber may unregister while we iterate.
        for queue in tuple(self._subscribers.get(event.topic, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                self._dropped += 1
                logger.warning(
                    "Dropped %s %s event for a slow subscriber (queue size %d)",
                    event.topic.value, event.mutation.value, self._queue_size,
                )
        return delivered

    # ------------------------------------------------------------------
    # Lifecycle / observability
    # ------------------------------------------------------------------

    def close(self) -> None:
        """End every live stream.  Called once at application shutdown."""
        self._closed = True
        for queues in list(self._subscribers.values()):
            for queue in tuple(queues):
                if queue.full():
                    queue.get_nowait()
                queue.put_nowait(_CLOSED)

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers.get(topic, ()))

    @property
    def stats(self) -> dict:
        return {
            "subscribers": {topic.value: len(queues) for topic, queues in self._subscribers.items()},
            "dropped": self._dropped,
        }
