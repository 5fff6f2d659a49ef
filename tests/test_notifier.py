"""
ChangeNotifier tests: broadcast, ordering, topic isolation, cancellation
and slow-subscriber isolation.
"""
import asyncio

import pytest

from quillgraph.notifier import ChangeEvent, ChangeNotifier, MutationKind, Topic


def _event(topic: Topic, n: int, mutation: MutationKind = MutationKind.CREATED) -> ChangeEvent:
    return ChangeEvent(topic=topic, mutation=mutation, node={"n": n})


async def _drain(subscription, count: int) -> list[ChangeEvent]:
    return [await asyncio.wait_for(subscription.__anext__(), timeout=1) for _ in range(count)]


@pytest.mark.asyncio
async def test_broadcast_to_every_subscriber():
    bus = ChangeNotifier()
    first = bus.subscribe(Topic.POST)
    second = bus.subscribe(Topic.POST)

    assert bus.publish(_event(Topic.POST, 1)) == 2

    assert [e.node["n"] for e in await _drain(first, 1)] == [1]
    assert [e.node["n"] for e in await _drain(second, 1)] == [1]


@pytest.mark.asyncio
async def test_publish_order_is_preserved():
    bus = ChangeNotifier()
    async with bus.subscribe(Topic.BOOK) as events:
        for n in range(5):
            bus.publish(_event(Topic.BOOK, n))
        received = await _drain(events, 5)
    assert [e.node["n"] for e in received] == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_topics_are_isolated():
    bus = ChangeNotifier()
    posts = bus.subscribe(Topic.POST)
    books = bus.subscribe(Topic.BOOK)

    bus.publish(_event(Topic.BOOK, 1))
    bus.publish(_event(Topic.POST, 2))

    assert [e.node["n"] for e in await _drain(posts, 1)] == [2]
    assert [e.node["n"] for e in await _drain(books, 1)] == [1]
    assert posts._queue.empty()


@pytest.mark.asyncio
async def test_no_replay_for_late_subscribers():
    bus = ChangeNotifier()
    assert bus.publish(_event(Topic.USER, 1)) == 0

    late = bus.subscribe(Topic.USER)
    bus.publish(_event(Topic.USER, 2))
    assert [e.node["n"] for e in await _drain(late, 1)] == [2]


@pytest.mark.asyncio
async def test_context_exit_unregisters():
    bus = ChangeNotifier()
    async with bus.subscribe(Topic.COMMENT):
        assert bus.subscriber_count(Topic.COMMENT) == 1
    assert bus.subscriber_count(Topic.COMMENT) == 0
    assert bus.publish(_event(Topic.COMMENT, 1)) == 0


@pytest.mark.asyncio
async def test_cancelled_waiter_unregisters():
    bus = ChangeNotifier()
    subscription = bus.subscribe(Topic.REVIEW)
    waiter = asyncio.create_task(subscription.__anext__())
    await asyncio.sleep(0)

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert subscription.closed
    assert bus.subscriber_count(Topic.REVIEW) == 0


@pytest.mark.asyncio
async def test_closed_subscription_receives_nothing():
    bus = ChangeNotifier()
    subscription = bus.subscribe(Topic.POST)
    subscription.close()
    subscription.close()

    bus.publish(_event(Topic.POST, 1))
    with pytest.raises(StopAsyncIteration):
        await subscription.__anext__()


@pytest.mark.asyncio
async def test_full_queue_drops_only_for_that_subscriber():
    bus = ChangeNotifier(queue_size=2)
    slow = bus.subscribe(Topic.POST)
    fast = bus.subscribe(Topic.POST)

    bus.publish(_event(Topic.POST, 1))
    assert [e.node["n"] for e in await _drain(fast, 1)] == [1]
    bus.publish(_event(Topic.POST, 2))
    assert [e.node["n"] for e in await _drain(fast, 1)] == [2]

    # slow now holds 2 events; the third is dropped for it alone
    assert bus.publish(_event(Topic.POST, 3)) == 1
    assert [e.node["n"] for e in await _drain(fast, 1)] == [3]
    assert [e.node["n"] for e in await _drain(slow, 2)] == [1, 2]
    assert bus.stats["dropped"] == 1


@pytest.mark.asyncio
async def test_close_ends_every_stream():
    bus = ChangeNotifier(queue_size=1)
    idle = bus.subscribe(Topic.POST)
    full = bus.subscribe(Topic.BOOK)
    bus.publish(_event(Topic.BOOK, 1))

    bus.close()

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(idle.__anext__(), timeout=1)
    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(full.__anext__(), timeout=1)
    assert bus.stats["subscribers"] == {}
    with pytest.raises(RuntimeError):
        bus.subscribe(Topic.POST)


@pytest.mark.asyncio
async def test_async_for_consumer_sees_events_then_stops_on_close():
    bus = ChangeNotifier()
    received: list[int] = []

    async def consume():
        async with bus.subscribe(Topic.COUNT) as events:
            async for event in events:
                received.append(event.node["n"])

    task = asyncio.create_task(consume())
    while bus.subscriber_count(Topic.COUNT) == 0:
        await asyncio.sleep(0)

    bus.publish(_event(Topic.COUNT, 1))
    bus.publish(_event(Topic.COUNT, 2))
    bus.close()
    await asyncio.wait_for(task, timeout=1)

    assert received == [1, 2]
