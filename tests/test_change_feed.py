"""Tests for the in-memory change feed."""

import asyncio

from remote_recorder.adapters.memory_session_store import InMemorySessionStore
from remote_recorder.domain.errors import SubscriptionLost
from remote_recorder.domain.sessions import RecordingSession, SessionStatus
from remote_recorder.services.coordinator import SessionCoordinator
from remote_recorder.services.feed import InMemoryChangeFeed


def test_subscribers_observe_join(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    first: list[RecordingSession] = []
    second: list[RecordingSession] = []

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, first.append)
        await feed.subscribe(session.id, second.append)
        await coordinator.join_session(session.join_code, "dev-B")
        await asyncio.sleep(0)

    asyncio.run(scenario())

    for received in (first, second):
        assert received[-1].status == SessionStatus.CONNECTED
        assert received[-1].recorder_device_id == "dev-B"


def test_delivery_is_not_synchronous_with_commit(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    received: list[RecordingSession] = []

    async def scenario() -> tuple[int, int]:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, received.append)
        await coordinator.join_session(session.join_code, "dev-B")
        before = len(received)
        await asyncio.sleep(0)
        return before, len(received)

    assert asyncio.run(scenario()) == (0, 1)


def test_updates_arrive_in_commit_order(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    received: list[SessionStatus] = []

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, lambda record: received.append(record.status))
        await coordinator.join_session(session.join_code, "dev-B")
        await coordinator.start_recording(session.id)
        await coordinator.stop_recording(session.id)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert received == [
        SessionStatus.CONNECTED,
        SessionStatus.RECORDING,
        SessionStatus.FINISHED,
    ]


def test_unsubscribe_stops_delivery_and_keeps_session(
    coordinator: SessionCoordinator,
    feed: InMemoryChangeFeed,
    store: InMemorySessionStore,
) -> None:
    kept: list[RecordingSession] = []
    dropped: list[RecordingSession] = []

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, kept.append)
        handle = await feed.subscribe(session.id, dropped.append)
        await feed.unsubscribe(handle)
        await feed.unsubscribe(handle)
        await coordinator.join_session(session.join_code, "dev-B")
        await asyncio.sleep(0)
        assert store.sessions[session.id].status == SessionStatus.CONNECTED
        assert feed.subscriber_count(session.id) == 1

    asyncio.run(scenario())

    assert len(kept) == 1
    assert dropped == []


def test_unsubscribe_between_commit_and_delivery_drops_event(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    received: list[RecordingSession] = []

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        handle = await feed.subscribe(session.id, received.append)
        await coordinator.join_session(session.join_code, "dev-B")
        await feed.unsubscribe(handle)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert received == []


def test_failing_handler_does_not_block_other_subscribers(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    received: list[RecordingSession] = []

    def broken(record: RecordingSession) -> None:
        raise ValueError("boom")

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, broken)
        await feed.subscribe(session.id, received.append)
        await coordinator.join_session(session.join_code, "dev-B")
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert len(received) == 1


def test_drop_reports_subscription_lost(
    coordinator: SessionCoordinator, feed: InMemoryChangeFeed
) -> None:
    lost: list[SubscriptionLost] = []

    async def scenario() -> None:
        session = await coordinator.create_session("dev-A")
        await feed.subscribe(session.id, lambda record: None, lost.append)
        feed.drop(session.id, "socket closed")
        assert feed.subscriber_count(session.id) == 0

    asyncio.run(scenario())

    assert len(lost) == 1
    assert "socket closed" in str(lost[0])
