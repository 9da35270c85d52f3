"""Change feed abstractions and an event-loop implementation."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID, uuid4

from remote_recorder.domain.errors import SubscriptionLost
from remote_recorder.domain.sessions import RecordingSession

UpdateHandler = Callable[[RecordingSession], None]
LostHandler = Callable[[SubscriptionLost], None]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Identifies one subscription to one session."""

    id: UUID
    session_id: UUID


class ChangeFeed(Protocol):
    """Push channel republishing committed session mutations."""

    async def subscribe(
        self,
        session_id: UUID,
        on_update: UpdateHandler,
        on_lost: LostHandler | None = None,
    ) -> SubscriptionHandle:
        """Attach handlers to a session and return the subscription handle."""

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Detach a subscription; unknown handles are ignored."""


@dataclass
class _Subscriber:
    handle: SubscriptionHandle
    on_update: UpdateHandler
    on_lost: LostHandler | None


@dataclass
class InMemoryChangeFeed(ChangeFeed):
    """Change feed that schedules deliveries on the running event loop.

    Callbacks are queued with ``call_soon``, so each subscriber sees records
    in commit order and never inside the committing call.
    """

    _subscribers: dict[UUID, dict[UUID, _Subscriber]] = field(default_factory=dict)

    async def subscribe(
        self,
        session_id: UUID,
        on_update: UpdateHandler,
        on_lost: LostHandler | None = None,
    ) -> SubscriptionHandle:
        """Register handlers for a session."""
        handle = SubscriptionHandle(id=uuid4(), session_id=session_id)
        self._subscribers.setdefault(session_id, {})[handle.id] = _Subscriber(
            handle=handle, on_update=on_update, on_lost=on_lost
        )
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Remove a subscription without touching the others."""
        subscribers = self._subscribers.get(handle.session_id)
        if not subscribers:
            return
        subscribers.pop(handle.id, None)
        if not subscribers:
            self._subscribers.pop(handle.session_id, None)

    def publish(self, session: RecordingSession) -> None:
        """Queue a committed record for every live subscriber of its session."""
        subscribers = list(self._subscribers.get(session.id, {}).values())
        if not subscribers:
            return
        loop = asyncio.get_running_loop()
        for subscriber in subscribers:
            loop.call_soon(self._deliver, subscriber.handle, session)

    def drop(self, session_id: UUID, reason: str | None = None) -> None:
        """Sever every subscription to a session and report the loss."""
        subscribers = self._subscribers.pop(session_id, {})
        for subscriber in subscribers.values():
            if subscriber.on_lost is not None:
                subscriber.on_lost(SubscriptionLost(session_id, reason))

    def subscriber_count(self, session_id: UUID) -> int:
        """Number of live subscriptions to a session."""
        return len(self._subscribers.get(session_id, {}))

    def _deliver(self, handle: SubscriptionHandle, session: RecordingSession) -> None:
        subscriber = self._subscribers.get(handle.session_id, {}).get(handle.id)
        if subscriber is None:
            return
        try:
            subscriber.on_update(session)
        except Exception:
            _logger.exception("Change feed handler failed: session=%s", session.id)
