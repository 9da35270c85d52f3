"""In-memory session store for local runs and tests."""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from uuid import UUID

from remote_recorder.domain.errors import JoinCodeTaken
from remote_recorder.domain.sessions import RecordingSession, SessionStatus
from remote_recorder.services.coordinator import SessionStore
from remote_recorder.services.feed import InMemoryChangeFeed

_FIELD_NAMES = frozenset(item.name for item in fields(RecordingSession))


@dataclass
class InMemorySessionStore(SessionStore):
    """Session store serializing every write behind one lock.

    At most one waiting session holds a given join code, and a conditional
    update patches at most one session. Committed records are handed to the
    change feed, if one is attached.
    """

    feed: InMemoryChangeFeed | None = None
    sessions: dict[UUID, RecordingSession] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def insert(self, session: RecordingSession) -> RecordingSession:
        """Store a new session."""
        async with self._lock:
            if session.id in self.sessions:
                raise RuntimeError(f"Session {session.id} already exists")
            if session.status == SessionStatus.WAITING and self._waiting_code_held(
                session.join_code
            ):
                raise JoinCodeTaken(session.join_code)
            self.sessions[session.id] = session
        return session

    async def conditional_update(
        self, match: Mapping[str, object], patch: Mapping[str, object]
    ) -> RecordingSession | None:
        """Patch the first session matching all predicates, atomically."""
        _check_fields(match)
        _check_fields(patch)
        async with self._lock:
            matched = next(
                (s for s in self.sessions.values() if _matches(s, match)), None
            )
            if matched is None:
                return None
            updated = replace(matched, **patch)
            self.sessions[updated.id] = updated
            if self.feed is not None:
                self.feed.publish(updated)
        return updated

    async def get(self, session_id: UUID) -> RecordingSession | None:
        """Return a session by id, if present."""
        return self.sessions.get(session_id)

    async def join_code_in_use(self, join_code: str) -> bool:
        """Return True when a waiting session holds the code."""
        return self._waiting_code_held(join_code)

    def _waiting_code_held(self, join_code: str) -> bool:
        return any(
            session.join_code == join_code and session.status == SessionStatus.WAITING
            for session in self.sessions.values()
        )


def _check_fields(values: Mapping[str, object]) -> None:
    unknown = set(values) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown session fields: {sorted(unknown)}")


def _matches(session: RecordingSession, match: Mapping[str, object]) -> bool:
    return all(getattr(session, key) == value for key, value in match.items())
