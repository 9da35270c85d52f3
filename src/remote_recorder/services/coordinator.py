"""Session coordination: create, join and drive recording sessions."""

import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from remote_recorder.domain.errors import (
    InvalidOrAlreadyBoundCode,
    InvalidTransition,
    JoinCodeTaken,
    SessionNotFound,
    UnauthorizedDevice,
)
from remote_recorder.domain.sessions import RecordingSession, SessionStatus

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_JOIN_CODE_LENGTH = 6

_logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Persistence interface for recording sessions.

    ``match`` and ``patch`` mappings are keyed by ``RecordingSession`` field
    names. A conditional update applies ``patch`` only when every ``match``
    entry equals the stored value, as one atomic step.
    """

    async def insert(self, session: RecordingSession) -> RecordingSession:
        """Persist a new session and return the stored record.

        Raises ``JoinCodeTaken`` when a waiting session already holds the code.
        """

    async def conditional_update(
        self, match: Mapping[str, object], patch: Mapping[str, object]
    ) -> RecordingSession | None:
        """Apply a patch if all predicates hold; return the record or None."""

    async def get(self, session_id: UUID) -> RecordingSession | None:
        """Return a session by id, if present."""

    async def join_code_in_use(self, join_code: str) -> bool:
        """Return True when a waiting session already holds the code."""


def generate_join_code(
    length: int = DEFAULT_JOIN_CODE_LENGTH, alphabet: str = JOIN_CODE_ALPHABET
) -> str:
    """Draw a uniformly random join code."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_join_code(raw: str) -> str:
    """Normalize a human-entered join code."""
    return "".join(raw.split()).upper()


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionCoordinator:
    """Protocol logic for pairing a controller with a recorder."""

    store: SessionStore
    join_code_length: int = DEFAULT_JOIN_CODE_LENGTH
    code_attempts: int = 5
    now: Callable[[], datetime] = field(default=_utcnow)
    code_factory: Callable[[int], str] = field(default=generate_join_code)

    async def create_session(self, controller_device_id: str) -> RecordingSession:
        """Create a waiting session owned by the controller device."""
        for _ in range(self.code_attempts - 1):
            try:
                return await self._create_with_code(controller_device_id)
            except JoinCodeTaken:
                _logger.info("Join code collision, regenerating")
        return await self._create_with_code(controller_device_id)

    async def join_session(
        self, join_code: str, recorder_device_id: str
    ) -> RecordingSession:
        """Bind the recorder to the waiting session holding the code."""
        code = normalize_join_code(join_code)
        if not code:
            raise InvalidOrAlreadyBoundCode(join_code)
        joined = await self.store.conditional_update(
            {"join_code": code, "status": SessionStatus.WAITING},
            {
                "recorder_device_id": recorder_device_id,
                "status": SessionStatus.CONNECTED,
            },
        )
        if joined is None:
            _logger.info("Join rejected: code=%s device=%s", code, recorder_device_id)
            raise InvalidOrAlreadyBoundCode(code)
        _logger.info("Session joined: id=%s device=%s", joined.id, recorder_device_id)
        return joined

    async def start_recording(
        self, session_id: UUID, device_id: str | None = None
    ) -> RecordingSession:
        """Move a connected session to recording."""
        return await self._transition(
            session_id,
            expected=SessionStatus.CONNECTED,
            target=SessionStatus.RECORDING,
            timestamp_field="recording_started_at",
            device_id=device_id,
        )

    async def stop_recording(
        self, session_id: UUID, device_id: str | None = None
    ) -> RecordingSession:
        """Move a recording session to finished."""
        return await self._transition(
            session_id,
            expected=SessionStatus.RECORDING,
            target=SessionStatus.FINISHED,
            timestamp_field="recording_ended_at",
            device_id=device_id,
        )

    async def get_session(self, session_id: UUID) -> RecordingSession | None:
        """Fetch the current record, for reconciliation."""
        return await self.store.get(session_id)

    async def _transition(  # noqa: PLR0913
        self,
        session_id: UUID,
        *,
        expected: SessionStatus,
        target: SessionStatus,
        timestamp_field: str,
        device_id: str | None,
    ) -> RecordingSession:
        match: dict[str, object] = {"id": session_id, "status": expected}
        if device_id is not None:
            match["controller_device_id"] = device_id
        updated = await self.store.conditional_update(
            match, {"status": target, timestamp_field: self.now()}
        )
        if updated is not None:
            _logger.info("Session %s: %s -> %s", session_id, expected, target)
            return updated

        current = await self.store.get(session_id)
        if current is None:
            raise SessionNotFound(session_id, target)
        if device_id is not None and current.controller_device_id != device_id:
            raise UnauthorizedDevice(session_id, device_id)
        _logger.info(
            "Transition rejected: session=%s target=%s current=%s",
            session_id,
            target,
            current.status,
        )
        raise InvalidTransition(session_id, target, current.status)

    async def _create_with_code(self, controller_device_id: str) -> RecordingSession:
        join_code = self.code_factory(self.join_code_length)
        if await self.store.join_code_in_use(join_code):
            raise JoinCodeTaken(join_code)
        session = RecordingSession(
            id=uuid4(),
            join_code=join_code,
            controller_device_id=controller_device_id,
            recorder_device_id=None,
            status=SessionStatus.WAITING,
            created_at=self.now(),
        )
        created = await self.store.insert(session)
        _logger.info("Session created: id=%s code=%s", created.id, created.join_code)
        return created
