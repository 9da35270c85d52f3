"""Supabase-backed session store."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from remote_recorder.domain.errors import JoinCodeTaken, StoreUnavailable
from remote_recorder.domain.sessions import RecordingSession, SessionStatus
from remote_recorder.services.coordinator import SessionStore

_COLUMNS = {
    "id": "id",
    "join_code": "session_code",
    "controller_device_id": "controller_id",
    "recorder_device_id": "recorder_id",
    "status": "status",
    "recording_started_at": "recording_start_time",
    "recording_ended_at": "recording_end_time",
    "created_at": "created_at",
}
_SELECT = ", ".join(_COLUMNS.values())
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseSessionStore(SessionStore):
    """Supabase implementation for recording sessions.

    Conditional updates are a single PostgREST ``UPDATE ... WHERE`` request,
    which Postgres applies atomically per row. Join matches on a waiting
    code, which the partial unique index limits to one row.
    """

    client: AsyncClient
    table: str = "recording_sessions"

    async def insert(self, session: RecordingSession) -> RecordingSession:
        """Insert a session row and return it."""
        row = {
            _COLUMNS[name]: _to_column_value(value)
            for name, value in vars(session).items()
        }
        try:
            rows = await self._execute(self.client.table(self.table).insert(row))
        except StoreUnavailable as exc:
            # The partial unique index keeps waiting join codes distinct.
            cause = exc.__cause__
            if isinstance(cause, APIError) and cause.code == _UNIQUE_VIOLATION:
                raise JoinCodeTaken(session.join_code) from cause
            raise
        if not rows:
            raise RuntimeError("Failed to create recording session")
        return session_from_row(rows[0])

    async def conditional_update(
        self, match: Mapping[str, object], patch: Mapping[str, object]
    ) -> RecordingSession | None:
        """Update the row only when every predicate holds."""
        query = self.client.table(self.table).update(
            {_COLUMNS[name]: _to_column_value(value) for name, value in patch.items()}
        )
        for name, value in match.items():
            query = query.eq(_COLUMNS[name], _to_column_value(value))
        rows = await self._execute(query)
        if not rows:
            return None
        return session_from_row(rows[0])

    async def get(self, session_id: UUID) -> RecordingSession | None:
        """Return a session by id, if present."""
        rows = await self._execute(
            self.client.table(self.table)
            .select(_SELECT)
            .eq("id", str(session_id))
            .limit(1)
        )
        if not rows:
            return None
        return session_from_row(rows[0])

    async def join_code_in_use(self, join_code: str) -> bool:
        """Return True when a waiting session holds the code."""
        rows = await self._execute(
            self.client.table(self.table)
            .select("id")
            .eq("session_code", join_code)
            .eq("status", SessionStatus.WAITING.value)
            .limit(1)
        )
        return bool(rows)

    async def _execute(self, query) -> list[dict[str, object]]:  # type: ignore[no-untyped-def]
        try:
            response = await query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        return response.data or []


def session_from_row(row: Mapping[str, object]) -> RecordingSession:
    """Build a session from a ``recording_sessions`` row."""
    return RecordingSession(
        id=UUID(str(row["id"])),
        join_code=str(row["session_code"]),
        controller_device_id=str(row["controller_id"]),
        recorder_device_id=_optional_str(row.get("recorder_id")),
        status=SessionStatus(row["status"]),
        recording_started_at=_parse_timestamp(row.get("recording_start_time")),
        recording_ended_at=_parse_timestamp(row.get("recording_end_time")),
        created_at=_parse_timestamp(row.get("created_at")),
    )


def _to_column_value(value: object) -> object:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
