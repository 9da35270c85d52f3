"""Domain models for paired recording sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class SessionStatus(StrEnum):
    """Lifecycle of a recording session, in the only order it may advance."""

    WAITING = "waiting"
    CONNECTED = "connected"
    RECORDING = "recording"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        """Position of the status along the lifecycle chain."""
        return _STATUS_ORDER.index(self)

    def precedes(self, other: "SessionStatus") -> bool:
        """Return True when this status comes strictly before ``other``."""
        return self.rank < other.rank


_STATUS_ORDER = (
    SessionStatus.WAITING,
    SessionStatus.CONNECTED,
    SessionStatus.RECORDING,
    SessionStatus.FINISHED,
)


@dataclass(frozen=True)
class RecordingSession:
    """Represents the shared session record both devices observe."""

    id: UUID
    join_code: str
    controller_device_id: str
    recorder_device_id: str | None
    status: SessionStatus
    recording_started_at: datetime | None = None
    recording_ended_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def duration_seconds(self) -> int | None:
        """Whole seconds between start and end, once both are known."""
        if self.recording_started_at is None or self.recording_ended_at is None:
            return None
        elapsed = self.recording_ended_at - self.recording_started_at
        return max(0, round(elapsed.total_seconds()))
