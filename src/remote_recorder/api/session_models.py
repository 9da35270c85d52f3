"""Pydantic models for the session HTTP API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from remote_recorder.domain.sessions import RecordingSession


class CreateSessionRequest(BaseModel):
    device_id: str = Field(min_length=1)


class JoinSessionRequest(BaseModel):
    join_code: str = Field(min_length=1)
    device_id: str = Field(min_length=1)


class TransitionRequest(BaseModel):
    device_id: str | None = None


class SessionPayload(BaseModel):
    """Wire representation of a recording session."""

    id: str
    join_code: str
    controller_device_id: str
    recorder_device_id: str | None = None
    status: str
    recording_started_at: datetime | None = None
    recording_ended_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_session(cls, session: RecordingSession) -> "SessionPayload":
        return cls(
            id=str(session.id),
            join_code=session.join_code,
            controller_device_id=session.controller_device_id,
            recorder_device_id=session.recorder_device_id,
            status=session.status.value,
            recording_started_at=session.recording_started_at,
            recording_ended_at=session.recording_ended_at,
            created_at=session.created_at,
        )


class AudioEmailRequest(BaseModel):
    """Body posted by a recorder once a recording is finished."""

    model_config = ConfigDict(populate_by_name=True)

    audio_data: str = Field(alias="audioData")
    duration: int = Field(ge=0)
    timestamp: datetime
