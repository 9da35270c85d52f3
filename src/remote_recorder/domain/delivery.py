"""Domain models for audio artifacts and their delivery."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioArtifact:
    """Encoded audio produced by a finished capture."""

    content: bytes
    mime_type: str = "audio/wav"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of handing a recording to the delivery collaborator."""

    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class AudioEmail:
    """Email message carrying a recording as an attachment."""

    sender: str
    recipients: list[str]
    subject: str
    html: str
    attachment_name: str
    attachment: bytes
