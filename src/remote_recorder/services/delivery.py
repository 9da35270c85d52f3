"""Delivery of finished recordings."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

from remote_recorder.domain.delivery import AudioArtifact, AudioEmail, DeliveryResult

_logger = logging.getLogger(__name__)


class DeliveryClient(Protocol):
    """Interface for handing a finished recording off for delivery."""

    async def deliver(
        self, artifact: AudioArtifact, duration_seconds: int, timestamp: datetime
    ) -> DeliveryResult:
        """Deliver a recording and report success or failure."""


class EmailSender(Protocol):
    """Interface for an outbound email provider."""

    async def send_email(self, email: AudioEmail) -> str:
        """Send an email and return the provider message id."""


@dataclass
class EmailDeliveryService(DeliveryClient):
    """Deliver recordings as email attachments."""

    sender: EmailSender
    from_address: str
    recipients: list[str]

    async def deliver(
        self, artifact: AudioArtifact, duration_seconds: int, timestamp: datetime
    ) -> DeliveryResult:
        """Email the recording; failures are reported, never raised."""
        email = build_audio_email(
            artifact,
            duration_seconds=duration_seconds,
            timestamp=timestamp,
            sender=self.from_address,
            recipients=self.recipients,
        )
        _logger.info("Sending audio email: duration=%ss", duration_seconds)
        try:
            message_id = await self.sender.send_email(email)
        except (httpx.HTTPError, RuntimeError) as exc:
            _logger.exception("Audio email delivery failed")
            return DeliveryResult(success=False, error=str(exc))
        _logger.info("Audio email sent: id=%s", message_id)
        return DeliveryResult(success=True, message_id=message_id)


def format_duration(seconds: int) -> str:
    """Format a duration as minutes and zero-padded seconds."""
    minutes, remainder = divmod(max(0, seconds), 60)
    return f"{minutes}:{remainder:02d}"


def attachment_name(timestamp: datetime) -> str:
    """Build a filesystem-safe attachment name for a recording."""
    return f"recording_{timestamp.isoformat().replace(':', '-')}.wav"


def build_audio_email(
    artifact: AudioArtifact,
    *,
    duration_seconds: int,
    timestamp: datetime,
    sender: str,
    recipients: list[str],
) -> AudioEmail:
    """Compose the email that carries a finished recording."""
    recorded_at = timestamp.strftime("%d/%m/%Y %H:%M:%S")
    html = (
        "<h2>New audio recording</h2>"
        f"<p><strong>Recorded at:</strong> {recorded_at}</p>"
        f"<p><strong>Duration:</strong> {format_duration(duration_seconds)}</p>"
        "<p>The audio recording is attached to this email.</p>"
    )
    return AudioEmail(
        sender=sender,
        recipients=list(recipients),
        subject=f"New audio recording - {recorded_at}",
        html=html,
        attachment_name=attachment_name(timestamp),
        attachment=artifact.content,
    )
