"""Tests for email delivery of recordings."""

import asyncio
from datetime import UTC, datetime

import httpx

from remote_recorder.domain.delivery import AudioArtifact
from remote_recorder.services.delivery import (
    EmailDeliveryService,
    attachment_name,
    build_audio_email,
    format_duration,
)
from tests.conftest import FakeEmailSender


def test_format_duration() -> None:
    assert format_duration(0) == "0:00"
    assert format_duration(65) == "1:05"
    assert format_duration(600) == "10:00"


def test_attachment_name_is_filesystem_safe() -> None:
    name = attachment_name(datetime(2024, 5, 1, 12, 30, 15, tzinfo=UTC))

    assert name == "recording_2024-05-01T12-30-15+00-00.wav"


def test_build_audio_email_includes_duration_and_time() -> None:
    email = build_audio_email(
        AudioArtifact(b"wav"),
        duration_seconds=125,
        timestamp=datetime(2024, 5, 1, 12, 30, 15, tzinfo=UTC),
        sender="rec@example.com",
        recipients=["owner@example.com"],
    )

    assert "01/05/2024 12:30:15" in email.subject
    assert "2:05" in email.html
    assert email.attachment == b"wav"
    assert email.recipients == ["owner@example.com"]


def test_email_delivery_service_sends(email_sender: FakeEmailSender) -> None:
    service = EmailDeliveryService(
        sender=email_sender,
        from_address="rec@example.com",
        recipients=["owner@example.com"],
    )

    result = asyncio.run(
        service.deliver(AudioArtifact(b"wav"), 30, datetime.now(tz=UTC))
    )

    assert result.success
    assert result.message_id == "email-1"
    assert len(email_sender.sent) == 1


def test_email_delivery_service_reports_failure() -> None:
    sender = FakeEmailSender(error=httpx.ConnectError("smtp down"))
    service = EmailDeliveryService(
        sender=sender, from_address="rec@example.com", recipients=["a@example.com"]
    )

    result = asyncio.run(
        service.deliver(AudioArtifact(b"wav"), 30, datetime.now(tz=UTC))
    )

    assert not result.success
    assert "smtp down" in (result.error or "")
