"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from remote_recorder.adapters.memory_session_store import InMemorySessionStore
from remote_recorder.config import Settings
from remote_recorder.containers import AppContainer
from remote_recorder.domain.delivery import AudioArtifact, AudioEmail, DeliveryResult
from remote_recorder.services.clients import AudioCapture
from remote_recorder.services.coordinator import SessionCoordinator
from remote_recorder.services.delivery import DeliveryClient, EmailSender
from remote_recorder.services.feed import InMemoryChangeFeed


@dataclass
class FakeClock:
    """Clock advancing one second per reading."""

    current: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )
    step: timedelta = timedelta(seconds=1)

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current


@dataclass
class SequenceCodes:
    """Join code factory returning predefined codes in order."""

    codes: list[str]

    def __call__(self, length: int) -> str:
        return self.codes.pop(0)


@dataclass
class FakeAudioCapture(AudioCapture):
    """Audio capture that records calls and returns fixed bytes."""

    content: bytes = b"RIFF-fake-wav"
    events: list[str] = field(default_factory=list)

    async def start(self) -> None:
        self.events.append("start")

    async def stop(self) -> AudioArtifact:
        self.events.append("stop")
        return AudioArtifact(content=self.content)


@dataclass
class FakeDeliveryClient(DeliveryClient):
    """Delivery client recording every call."""

    succeed: bool = True
    calls: list[tuple[AudioArtifact, int, datetime]] = field(default_factory=list)

    async def deliver(
        self, artifact: AudioArtifact, duration_seconds: int, timestamp: datetime
    ) -> DeliveryResult:
        self.calls.append((artifact, duration_seconds, timestamp))
        if self.succeed:
            return DeliveryResult(success=True, message_id="email-1")
        return DeliveryResult(success=False, error="mailbox unavailable")


@dataclass
class FakeEmailSender(EmailSender):
    """Email sender storing outgoing messages."""

    sent: list[AudioEmail] = field(default_factory=list)
    error: Exception | None = None

    async def send_email(self, email: AudioEmail) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(email)
        return f"email-{len(self.sent)}"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        session_backend="memory",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        resend_api_key="resend-key",
        delivery_recipients="owner@example.com",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def store(feed: InMemoryChangeFeed) -> InMemorySessionStore:
    return InMemorySessionStore(feed=feed)


@pytest.fixture
def coordinator(store: InMemorySessionStore, clock: FakeClock) -> SessionCoordinator:
    return SessionCoordinator(store=store, now=clock)


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def delivery_client() -> FakeDeliveryClient:
    return FakeDeliveryClient()


@pytest.fixture
def container(
    settings: Settings,
    store: InMemorySessionStore,
    feed: InMemoryChangeFeed,
    coordinator: SessionCoordinator,
    delivery_client: FakeDeliveryClient,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_store=store,
        change_feed=feed,
        coordinator=coordinator,
        delivery_service=delivery_client,
        close_resources=close_resources,
    )
