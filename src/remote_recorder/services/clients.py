"""Controller and recorder clients driven by the change feed."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from remote_recorder.domain.delivery import AudioArtifact, DeliveryResult
from remote_recorder.domain.errors import (
    CoordinationError,
    InvalidTransition,
    SubscriptionLost,
)
from remote_recorder.domain.sessions import RecordingSession
from remote_recorder.domain.views import (
    Finished,
    Recording,
    SessionView,
    Uninitialized,
    mark_stale,
    view_for,
)
from remote_recorder.services.coordinator import SessionCoordinator
from remote_recorder.services.delivery import DeliveryClient
from remote_recorder.services.feed import ChangeFeed, SubscriptionHandle
from remote_recorder.services.identity import DeviceIdentity

ViewListener = Callable[[SessionView], None]

_logger = logging.getLogger(__name__)


class AudioCapture(Protocol):
    """Interface for the device microphone."""

    async def start(self) -> None:
        """Begin capturing audio."""

    async def stop(self) -> AudioArtifact:
        """Stop capturing and return the encoded audio."""


@dataclass
class SessionClient:
    """Local view of one session, kept consistent through the change feed.

    The view is replaced wholesale by every record the feed delivers for the
    bound session. Coordinator results are applied only as the initiating
    client's optimistic update and go through the same path.
    """

    coordinator: SessionCoordinator
    feed: ChangeFeed
    identity: DeviceIdentity
    auto_resubscribe: bool = True
    view: SessionView = field(default_factory=Uninitialized)
    _handle: SubscriptionHandle | None = field(default=None, init=False, repr=False)
    _listeners: list[ViewListener] = field(
        default_factory=list, init=False, repr=False
    )
    _tasks: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    @property
    def session(self) -> RecordingSession | None:
        """The session record behind the current view, if any."""
        if isinstance(self.view, Uninitialized):
            return None
        return self.view.session

    @property
    def is_subscribed(self) -> bool:
        """Whether a live feed subscription is attached."""
        return self._handle is not None

    def add_listener(self, listener: ViewListener) -> None:
        """Register a callback invoked with every new view."""
        self._listeners.append(listener)

    def is_own_device(self, device_id: str | None) -> bool:
        """Whether a device id on the record belongs to this client."""
        return self.identity.owns(device_id)

    async def reconcile(self) -> SessionView:
        """Re-fetch the bound session and apply it."""
        session = self.session
        if session is None:
            return self.view
        fresh = await self.coordinator.get_session(session.id)
        if fresh is None:
            _logger.warning("Session %s vanished from the store", session.id)
            return self.view
        self._apply(fresh)
        return self.view

    async def resubscribe(self) -> SessionView:
        """Reattach to the feed and refresh the view from the store."""
        session = self.session
        if session is None:
            return self.view
        await self._unsubscribe()
        await self._subscribe(session)
        return await self.reconcile()

    async def disconnect(self) -> None:
        """Drop the subscription and forget the session locally."""
        await self._unsubscribe()
        self._set_view(Uninitialized())
        await self.wait_for_background()

    async def wait_for_background(self) -> None:
        """Wait until background work spawned by view changes settles."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _bind(self, session: RecordingSession) -> None:
        await self._unsubscribe()
        self._set_view(view_for(session))
        await self._subscribe(session)
        # Mutations committed before the subscription attached are not replayed.
        await self.reconcile()

    def _require_session(self) -> RecordingSession:
        session = self.session
        if session is None:
            raise RuntimeError("Client is not bound to a session")
        return session

    async def _subscribe(self, session: RecordingSession) -> None:
        self._handle = await self.feed.subscribe(
            session.id, self._on_update, self._on_lost
        )

    async def _unsubscribe(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await self.feed.unsubscribe(handle)

    def _on_update(self, session: RecordingSession) -> None:
        self._apply(session)

    def _on_lost(self, error: SubscriptionLost) -> None:
        _logger.warning("%s", error)
        self._handle = None
        self._set_view(mark_stale(self.view))
        if self.auto_resubscribe:
            self._spawn(self._recover())

    async def _recover(self) -> None:
        try:
            await self.resubscribe()
        except CoordinationError:
            _logger.exception("Resubscription failed")

    def _apply(self, session: RecordingSession) -> None:
        current = self.session
        if current is None or session.id != current.id:
            return
        if session.status.precedes(current.status):
            _logger.debug(
                "Dropping stale record: session=%s status=%s current=%s",
                session.id,
                session.status,
                current.status,
            )
            return
        self._set_view(view_for(session))

    def _set_view(self, view: SessionView) -> None:
        previous = self.view
        self.view = view
        self._view_changed(previous, view)
        for listener in list(self._listeners):
            listener(view)

    def _view_changed(self, previous: SessionView, current: SessionView) -> None:
        """Hook for subclasses reacting to view transitions."""

    def _spawn(self, work: Coroutine[object, object, None]) -> None:
        task = asyncio.create_task(work)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


@dataclass
class ControllerClient(SessionClient):
    """Device that creates the session and issues start/stop commands."""

    async def create_session(self) -> RecordingSession:
        """Create a session owned by this device and attach to it."""
        session = await self.coordinator.create_session(self.identity.device_id)
        await self._bind(session)
        return session

    async def start_recording(self) -> RecordingSession:
        """Ask the recorder to start recording."""
        session = self._require_session()
        try:
            updated = await self.coordinator.start_recording(
                session.id, device_id=self.identity.device_id
            )
        except InvalidTransition:
            await self.reconcile()
            raise
        self._apply(updated)
        return updated

    async def stop_recording(self) -> RecordingSession:
        """Ask the recorder to stop recording."""
        session = self._require_session()
        try:
            updated = await self.coordinator.stop_recording(
                session.id, device_id=self.identity.device_id
            )
        except InvalidTransition:
            await self.reconcile()
            raise
        self._apply(updated)
        return updated


@dataclass
class RecorderClient(SessionClient):
    """Device that joins a session and records on the controller's command.

    Capture follows the feed: entering ``Recording`` starts the microphone,
    entering ``Finished`` stops it and hands the audio to delivery. Disconnecting
    mid-recording stops the microphone and discards the audio. Capture work
    runs in the background so feed handling never waits on the hardware.
    """

    capture: AudioCapture | None = None
    delivery: DeliveryClient | None = None
    last_delivery: DeliveryResult | None = field(default=None, init=False)
    _capturing: bool = field(default=False, init=False, repr=False)
    _capture_lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False
    )

    async def join_session(self, join_code: str) -> RecordingSession:
        """Bind this device to the waiting session holding the code."""
        session = await self.coordinator.join_session(
            join_code, self.identity.device_id
        )
        await self._bind(session)
        return session

    def _view_changed(self, previous: SessionView, current: SessionView) -> None:
        if self.capture is None:
            return
        if isinstance(current, Recording) and not isinstance(previous, Recording):
            self._spawn(self._start_capture())
        elif isinstance(current, Finished) and not isinstance(previous, Finished):
            self._spawn(self._finish_capture(current.session))
        elif isinstance(current, Uninitialized) and isinstance(previous, Recording):
            self._spawn(self._abandon_capture(previous.session))

    async def _start_capture(self) -> None:
        async with self._capture_lock:
            try:
                await self.capture.start()
            except Exception:
                _logger.exception("Audio capture failed to start")
                return
            self._capturing = True

    async def _finish_capture(self, session: RecordingSession) -> None:
        async with self._capture_lock:
            if not self._capturing:
                _logger.warning("Session %s finished without a capture", session.id)
                return
            self._capturing = False
            try:
                artifact = await self.capture.stop()
            except Exception:
                _logger.exception("Audio capture failed to stop")
                return
        if self.delivery is None:
            return
        duration = session.duration_seconds or 0
        timestamp = session.recording_ended_at or datetime.now(tz=UTC)
        result = await self.delivery.deliver(artifact, duration, timestamp)
        self.last_delivery = result
        if result.success:
            _logger.info("Recording delivered: session=%s", session.id)
        else:
            _logger.warning(
                "Recording delivery failed: session=%s error=%s",
                session.id,
                result.error,
            )

    async def _abandon_capture(self, session: RecordingSession) -> None:
        async with self._capture_lock:
            if not self._capturing:
                return
            self._capturing = False
            try:
                await self.capture.stop()
            except Exception:
                _logger.exception("Audio capture failed to stop")
                return
        _logger.info("Capture discarded after disconnect: session=%s", session.id)
