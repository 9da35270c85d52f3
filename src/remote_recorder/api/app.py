"""FastAPI application factory."""

import asyncio
import base64
import binascii
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import JSONResponse

from remote_recorder.api.session_models import (
    AudioEmailRequest,
    CreateSessionRequest,
    JoinSessionRequest,
    SessionPayload,
    TransitionRequest,
)
from remote_recorder.app_logging import configure_logging
from remote_recorder.containers import AppContainer
from remote_recorder.domain.delivery import AudioArtifact
from remote_recorder.domain.errors import (
    CoordinationError,
    InvalidOrAlreadyBoundCode,
    InvalidTransition,
    JoinCodeTaken,
    SessionNotFound,
    StoreUnavailable,
    SubscriptionLost,
    UnauthorizedDevice,
)
from remote_recorder.domain.sessions import RecordingSession

_SESSION_NOT_FOUND_CLOSE = 4404
_FEED_LOST_CLOSE = 1011


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        body: CreateSessionRequest, request: Request
    ) -> SessionPayload:
        """Create a waiting session for the controller device."""
        state_container: AppContainer = request.app.state.container
        try:
            session = await state_container.coordinator.create_session(body.device_id)
        except CoordinationError as exc:
            raise _http_error(exc) from exc
        return SessionPayload.from_session(session)

    @app.post("/sessions/join")
    async def join_session(body: JoinSessionRequest, request: Request) -> SessionPayload:
        """Bind a recorder device to the session holding the join code."""
        state_container: AppContainer = request.app.state.container
        try:
            session = await state_container.coordinator.join_session(
                body.join_code, body.device_id
            )
        except CoordinationError as exc:
            raise _http_error(exc) from exc
        return SessionPayload.from_session(session)

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> SessionPayload:
        """Return the current session record."""
        state_container: AppContainer = request.app.state.container
        try:
            session = await state_container.coordinator.get_session(session_id)
        except CoordinationError as exc:
            raise _http_error(exc) from exc
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
            )
        return SessionPayload.from_session(session)

    @app.post("/sessions/{session_id}/start")
    async def start_recording(
        session_id: UUID, request: Request, body: TransitionRequest | None = None
    ) -> SessionPayload:
        """Move a connected session to recording."""
        state_container: AppContainer = request.app.state.container
        device_id = body.device_id if body else None
        try:
            session = await state_container.coordinator.start_recording(
                session_id, device_id=device_id
            )
        except CoordinationError as exc:
            raise _http_error(exc) from exc
        return SessionPayload.from_session(session)

    @app.post("/sessions/{session_id}/stop")
    async def stop_recording(
        session_id: UUID, request: Request, body: TransitionRequest | None = None
    ) -> SessionPayload:
        """Move a recording session to finished."""
        state_container: AppContainer = request.app.state.container
        device_id = body.device_id if body else None
        try:
            session = await state_container.coordinator.stop_recording(
                session_id, device_id=device_id
            )
        except CoordinationError as exc:
            raise _http_error(exc) from exc
        return SessionPayload.from_session(session)

    @app.websocket("/sessions/{session_id}/feed")
    async def session_feed(websocket: WebSocket, session_id: UUID) -> None:
        """Push the session record, then every committed update, to the client."""
        state_container: AppContainer = websocket.app.state.container
        await websocket.accept()
        updates: asyncio.Queue[RecordingSession | None] = asyncio.Queue()

        def handle_lost(error: SubscriptionLost) -> None:
            logger.warning("%s", error)
            updates.put_nowait(None)

        handle = await state_container.change_feed.subscribe(
            session_id, updates.put_nowait, handle_lost
        )
        watcher = asyncio.create_task(_watch_disconnect(websocket, updates))
        try:
            current = await state_container.coordinator.get_session(session_id)
            if current is None:
                await websocket.close(code=_SESSION_NOT_FOUND_CLOSE)
                return
            await websocket.send_json(
                SessionPayload.from_session(current).model_dump(mode="json")
            )
            while True:
                session = await updates.get()
                if session is None:
                    if not watcher.done():
                        await websocket.close(code=_FEED_LOST_CLOSE)
                    return
                await websocket.send_json(
                    SessionPayload.from_session(session).model_dump(mode="json")
                )
        except (WebSocketDisconnect, StoreUnavailable):
            return
        finally:
            watcher.cancel()
            await state_container.change_feed.unsubscribe(handle)

    @app.post("/delivery/audio-email")
    async def deliver_audio_email(
        body: AudioEmailRequest, request: Request
    ) -> JSONResponse:
        """Email a finished recording to the configured recipients."""
        state_container: AppContainer = request.app.state.container
        delivery_service = state_container.delivery_service
        if delivery_service is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Delivery is not configured",
            )
        try:
            content = base64.b64decode(body.audio_data, validate=True)
        except binascii.Error as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="audioData is not valid base64",
            ) from exc
        result = await delivery_service.deliver(
            AudioArtifact(content=content), body.duration, body.timestamp
        )
        if not result.success:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": result.error},
            )
        return JSONResponse(
            content={
                "success": True,
                "message": "Email sent",
                "emailId": result.message_id,
            }
        )

    return app


async def _watch_disconnect(
    websocket: WebSocket, updates: "asyncio.Queue[RecordingSession | None]"
) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    finally:
        updates.put_nowait(None)


def _http_error(exc: CoordinationError) -> HTTPException:
    if isinstance(exc, SessionNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(
        exc, InvalidOrAlreadyBoundCode | InvalidTransition | JoinCodeTaken
    ):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, UnauthorizedDevice):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, StoreUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
