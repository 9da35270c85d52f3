"""Client-side view of a session as a tagged variant."""

from dataclasses import dataclass, replace

from remote_recorder.domain.sessions import RecordingSession, SessionStatus


@dataclass(frozen=True)
class Uninitialized:
    """No session is bound to this client."""


@dataclass(frozen=True)
class Waiting:
    """Session created, no recorder yet."""

    session: RecordingSession
    stale: bool = False


@dataclass(frozen=True)
class Connected:
    """Recorder bound, recording not started."""

    session: RecordingSession
    stale: bool = False


@dataclass(frozen=True)
class Recording:
    """Recording in progress."""

    session: RecordingSession
    stale: bool = False


@dataclass(frozen=True)
class Finished:
    """Recording stopped; the session accepts no more transitions."""

    session: RecordingSession
    stale: bool = False


SessionView = Uninitialized | Waiting | Connected | Recording | Finished
BoundView = Waiting | Connected | Recording | Finished

_VIEW_BY_STATUS: dict[SessionStatus, type[BoundView]] = {
    SessionStatus.WAITING: Waiting,
    SessionStatus.CONNECTED: Connected,
    SessionStatus.RECORDING: Recording,
    SessionStatus.FINISHED: Finished,
}


def view_for(session: RecordingSession, stale: bool = False) -> BoundView:
    """Return the view variant matching the session status."""
    return _VIEW_BY_STATUS[session.status](session=session, stale=stale)


def mark_stale(view: SessionView) -> SessionView:
    """Flag a bound view as stale; an unbound view has nothing to flag."""
    if isinstance(view, Uninitialized):
        return view
    return replace(view, stale=True)
