"""Errors raised by the session coordination protocol."""

from uuid import UUID

from remote_recorder.domain.sessions import SessionStatus


class CoordinationError(Exception):
    """Base class for coordination failures surfaced to the caller."""


class StoreUnavailable(CoordinationError):
    """The session store could not be reached; the whole call may be retried."""


class InvalidOrAlreadyBoundCode(CoordinationError):
    """No waiting session matches the join code."""

    def __init__(self, join_code: str) -> None:
        super().__init__(f"Join code {join_code!r} is invalid or already bound")
        self.join_code = join_code


class JoinCodeTaken(CoordinationError):
    """A waiting session already holds the join code."""

    def __init__(self, join_code: str) -> None:
        super().__init__(f"Join code {join_code!r} is already in use")
        self.join_code = join_code


class InvalidTransition(CoordinationError):
    """The session was not in the status the transition requires."""

    def __init__(
        self,
        session_id: UUID,
        attempted: SessionStatus,
        current: SessionStatus | None,
    ) -> None:
        observed = current.value if current is not None else "missing"
        super().__init__(
            f"Cannot move session {session_id} to {attempted.value} from {observed}"
        )
        self.session_id = session_id
        self.attempted = attempted
        self.current = current


class SessionNotFound(InvalidTransition):
    """The session id does not exist in the store."""

    def __init__(self, session_id: UUID, attempted: SessionStatus) -> None:
        super().__init__(session_id, attempted, None)


class UnauthorizedDevice(CoordinationError):
    """A device other than the controller attempted a controller transition."""

    def __init__(self, session_id: UUID, device_id: str) -> None:
        super().__init__(f"Device {device_id} does not control session {session_id}")
        self.session_id = session_id
        self.device_id = device_id


class SubscriptionLost(CoordinationError):
    """The change feed connection dropped; local state is stale."""

    def __init__(self, session_id: UUID, reason: str | None = None) -> None:
        message = f"Subscription to session {session_id} lost"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.session_id = session_id
