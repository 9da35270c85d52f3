"""Supabase Realtime change feed for recording sessions."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from supabase import AsyncClient

from remote_recorder.adapters.supabase_session_store import session_from_row
from remote_recorder.domain.errors import SubscriptionLost
from remote_recorder.services.feed import (
    ChangeFeed,
    LostHandler,
    SubscriptionHandle,
    UpdateHandler,
)

_LOST_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseChangeFeed(ChangeFeed):
    """Change feed over Supabase ``postgres_changes`` channels.

    Each subscription opens its own channel filtered on the session id.
    """

    client: AsyncClient
    table: str = "recording_sessions"
    schema: str = "public"
    _channels: dict[UUID, object] = field(default_factory=dict, repr=False)

    async def subscribe(
        self,
        session_id: UUID,
        on_update: UpdateHandler,
        on_lost: LostHandler | None = None,
    ) -> SubscriptionHandle:
        """Open a realtime channel for one session."""
        handle = SubscriptionHandle(id=uuid4(), session_id=session_id)
        channel = self.client.channel(f"recording-session:{session_id}:{handle.id}")

        def handle_change(payload: Mapping[str, object]) -> None:
            row = extract_record(payload)
            if row is None:
                _logger.warning("Realtime payload without record: %s", payload)
                return
            on_update(session_from_row(row))

        def handle_status(state: object, error: Exception | None = None) -> None:
            name = str(getattr(state, "value", state))
            _logger.info("Realtime channel %s: %s", session_id, name)
            if name not in _LOST_STATES or handle.id not in self._channels:
                return
            self._channels.pop(handle.id, None)
            if on_lost is not None:
                reason = str(error) if error is not None else name
                on_lost(SubscriptionLost(session_id, reason))

        channel.on_postgres_changes(
            "UPDATE",
            callback=handle_change,
            schema=self.schema,
            table=self.table,
            filter=f"id=eq.{session_id}",
        )
        self._channels[handle.id] = channel
        try:
            await channel.subscribe(handle_status)
        except Exception as exc:
            self._channels.pop(handle.id, None)
            raise SubscriptionLost(session_id, str(exc)) from exc
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Close the channel behind a subscription."""
        channel = self._channels.pop(handle.id, None)
        if channel is None:
            return
        await self.client.remove_channel(channel)


def extract_record(payload: Mapping[str, object]) -> Mapping[str, object] | None:
    """Pull the new row out of a ``postgres_changes`` payload."""
    data = payload.get("data")
    if isinstance(data, Mapping):
        record = data.get("record")
        if isinstance(record, Mapping):
            return record
    record = payload.get("new") or payload.get("record")
    if isinstance(record, Mapping):
        return record
    return None
