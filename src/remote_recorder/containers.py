"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import AsyncClient

from remote_recorder.adapters.memory_session_store import InMemorySessionStore
from remote_recorder.adapters.resend_email_sender import HttpxResendEmailSender
from remote_recorder.adapters.supabase_change_feed import SupabaseChangeFeed
from remote_recorder.adapters.supabase_session_store import SupabaseSessionStore
from remote_recorder.config import Settings, parse_recipients
from remote_recorder.services.coordinator import SessionCoordinator, SessionStore
from remote_recorder.services.delivery import DeliveryClient, EmailDeliveryService
from remote_recorder.services.feed import ChangeFeed, InMemoryChangeFeed


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: SessionStore
    change_feed: ChangeFeed
    coordinator: SessionCoordinator
    delivery_service: DeliveryClient | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    session_store, change_feed, supabase_client = _build_session_backend(
        resolved_settings
    )
    coordinator = SessionCoordinator(
        store=session_store,
        join_code_length=resolved_settings.join_code_length,
    )

    email_sender: HttpxResendEmailSender | None = None
    delivery_service: DeliveryClient | None = None
    recipients = parse_recipients(resolved_settings.delivery_recipients)
    if resolved_settings.resend_api_key and recipients:
        email_sender = HttpxResendEmailSender.create(
            api_key=resolved_settings.resend_api_key,
            base_url=resolved_settings.resend_base_url,
        )
        delivery_service = EmailDeliveryService(
            sender=email_sender,
            from_address=resolved_settings.delivery_from,
            recipients=recipients,
        )

    async def close_resources() -> None:
        if supabase_client is not None:
            await supabase_client.remove_all_channels()
        if email_sender is not None:
            await email_sender.close()

    return AppContainer(
        settings=resolved_settings,
        session_store=session_store,
        change_feed=change_feed,
        coordinator=coordinator,
        delivery_service=delivery_service,
        close_resources=close_resources,
    )


def _build_session_backend(
    settings: Settings,
) -> tuple[SessionStore, ChangeFeed, AsyncClient | None]:
    if settings.session_backend == "memory":
        feed = InMemoryChangeFeed()
        return InMemorySessionStore(feed=feed), feed, None
    if settings.session_backend != "supabase":
        raise RuntimeError(f"Unknown session backend: {settings.session_backend}")
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("Supabase backend requires SUPABASE_URL and key")
    client = AsyncClient(settings.supabase_url, settings.supabase_service_key)
    store = SupabaseSessionStore(client, table=settings.sessions_table)
    feed = SupabaseChangeFeed(client, table=settings.sessions_table)
    return store, feed, client
