"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    session_backend: str = "supabase"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    sessions_table: str = "recording_sessions"
    join_code_length: int = 6
    resend_api_key: str | None = None
    resend_base_url: str = "https://api.resend.com"
    delivery_from: str = "Audio Recorder <onboarding@resend.dev>"
    delivery_recipients: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_recipients(raw: str | None) -> list[str]:
    """Parse comma-separated delivery recipients from env."""
    if raw is None:
        return []
    return [chunk.strip() for chunk in raw.split(",") if chunk.strip()]
