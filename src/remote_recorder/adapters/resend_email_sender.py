"""Resend email API adapter."""

import base64
from dataclasses import dataclass

import httpx

from remote_recorder.domain.delivery import AudioEmail
from remote_recorder.services.delivery import EmailSender


@dataclass
class HttpxResendEmailSender(EmailSender):
    """Resend client implemented with httpx."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, api_key: str, base_url: str = "https://api.resend.com"
    ) -> "HttpxResendEmailSender":
        """Create a Resend client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def send_email(self, email: AudioEmail) -> str:
        """Send an email with the recording attached."""
        payload: dict[str, object] = {
            "from": email.sender,
            "to": email.recipients,
            "subject": email.subject,
            "html": email.html,
            "attachments": [
                {
                    "filename": email.attachment_name,
                    "content": base64.b64encode(email.attachment).decode("ascii"),
                }
            ],
        }
        response = await self.http_client.post(
            f"{self.base_url}/emails",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=payload,
            timeout=30,
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise RuntimeError("Resend returned a non-JSON response") from exc
        message_id = body.get("id") if isinstance(body, dict) else None
        if not message_id:
            raise RuntimeError("Resend returned no message id")
        return str(message_id)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
