"""HTTP client for the service's audio delivery endpoint."""

import base64
import logging
from dataclasses import dataclass
from datetime import datetime

import httpx

from remote_recorder.domain.delivery import AudioArtifact, DeliveryResult
from remote_recorder.services.delivery import DeliveryClient

_logger = logging.getLogger(__name__)


@dataclass
class HttpxDeliveryClient(DeliveryClient):
    """Posts finished recordings to ``/delivery/audio-email``."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxDeliveryClient":
        """Create a delivery client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def deliver(
        self, artifact: AudioArtifact, duration_seconds: int, timestamp: datetime
    ) -> DeliveryResult:
        """Upload the recording; transport failures become a failed result."""
        payload = {
            "audioData": base64.b64encode(artifact.content).decode("ascii"),
            "duration": duration_seconds,
            "timestamp": timestamp.isoformat(),
        }
        try:
            response = await self.http_client.post(
                f"{self.base_url}/delivery/audio-email", json=payload, timeout=60
            )
        except httpx.HTTPError as exc:
            _logger.exception("Delivery request failed")
            return DeliveryResult(success=False, error=str(exc))
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_success and body.get("success"):
            return DeliveryResult(success=True, message_id=body.get("emailId"))
        error = body.get("error") or body.get("detail") or f"HTTP {response.status_code}"
        return DeliveryResult(success=False, error=str(error))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
