"""Per-process device identity."""

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class DeviceIdentity:
    """Opaque identifier of one client process."""

    device_id: str

    @classmethod
    def generate(cls) -> "DeviceIdentity":
        """Create a fresh random identity for this process lifetime."""
        return cls(device_id=str(uuid4()))

    def owns(self, device_id: str | None) -> bool:
        """Whether a device id recorded on a session is this device."""
        return device_id is not None and device_id == self.device_id
