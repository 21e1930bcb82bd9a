"""
Client for the SmartThings device API.

Consumes an OAuth access token obtained through the login flow. Callers
must make sure the user is authenticated before constructing a client.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.service_client.exceptions import sanitize_exceptions

DEFAULT_BASE_URL = "https://api.smartthings.com/v1"
DEFAULT_TIMEOUT = 30.0


@dataclass
class Device:
    """A SmartThings device as returned by the device list API."""

    device_id: str
    name: str = ""
    label: str = ""
    type: str = ""
    manufacturer_name: str = ""
    room_id: str = ""
    components: list[dict[str, Any]] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.label or self.name or self.device_id

    @classmethod
    def from_dict(cls, data: dict) -> "Device":
        """Create from an API ``items`` entry."""
        return cls(
            device_id=data["deviceId"],
            name=data.get("name") or "",
            label=data.get("label") or "",
            type=data.get("type") or "",
            manufacturer_name=data.get("manufacturerName") or "",
            room_id=data.get("roomId") or "",
            components=data.get("components") or [],
        )


class SmartThingsClient:
    """
    Client for reading devices from the SmartThings REST API.

    Args:
        access_token (str): OAuth access token of the authenticated user.
        base_url (str): API base URL.
        timeout (float): Request timeout in seconds.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str) -> Any:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.base_url}{path}", headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

    @sanitize_exceptions
    async def list_devices(self) -> list[Device]:
        """
        List all devices visible to the authenticated user.

        Returns:
            list[Device]: Devices from the ``items`` array of the response.
        """
        log.info("Listing SmartThings devices")
        data = await self._get("/devices")
        try:
            devices = [Device.from_dict(item) for item in data.get("items", [])]
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"failed to parse device list: {e}") from e
        log.info("Found %d devices", len(devices))
        return devices
