"""SmartThings API client used once an access token is available."""

from smartthings_oauth.src.service_client.devices import Device, SmartThingsClient
from smartthings_oauth.src.service_client.exceptions import (
    SmartThingsAPIError,
    sanitize_exceptions,
)

__all__ = ["Device", "SmartThingsAPIError", "SmartThingsClient", "sanitize_exceptions"]
