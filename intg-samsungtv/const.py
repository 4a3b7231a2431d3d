"""Samsung TV remote-control client constants."""

from dataclasses import dataclass
from enum import IntEnum


@dataclass
class SamsungConfig:
    """Samsung device configuration."""

    identifier: str
    """Unique identifier of the device."""
    name: str
    """Friendly name of the device."""
    address: str
    """IP Address of device"""
    port: int = 8001
    """Port of the local API (8001 plain, 8002 TLS)."""
    token: str | None = None
    """Token for connection to device."""
    token_auth_support: bool = False
    """True if the device pairs with the token handshake (wss on port 8002)."""
    frame_tv_support: bool = False
    """True if the device supports art mode (Frame TVs only)."""
    mac_address: str | None = None
    """MAC Address of device"""

    client_name: str = "Samsung Remote"
    """Name announced to the TV when connecting."""
    client_address: str | None = None
    """Local address announced to the TV in art mode requests."""
    delay_keys: int = 100
    """Delay in ms between keys of a key sequence."""
    delay_channel_keys: int = 1250
    """Delay in ms between the digits of a channel number."""
    api_timeout: int = 2000
    """Deadline in ms for one-shot HTTP calls to the TV."""
    model_name: str | None = None
    """Model name reported by the device, fetched once."""

    smartthings: bool = False
    """True if the SmartThings Cloud API fallback is enabled."""
    smartthings_token: str | None = None
    """Bearer token for the SmartThings Cloud API."""

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self.name if self.name else self.identifier


class ConnectionState(IntEnum):
    """Lifecycle state of the remote control WebSocket."""

    CLOSED = 0
    CONNECTING = 1
    OPEN = 2


# Sent when the user does not answer the access prompt; samsungtvws.event has no name for it
MS_CHANNEL_TIMEOUT_EVENT = "ms.channel.timeOut"

WS_CHANNEL_PATH = "/api/v2/channels/samsung.remote.control"
WS_PORT = 8001
WSS_PORT = 8002

IDLE_TIMEOUT = 120.0
"""Seconds without traffic before the remote control socket is closed."""
CONNECT_TIMEOUT = 3.0
"""Seconds to wait for the connect acknowledgement when a token is present."""
PAIRING_CONNECT_TIMEOUT = 30.0
"""Seconds to wait for the user to approve the first connection on the TV."""

HTTP_OK_STATUSES = (200, 201)

DIAL_PORT = 8080
YOUTUBE_PATH = "/ws/apps/YouTube"
BROWSER_APP_ID = "org.tizen.browser"

POWER_OFF_HOLD_MS = 5000
DEFAULT_HOLD_MS = 1000

WOL_ATTEMPTS = 8
WOL_INTERVAL = 2.0
"""Seconds between magic packets while waiting for the TV to answer."""

"""Legacy PIN pairing constants."""

PAIRING_PORT = 8080
PAIRING_APP_ID = "721b6fce-4ee6-48ba-8045-955a539edadb"
PIN_PAGE_PATH = "/ws/apps/CloudPINPage"
PAIRING_PATH = "/ws/pairing"

"""SmartThings Cloud API constants."""

SMARTTHINGS_API = "https://api.smartthings.com/v1"
SMARTTHINGS_TIMEOUT = 10.0
