"""
Messages of the Samsung TV remote control channel.

Every message is a JSON object with a ``method`` selecting the sub-protocol
(``ms.remote.control`` or ``ms.channel.emit``) and a ``params`` object.
The TV sends no reply correlated to a message.

Keys, text input, the app list and app launch come from ``samsungtvws``.
Pointer control, the browser launch and art mode are built here on its
command classes.
"""

import json
import time
import uuid

from const import BROWSER_APP_ID
from samsungtvws.command import SamsungTVCommand
from samsungtvws.helper import serialize_string
from samsungtvws.remote import (
    ChannelEmitCommand,
    RemoteControlCommand,
    SendInputEnd,
    SendInputString,
    SendRemoteKey,
)

__all__ = [
    "ChannelEmitCommand",
    "ProcessMouseDevice",
    "RemoteControlCommand",
    "SamsungTVCommand",
    "SendInputEnd",
    "SendInputString",
    "SendRemoteKey",
    "art_mode",
    "launch_browser",
    "serialize_string",
]


class ProcessMouseDevice(RemoteControlCommand):
    """Pointer control."""

    @staticmethod
    def move(x: int, y: int, timestamp: int | None = None) -> "ProcessMouseDevice":
        """Move the pointer to an absolute position."""
        return ProcessMouseDevice(
            {
                "Cmd": "Move",
                "Position": {
                    "x": x,
                    "y": y,
                    "Time": timestamp if timestamp is not None else int(time.time() * 1000),
                },
                "TypeOfRemote": "ProcessMouseDevice",
            }
        )

    @staticmethod
    def left_click() -> "ProcessMouseDevice":
        """Click the left pointer button."""
        return ProcessMouseDevice({"Cmd": "LeftClick", "TypeOfRemote": "ProcessMouseDevice"})

    @staticmethod
    def right_click() -> "ProcessMouseDevice":
        """Click the right pointer button."""
        return ProcessMouseDevice({"Cmd": "RightClick", "TypeOfRemote": "ProcessMouseDevice"})


def launch_browser(url: str) -> ChannelEmitCommand:
    """Open the built-in browser on the given URL."""
    return ChannelEmitCommand.launch_app(BROWSER_APP_ID, "NATIVE_LAUNCH", url)


def art_mode(
    on: bool,
    client_name: str,
    client_address: str | None = None,
    request_id: str | None = None,
) -> ChannelEmitCommand:
    """Switch art mode of a Frame TV on or off."""
    return ChannelEmitCommand(
        {
            "event": "art_app_request",
            "to": "host",
            "clientIp": client_address,
            "deviceName": serialize_string(client_name),
            "data": json.dumps(
                {
                    "id": request_id or str(uuid.uuid4()),
                    "value": "on" if on else "off",
                    "request": "set_artmode_status",
                }
            ),
        }
    )
