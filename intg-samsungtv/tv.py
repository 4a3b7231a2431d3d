"""
This module implements the Samsung TV remote-control client.

:class:`SamsungTv` composes the remote control connection, the command queue,
the local REST API, pairing and the SmartThings fallback behind one call/await
interface.
"""

import asyncio
import logging
from enum import StrEnum
from typing import Any

import aiohttp
import commands
import wakeonlan
from commands import (
    ChannelEmitCommand,
    ProcessMouseDevice,
    SamsungTVCommand,
    SendInputEnd,
    SendInputString,
    SendRemoteKey,
)
from connection import CommandQueue, SamsungConnection
from const import (
    DEFAULT_HOLD_MS,
    IDLE_TIMEOUT,
    POWER_OFF_HOLD_MS,
    WOL_ATTEMPTS,
    WOL_INTERVAL,
    ConnectionState,
    SamsungConfig,
)
from errors import ErrorKind, SamsungTvError
from pairing import PinPairing, TokenPairing
from rest import SamsungRest
from smartthings import SmartThingsClient

_LOG = logging.getLogger(__name__)


class PowerState(StrEnum):
    """Power state of the TV."""

    OFF = "OFF"
    ON = "ON"


class SamsungTv:
    """Representing a Samsung TV Device."""

    def __init__(
        self,
        device_config: SamsungConfig,
        config_manager=None,
        session: aiohttp.ClientSession | None = None,
        cloud_session: aiohttp.ClientSession | None = None,
        idle_timeout: float = IDLE_TIMEOUT,
    ) -> None:
        """
        Create instance.

        :param device_config: configuration, shared by reference with the caller
        :param config_manager: settings owner, ``update(config)`` is called when a
                               persisted field (token, model name) changes
        :param session: optional aiohttp session for the local API, created with
                        ``raise_for_status=True``
        :param cloud_session: optional aiohttp session for the SmartThings API, created
                              with ``raise_for_status=raise_for_cloud_status``
        :param idle_timeout: seconds without traffic before the socket is closed
        """
        self._device_config = device_config
        self._config_manager = config_manager
        self._connection = SamsungConnection(
            device_config, config_manager, session, idle_timeout
        )
        self._queue = CommandQueue(self._connection)
        self._rest = SamsungRest(device_config, session)
        self._token_pairing = TokenPairing(device_config, session)
        self._pin_pairing = PinPairing(device_config, self._rest)
        self._smartthings = SmartThingsClient(device_config, cloud_session)
        self._current_app: str | None = None
        self._power_state: PowerState | None = None

    @property
    def device_config(self) -> SamsungConfig:
        """Return the device configuration."""
        return self._device_config

    @property
    def identifier(self) -> str:
        """Return the device identifier."""
        if not self._device_config.identifier:
            raise ValueError("Instance not initialized, no identifier available")
        return self._device_config.identifier

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self._device_config.log_id

    @property
    def name(self) -> str:
        """Return the device name."""
        return self._device_config.name

    @property
    def address(self) -> str | None:
        """Return the device address."""
        return self._device_config.address

    @property
    def connection(self) -> SamsungConnection:
        """Return the remote control connection."""
        return self._connection

    @property
    def connection_state(self) -> ConnectionState:
        """Return the lifecycle state of the remote control connection."""
        return self._connection.state

    @property
    def pin_pairing(self) -> PinPairing:
        """Return the PIN challenge pairing of legacy TVs."""
        return self._pin_pairing

    @property
    def smartthings(self) -> SmartThingsClient:
        """Return the SmartThings Cloud API client."""
        return self._smartthings

    @property
    def power_state(self) -> PowerState:
        """Return the last polled power state."""
        if self._power_state is None:
            return PowerState.OFF
        return self._power_state

    @property
    def current_app(self) -> str | None:
        """Return the application last launched through this client."""
        return self._current_app

    @property
    def app_catalog(self) -> dict[str, str]:
        """Return the installed applications (app id to name)."""
        return self._connection.app_catalog

    @property
    def apps(self) -> list[dict[str, str]]:
        """Return the installed applications sorted by name."""
        return sorted(
            ({"appId": app_id, "name": name} for app_id, name in self.app_catalog.items()),
            key=lambda app: app["name"].lower(),
        )

    def check_client_connected(self) -> bool:
        """Check if the remote control socket is open."""
        return self._connection.is_alive()

    async def close(self) -> None:
        """Close the connection."""
        await self._connection.close()

    async def send_command(self, command: SamsungTVCommand) -> None:
        """Queue one message on the remote control channel."""
        await self._queue.submit(command)

    # Remote buttons

    async def send_key(self, key: str, cmd: str = "Click") -> None:
        """Send a key to the TV."""
        match cmd:
            case "Press":
                await self.send_command(SendRemoteKey.press(key))
            case "Release":
                await self.send_command(SendRemoteKey.release(key))
            case _:
                await self.send_command(SendRemoteKey.click(key))

    async def hold_key(self, key: str, delay: int = DEFAULT_HOLD_MS) -> None:
        """Hold a key for ``delay`` ms."""
        await self.send_command(SendRemoteKey.press(key))
        await asyncio.sleep(delay / 1000)
        await self.send_command(SendRemoteKey.release(key))

    async def send_keys(self, keys: list[str], delay: int | None = None) -> None:
        """Send several keys, spaced by the configured key delay."""
        if delay is None:
            delay = self._device_config.delay_keys
        for index, key in enumerate(keys):
            if index:
                await asyncio.sleep(delay / 1000)
            await self.send_key(key)

    async def set_channel(self, channel: int | str) -> None:
        """Tune to a channel number by typing its digits."""
        digits = [f"KEY_{digit}" for digit in str(channel) if digit.isdigit()]
        if not digits:
            raise ValueError(f"Invalid channel: {channel}")
        await self.send_keys(digits + ["KEY_ENTER"], self._device_config.delay_channel_keys)

    async def turn_off(self) -> None:
        """Turn the TV off; Frame TVs ignore a short press of the power key."""
        if self._device_config.frame_tv_support:
            await self.hold_key("KEY_POWER", POWER_OFF_HOLD_MS)
        else:
            await self.send_key("KEY_POWER")

    async def turn_on(
        self, attempts: int = WOL_ATTEMPTS, interval: float = WOL_INTERVAL
    ) -> PowerState:
        """
        Power on the TV.

        Sends Wake-on-LAN magic packets to the configured MAC address until the
        local REST API answers. Without a MAC address the SmartThings switch
        capability is used.

        :raises SamsungTvError: ``CAPABILITY_UNSUPPORTED`` if neither is configured
        """
        mac_address = self._device_config.mac_address
        if not mac_address:
            if not self._smartthings.enabled:
                raise SamsungTvError(
                    ErrorKind.CAPABILITY_UNSUPPORTED,
                    "Power on requires a MAC address or SmartThings",
                )
            await self._smartthings.switch(True)
            self._power_state = PowerState.ON
            return self._power_state

        _LOG.debug("[%s] Starting Wake-on-LAN sequence", self.log_id)
        for i in range(attempts):
            _LOG.debug("[%s] Sending magic packet (%s/%s)", self.log_id, i + 1, attempts)
            wakeonlan.wake(mac_address)
            await asyncio.sleep(interval)
            if await self.api_active():
                _LOG.debug("[%s] TV powered on successfully", self.log_id)
                self._power_state = PowerState.ON
                return self._power_state

        _LOG.warning("[%s] Unable to wake TV after %s attempts", self.log_id, attempts)
        self._power_state = PowerState.OFF
        return self._power_state

    # Pointer and text

    async def mouse_move(self, x: int, y: int) -> None:
        """Move the pointer to an absolute position."""
        await self.send_command(ProcessMouseDevice.move(x, y))

    async def mouse_click(self, left: bool = True) -> None:
        """Click a pointer button."""
        if left:
            await self.send_command(ProcessMouseDevice.left_click())
        else:
            await self.send_command(ProcessMouseDevice.right_click())

    async def send_text(self, text: str) -> None:
        """
        Type text into the focused input field.

        Success only confirms transmission; the TV does not acknowledge input.
        """
        await self.send_command(SendInputString.send(text))
        await self.send_command(SendInputEnd())

    # Applications

    async def get_list_of_apps(self) -> None:
        """
        Ask the TV for the installed applications.

        The list arrives later as an event and replaces :attr:`app_catalog`.
        """
        await self.send_command(ChannelEmitCommand.get_installed_app())

    async def launch_browser(self, url: str) -> None:
        """Open the browser on the TV."""
        await self.send_command(commands.launch_browser(url))

    async def launch_youtube(self, video_id: str) -> None:
        """Play a YouTube video."""
        await self._rest.launch_youtube(video_id)

    async def get_app(self, app_id: str) -> dict[str, Any]:
        """Return the status the TV reports for an application."""
        return await self._rest.rest_app_status(app_id)

    async def is_app_running(self, app_id: str) -> bool:
        """Return True if the TV reports the application as visible."""
        try:
            data = await self.get_app(app_id)
        except SamsungTvError as err:
            _LOG.debug("[%s] App status of %s unavailable: %s", self.log_id, app_id, err)
            return False
        return bool(data.get("visible"))

    async def launch_app(self, app_id: str) -> None:
        """Launch an application and track it as the current one."""
        await self._rest.rest_app_run(app_id)
        self._current_app = app_id

    async def close_app(self, app_id: str) -> None:
        """Close an application."""
        await self._rest.rest_app_close(app_id)
        if self._current_app == app_id:
            self._current_app = None

    async def close_current_app(self) -> None:
        """
        Close the application last launched through this client.

        :raises SamsungTvError: ``NO_APP_RUNNING`` if no application is tracked,
                                ``APP_NOT_RUNNING`` if the TV no longer runs it
        """
        if not self._current_app:
            raise SamsungTvError(ErrorKind.NO_APP_RUNNING, "No app has been started")

        app_id = self._current_app
        if not await self.is_app_running(app_id):
            self._current_app = None
            raise SamsungTvError(ErrorKind.APP_NOT_RUNNING, f"App {app_id} is not running")

        self._current_app = None
        await self._rest.rest_app_close(app_id)

    # Art mode

    async def art_mode(self, on: bool) -> None:
        """Toggle ART mode on the TV."""
        if not self._device_config.frame_tv_support:
            raise SamsungTvError(
                ErrorKind.CAPABILITY_UNSUPPORTED, "Art mode requires a Frame TV"
            )
        await self.send_command(
            commands.art_mode(
                on, self._device_config.client_name, self._device_config.client_address
            )
        )

    # Device info and power state

    async def get_info(self, address: str | None = None) -> dict[str, Any]:
        """Get REST info from the TV."""
        return await self._rest.rest_device_info(address)

    async def api_active(self) -> bool:
        """Return True if the local REST API answers."""
        try:
            await self.get_info()
        except SamsungTvError as err:
            _LOG.debug("[%s] Unable to retrieve rest info: %s", self.log_id, err)
            return False
        return True

    async def poll_power_state(self) -> PowerState:
        """
        Return the power state of the TV.

        Uses the SmartThings health when enabled and conclusive, the local REST
        API otherwise. Never raises.
        """
        online = None
        if self._smartthings.enabled:
            online = await self._smartthings.get_health()
        if online is None:
            online = await self.api_active()

        self._power_state = PowerState.ON if online else PowerState.OFF
        return self._power_state

    async def fetch_model_name(self) -> str:
        """Fetch and store the model name once."""
        if self._device_config.model_name:
            return self._device_config.model_name

        model_name = "unknown"
        try:
            info = await self.get_info()
            model_name = info["device"]["modelName"]
        except (SamsungTvError, KeyError, TypeError) as err:
            _LOG.info("[%s] Fetching model name failed: %s", self.log_id, err)
        finally:
            self._device_config.model_name = model_name
            if self._config_manager:
                self._config_manager.update(self._device_config)
            _LOG.info("[%s] Model name set to: %s", self.log_id, model_name)
        return model_name

    # Pairing

    async def pair(self, retries: int = 3, delay: float = 1.0) -> str | None:
        """
        Obtain a token with the token handshake, retrying a few times.

        Does nothing if token authentication is off or a token already exists.

        :raises SamsungTvError: ``PAIRING_FAILED`` after the last attempt
        """
        if not self._device_config.token_auth_support or self._device_config.token:
            return self._device_config.token

        for attempt in range(1, retries + 1):
            try:
                token = await self._token_pairing.request_token()
            except SamsungTvError as err:
                if attempt >= retries:
                    _LOG.info("[%s] Pairing failed: %s", self.log_id, err)
                    raise
                _LOG.debug(
                    "[%s] Pairing attempt %d/%d failed: %s", self.log_id, attempt, retries, err
                )
                await asyncio.sleep(delay)
                continue
            self._connection.store_token(token)
            return token
        return None
