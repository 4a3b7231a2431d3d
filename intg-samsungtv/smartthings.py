"""
SmartThings Cloud API fallback.

Drives the TV through its cloud registration when it is enabled in the
configuration: health (power state cross-check), input sources and capability
commands. Independent of the local WebSocket session.

Devices, status and commands go through ``pysmartthings``. The device health
endpoint is not covered by it and is a plain request on the same session.
"""

import contextlib
import logging
import ssl
from typing import Any, AsyncIterator, Awaitable, Callable

import aiohttp
import certifi
from const import SMARTTHINGS_API, SMARTTHINGS_TIMEOUT, SamsungConfig
from errors import ErrorKind, SamsungTvError, classify_exception, classify_http_status
from pysmartthings import (
    Attribute,
    Capability,
    Command,
    Device,
    SmartThings,
    SmartThingsAuthenticationFailedError,
    SmartThingsCommandError,
    SmartThingsConnectionError,
    Status,
)

_LOG = logging.getLogger(__name__)


async def raise_for_cloud_status(response: aiohttp.ClientResponse) -> None:
    """
    Raise a classified error for a failed SmartThings answer.

    401 and 422 are left to pysmartthings, which maps them to its own
    exceptions. Used as ``raise_for_status`` of the cloud session.
    """
    if response.status < 400 or response.status in (401, 422):
        return
    message = None
    with contextlib.suppress(ValueError, KeyError, TypeError, aiohttp.ClientError):
        message = (await response.json(content_type=None))["error"]["message"]
    error = classify_http_status(response.status, message)
    raise SamsungTvError(error.kind, message or str(error), status=response.status)


class SmartThingsClient:
    """Client of the SmartThings Cloud API for one TV."""

    def __init__(
        self, config: SamsungConfig, session: aiohttp.ClientSession | None = None
    ) -> None:
        """
        Create instance.

        :param config: device configuration
        :param session: optional aiohttp session, created with
                        ``raise_for_status=raise_for_cloud_status``
        """
        self._config = config
        self._session = session
        self._tv_device_id: str | None = None

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self._config.log_id

    @property
    def enabled(self) -> bool:
        """Return True if the cloud fallback is configured."""
        return bool(self._config.smartthings and self._config.smartthings_token)

    @property
    def tv_device_id(self) -> str | None:
        """Return the cached SmartThings device id of the TV."""
        return self._tv_device_id

    def clear(self) -> None:
        """Forget the cached device, e.g. after the address or token changed."""
        self._tv_device_id = None

    def get_token(self) -> str:
        """
        Return the bearer token from the configuration.

        :raises SamsungTvError: ``CLOUD_NOT_ENABLED`` or ``CLOUD_NO_TOKEN``
        """
        if not self._config.smartthings:
            raise SamsungTvError(ErrorKind.CLOUD_NOT_ENABLED, "SmartThings is not enabled")
        if not self._config.smartthings_token:
            raise SamsungTvError(ErrorKind.CLOUD_NO_TOKEN, "No SmartThings token configured")
        return self._config.smartthings_token

    @contextlib.asynccontextmanager
    async def _client_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
        else:
            # Use certifi CA bundle for SSL verification
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            async with aiohttp.ClientSession(
                connector=connector, raise_for_status=raise_for_cloud_status
            ) as session:
                yield session

    async def _call(self, action: str, call: Callable[[SmartThings], Awaitable[Any]]) -> Any:
        token = self.get_token()
        try:
            async with self._client_session() as session:
                api = SmartThings(session=session, request_timeout=SMARTTHINGS_TIMEOUT)
                api.authenticate(token)
                return await call(api)
        except SamsungTvError as err:
            _LOG.info("[%s] %s failed: %s", self.log_id, action, err)
            raise
        except SmartThingsAuthenticationFailedError as err:
            _LOG.info("[%s] %s failed: invalid token", self.log_id, action)
            raise SamsungTvError(
                ErrorKind.CLOUD_TOKEN_INVALID, "The SmartThings token is invalid", status=401
            ) from err
        except SmartThingsCommandError as err:
            _LOG.info("[%s] %s failed: %s", self.log_id, action, err)
            raise SamsungTvError(
                ErrorKind.HTTP_OTHER, f"{action} failed: {err}", status=422
            ) from err
        except SmartThingsConnectionError as err:
            _LOG.info("[%s] %s failed: %s", self.log_id, action, err)
            raise classify_exception(err.__cause__ or err) from err
        except Exception as err:  # pylint: disable=broad-exception-caught
            _LOG.info("[%s] %s failed: %s", self.log_id, action, err)
            raise classify_exception(err) from err

    async def devices(self, capability: Capability | None = None) -> list[Device]:
        """Return the devices of the SmartThings account, optionally filtered by capability."""
        capabilities = [capability] if capability else None
        return await self._call(
            "Fetching devices", lambda api: api.get_devices(capabilities=capabilities)
        )

    async def get_st_tv_device(self) -> str:
        """
        Return the device id of the TV, resolved once and cached.

        The first device offering the TV channel capability is used.

        :raises SamsungTvError: ``CLOUD_NO_TV_FOUND`` if the account has no TV
        """
        if self._tv_device_id:
            return self._tv_device_id

        tv_devices = [
            device.device_id
            for device in await self.devices(Capability.TV_CHANNEL)
            if _has_capability(device, Capability.TV_CHANNEL)
        ]
        if not tv_devices:
            raise SamsungTvError(ErrorKind.CLOUD_NO_TV_FOUND, "No TV found in SmartThings")

        # Just support one TV for now
        self._tv_device_id = tv_devices[0]
        _LOG.info("[%s] Found SmartThings device %s", self.log_id, self._tv_device_id)
        return self._tv_device_id

    async def get_health(self) -> bool | None:
        """
        Return True if the cloud reports the TV online, False if it does not.

        Returns None if the health could not be determined.
        """
        try:
            device_id = await self.get_st_tv_device()
            token = self.get_token()
            async with self._client_session() as session:
                async with session.request(
                    "GET",
                    f"{SMARTTHINGS_API}/devices/{device_id}/health",
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=aiohttp.ClientTimeout(total=SMARTTHINGS_TIMEOUT),
                ) as response:
                    status = response.status
                    data = await response.json(content_type=None)
        except SamsungTvError as err:
            _LOG.debug("[%s] SmartThings health unavailable: %s", self.log_id, err)
            return None
        except Exception as err:  # pylint: disable=broad-exception-caught
            _LOG.debug("[%s] SmartThings health unavailable: %s", self.log_id, err)
            return None
        if status != 200 or not isinstance(data, dict):
            _LOG.debug("[%s] SmartThings health failed (%s): %s", self.log_id, status, data)
            return None
        online = data.get("state") == "ONLINE"
        _LOG.debug("[%s] SmartThings health: %s", self.log_id, online)
        return online

    async def get_status(self) -> dict[str, dict[Capability, dict[Attribute, Status]]]:
        """Return the status of the TV per component."""
        device_id = await self.get_st_tv_device()
        return await self._call(
            "Fetching status", lambda api: api.get_device_status(device_id)
        )

    async def get_input_sources(self) -> list[str]:
        """Return the input sources the TV supports, empty if unavailable."""
        try:
            components = await self.get_status()
            sources = components["main"][Capability.MEDIA_INPUT_SOURCE][
                Attribute.SUPPORTED_INPUT_SOURCES
            ].value
        except (SamsungTvError, KeyError, TypeError) as err:
            _LOG.info("[%s] Fetching input sources failed: %s", self.log_id, err)
            return []
        return list(sources or [])

    async def execute_command(
        self,
        capability: Capability,
        command: Command,
        arguments: list[Any] | None = None,
        component: str = "main",
    ) -> None:
        """Send one capability command to the TV."""
        device_id = await self.get_st_tv_device()
        _LOG.info(
            "[%s] SmartThings command: %s.%s %s", self.log_id, capability, command, arguments
        )
        await self._call(
            f"Command {capability}.{command}",
            lambda api: api.execute_device_command(
                device_id, capability, command, component, argument=arguments
            ),
        )

    async def set_input_source(self, source: str) -> None:
        """Switch the TV to an input source."""
        await self.execute_command(
            Capability.MEDIA_INPUT_SOURCE, Command.SET_INPUT_SOURCE, [source]
        )

    async def switch(self, on: bool) -> None:
        """Turn the TV on or off through the switch capability."""
        await self.execute_command(Capability.SWITCH, Command.ON if on else Command.OFF)


def _has_capability(device: Device, capability: Capability) -> bool:
    return any(capability in component.capabilities for component in device.components)
