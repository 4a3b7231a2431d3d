"""
Pairing with Samsung TVs.

Two independent protocols:

* Token handshake (current models): the TV grants a token on the first
  connection to the TLS remote control channel once the user allows access.
  The normal connect flow captures rotated tokens by itself;
  :meth:`TokenPairing.request_token` performs a dedicated first pairing.
* PIN challenge (encrypted 2014/2015 models): the TV shows a PIN that the
  user types in; the PIN is exchanged for a request id and then for a session
  identity over the pairing endpoint on port 8080.
"""

import asyncio
import contextlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import aiohttp
from connection import channel_url
from const import (
    PAIRING_APP_ID,
    PAIRING_CONNECT_TIMEOUT,
    PAIRING_PATH,
    PAIRING_PORT,
    PIN_PAGE_PATH,
    SamsungConfig,
)
from errors import ErrorKind, SamsungTvError, classify_exception
from rest import SamsungRest
from samsungtvws.event import MS_CHANNEL_CONNECT_EVENT

_LOG = logging.getLogger(__name__)


class TokenPairing:
    """Obtain a token from a TV using the token handshake."""

    def __init__(
        self,
        config: SamsungConfig,
        session: aiohttp.ClientSession | None = None,
        timeout: float = PAIRING_CONNECT_TIMEOUT,
    ) -> None:
        """Create instance."""
        self._config = config
        self._session = session
        self._timeout = timeout

    @contextlib.asynccontextmanager
    async def _client_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def request_token(self) -> str:
        """
        Open a dedicated connection and wait for the TV to grant a token.

        The user has to allow access on the TV while this call waits.

        :return: the granted token
        :raises SamsungTvError: ``PAIRING_FAILED`` if no token was granted
        """
        url = channel_url(self._config, token_auth=True, with_token=False)
        _LOG.info("[%s] Pairing started", self._config.log_id)

        try:
            async with self._client_session() as session:
                ws = await asyncio.wait_for(
                    session.ws_connect(url, ssl=False, heartbeat=None), self._timeout
                )
                try:
                    msg = await ws.receive(timeout=self._timeout)
                finally:
                    await ws.close()
        except Exception as err:  # pylint: disable=broad-exception-caught
            error = classify_exception(err, self._config)
            _LOG.info("[%s] Pair error: %s", self._config.log_id, error)
            raise SamsungTvError(
                ErrorKind.PAIRING_FAILED, f"Pairing failed: {error}"
            ) from err

        if msg.type == aiohttp.WSMsgType.ERROR and isinstance(msg.data, BaseException):
            error = classify_exception(msg.data, self._config)
            _LOG.info("[%s] Pair error: %s", self._config.log_id, error)
            raise SamsungTvError(ErrorKind.PAIRING_FAILED, f"Pairing failed: {error}")

        token = None
        if msg.type == aiohttp.WSMsgType.TEXT:
            with contextlib.suppress(ValueError, AttributeError, TypeError):
                data = json.loads(msg.data)
                if data.get("event") == MS_CHANNEL_CONNECT_EVENT:
                    token = data.get("data", {}).get("token")

        if not token:
            _LOG.info("[%s] Pairing: no token granted", self._config.log_id)
            raise SamsungTvError(ErrorKind.PAIRING_FAILED, "The TV did not grant a token")

        _LOG.info("[%s] Pairing: got a token", self._config.log_id)
        return token


@dataclass
class PairingSession:
    """State of one PIN challenge between showing and hiding the PIN page."""

    pairing: "PinPairing"
    request_id: str | None = None
    identity: dict[str, Any] | None = field(default=None)

    async def confirm(self, pin: str) -> dict[str, Any]:
        """Exchange the PIN shown on the TV for a session identity."""
        self.request_id = await self.pairing.confirm_pin(pin)
        self.identity = await self.pairing.acknowledge_request_id(self.request_id)
        return self.identity


class PinPairing:
    """PIN challenge pairing of encrypted Samsung TVs."""

    def __init__(
        self,
        config: SamsungConfig,
        rest: SamsungRest | None = None,
        device_id: str | None = None,
        app_id: str = PAIRING_APP_ID,
    ) -> None:
        """Create instance."""
        self._config = config
        self._rest = rest or SamsungRest(config)
        self._device_id = device_id or str(uuid.uuid4())
        self._app_id = app_id
        self._identity: dict[str, Any] | None = None

    @property
    def identity(self) -> dict[str, Any] | None:
        """Return the identity obtained by the last successful pairing."""
        return self._identity

    @property
    def device_id(self) -> str:
        """Return the client id announced to the TV."""
        return self._device_id

    def _url(self, path: str) -> str:
        return f"http://{self._config.address}:{PAIRING_PORT}{path}"

    def _step_url(self, step: int) -> str:
        return (
            f"{self._url(PAIRING_PATH)}?step={step}"
            f"&app_id={self._app_id}&device_id={self._device_id}"
        )

    async def show_pin_page(self) -> None:
        """Show the PIN on the TV screen."""
        await self._rest.request("POST", self._url(PIN_PAGE_PATH))
        _LOG.debug("[%s] PIN page shown", self._config.log_id)

    async def hide_pin_page(self) -> None:
        """Remove the PIN from the TV screen."""
        await self._rest.request("DELETE", f"{self._url(PIN_PAGE_PATH)}/run")
        _LOG.debug("[%s] PIN page hidden", self._config.log_id)

    async def start_pairing(self) -> None:
        """Announce the pairing request to the TV."""
        await self._rest.request("GET", f"{self._step_url(0)}&type=1")
        _LOG.info("[%s] PIN pairing started", self._config.log_id)

    async def confirm_pin(self, pin: str) -> str:
        """
        Send the PIN to the TV.

        :param pin: the PIN shown on the TV
        :return: the request id to acknowledge
        :raises SamsungTvError: ``PAIRING_FAILED`` if the TV did not accept the PIN
        """
        data = await self._rest.request(
            "POST",
            self._step_url(1),
            json={"auth_Data": {"auth_type": "SPC", "GeneratorServerHello": pin}},
        )
        auth_data = _auth_data(data)
        request_id = auth_data.get("request_id")
        if request_id is None:
            raise SamsungTvError(ErrorKind.PAIRING_FAILED, "The TV rejected the PIN")
        _LOG.info("[%s] PIN accepted, request id %s", self._config.log_id, request_id)
        return str(request_id)

    async def acknowledge_request_id(self, request_id: str) -> dict[str, Any]:
        """
        Exchange a request id for the session identity.

        :raises SamsungTvError: ``PAIRING_FAILED`` if the TV returned no identity
        """
        data = await self._rest.request(
            "POST",
            self._step_url(2),
            json={"auth_Data": {"auth_type": "SPC", "request_id": request_id}},
        )
        auth_data = _auth_data(data)
        session_id = auth_data.get("session_id")
        if session_id is None:
            raise SamsungTvError(
                ErrorKind.PAIRING_FAILED, "The TV did not acknowledge the request"
            )
        self._identity = {
            "session_id": str(session_id),
            "request_id": request_id,
            "device_id": self._device_id,
        }
        _LOG.info("[%s] PIN pairing completed", self._config.log_id)
        return self._identity

    @contextlib.asynccontextmanager
    async def pin_session(self) -> AsyncIterator[PairingSession]:
        """
        Show the PIN page, start pairing and hide the page again on exit.

        The page is hidden whether pairing succeeded or not.
        """
        session = PairingSession(self)
        try:
            await self.show_pin_page()
            await self.start_pairing()
            yield session
        finally:
            try:
                await self.hide_pin_page()
            except SamsungTvError as err:
                _LOG.warning("[%s] Could not hide PIN page: %s", self._config.log_id, err)


def _auth_data(data: Any) -> dict[str, Any]:
    """Extract the ``auth_data`` object, which the TV sends as a JSON string."""
    if not isinstance(data, dict):
        raise SamsungTvError(ErrorKind.PAIRING_FAILED, f"Unexpected pairing response: {data}")
    auth_data = data.get("auth_data", data)
    if isinstance(auth_data, str):
        try:
            auth_data = json.loads(auth_data)
        except ValueError as err:
            raise SamsungTvError(
                ErrorKind.PAIRING_FAILED, f"Unexpected pairing response: {data}"
            ) from err
    if not isinstance(auth_data, dict):
        raise SamsungTvError(ErrorKind.PAIRING_FAILED, f"Unexpected pairing response: {data}")
    return auth_data
