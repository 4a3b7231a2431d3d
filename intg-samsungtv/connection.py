"""
Remote control channel of a Samsung TV.

:class:`SamsungConnection` owns the single WebSocket session with the TV: lazy
connect, token capture, event dispatch and the idle timeout.
:class:`CommandQueue` serializes every outbound message onto that session.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any, Callable

import aiohttp
from const import (
    CONNECT_TIMEOUT,
    IDLE_TIMEOUT,
    MS_CHANNEL_TIMEOUT_EVENT,
    PAIRING_CONNECT_TIMEOUT,
    WS_CHANNEL_PATH,
    WS_PORT,
    WSS_PORT,
    ConnectionState,
    SamsungConfig,
)
from errors import (
    ErrorKind,
    SamsungTvError,
    auth_error,
    classify_close,
    classify_exception,
)
from samsungtvws.command import SamsungTVCommand
from samsungtvws.event import (
    ED_INSTALLED_APP_EVENT,
    MS_CHANNEL_CONNECT_EVENT,
    MS_CHANNEL_UNAUTHORIZED,
    MS_ERROR_EVENT,
    parse_installed_app,
    parse_ms_error,
)
from samsungtvws.helper import serialize_string

_LOG = logging.getLogger(__name__)

EventListener = Callable[[str, Any], None]


def channel_url(
    config: SamsungConfig, token_auth: bool | None = None, with_token: bool = True
) -> str:
    """
    Return the URI of the remote control channel.

    Token mode uses TLS on port 8002, legacy mode plain WebSocket on port 8001.
    """
    if token_auth is None:
        token_auth = config.token_auth_support
    if token_auth:
        base = f"wss://{config.address}:{WSS_PORT}"
    else:
        base = f"ws://{config.address}:{WS_PORT}"
    url = f"{base}{WS_CHANNEL_PATH}?name={serialize_string(config.client_name)}"
    if with_token and config.token:
        url += f"&token={config.token}"
    return url


class SamsungConnection:
    """The WebSocket session with one Samsung TV."""

    def __init__(
        self,
        config: SamsungConfig,
        config_manager=None,
        session: aiohttp.ClientSession | None = None,
        idle_timeout: float = IDLE_TIMEOUT,
    ) -> None:
        """Create instance."""
        self._config = config
        self._config_manager = config_manager
        self._session = session
        self._owns_session = session is None
        self._idle_timeout = idle_timeout
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._state = ConnectionState.CLOSED
        self._last_error: SamsungTvError | None = None
        self._connected: asyncio.Future | None = None
        self._reader_task: asyncio.Task | None = None
        self._close_task: asyncio.Task | None = None
        self._idle_handle: asyncio.TimerHandle | None = None
        self._listeners: list[EventListener] = []
        self._app_catalog: dict[str, str] = {}

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self._config.log_id

    @property
    def state(self) -> ConnectionState:
        """Return the lifecycle state of the connection."""
        return self._state

    @property
    def last_error(self) -> SamsungTvError | None:
        """Return the error of the last failed connection attempt."""
        return self._last_error

    @property
    def socket(self) -> aiohttp.ClientWebSocketResponse | None:
        """Return the open WebSocket, if any."""
        return self._ws

    @property
    def app_catalog(self) -> dict[str, str]:
        """Return the installed applications last pushed by the TV (app id to name)."""
        return self._app_catalog

    @property
    def timeout(self) -> float:
        """Return the timeout for the connection."""
        if self._config.token_auth_support and not self._config.token:
            return PAIRING_CONNECT_TIMEOUT
        return CONNECT_TIMEOUT

    @property
    def ws_url(self) -> str:
        """Return the URI of the remote control channel."""
        return channel_url(self._config)

    def is_alive(self) -> bool:
        """Return True if the socket is open and acknowledged by the TV."""
        return (
            self._state == ConnectionState.OPEN
            and self._ws is not None
            and not self._ws.closed
        )

    def store_token(self, token: str) -> None:
        """Record a token granted by the TV and ask the settings owner to persist it."""
        if token == self._config.token:
            return
        _LOG.info("[%s] Got a new token", self.log_id)
        self._config.token = token
        if self._config_manager:
            self._config_manager.update(self._config)

    def add_listener(self, listener: EventListener) -> None:
        """Register a callback receiving every event pushed by the TV."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Unregister an event callback."""
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    async def ensure_open(self) -> None:
        """
        Make sure an acknowledged connection to the TV exists.

        Reuses a live connection (refreshing its idle timer) or opens a new one
        and waits for the TV's connect acknowledgement.

        :raises SamsungTvError: classified transport or authentication failure
        """
        if self.is_alive():
            self._arm_idle_timer()
            return

        if (
            self._state == ConnectionState.CONNECTING
            and self._connected is not None
            and not self._connected.done()
        ):
            await asyncio.shield(self._connected)
            return

        if self._ws is not None:
            # acknowledged earlier but the socket dropped without a close event
            await self._close_socket()

        await self._connect()

    async def _connect(self) -> None:
        loop = asyncio.get_running_loop()
        self._set_state(ConnectionState.CONNECTING)
        self._last_error = None
        self._connected = loop.create_future()
        connected = self._connected

        _LOG.debug(
            "[%s] Connecting to %s (token auth: %s, token: %s)",
            self.log_id,
            self._config.address,
            self._config.token_auth_support,
            "yes" if self._config.token else "no",
        )
        try:
            ws = await asyncio.wait_for(
                self._get_session().ws_connect(
                    self.ws_url, ssl=False, heartbeat=None
                ),
                self.timeout,
            )
        except Exception as err:  # pylint: disable=broad-exception-caught
            error = classify_exception(err, self._config)
            _LOG.info("[%s] Socket connect failed: %s", self.log_id, error)
            self._fail_connect(error)
            self._set_state(ConnectionState.CLOSED)
            raise error from err

        self._ws = ws
        self._reader_task = loop.create_task(self._receive_loop(ws))

        try:
            await asyncio.wait_for(asyncio.shield(connected), self.timeout)
        except asyncio.TimeoutError as err:
            error = SamsungTvError(
                ErrorKind.TIMED_OUT, "No connect acknowledgement from the TV"
            )
            _LOG.info("[%s] Socket timeout: %s", self.log_id, error)
            self._fail_connect(error)
            await self._close_socket()
            raise error from err
        except SamsungTvError:
            await self._close_socket()
            raise

    async def close(self) -> None:
        """Close the connection and release the HTTP session if owned."""
        if self._close_task and not self._close_task.done():
            self._close_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._close_task
        self._close_task = None

        await self._close_socket()

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            _LOG.debug("[%s] Connection %s -> %s", self.log_id, self._state.name, state.name)
            self._state = state

    def _fail_connect(self, error: SamsungTvError) -> None:
        self._last_error = error
        if self._connected is not None and not self._connected.done():
            self._connected.set_exception(error)
            # mark as retrieved, the waiters may already be gone
            self._connected.exception()

    async def _close_socket(
        self, only: aiohttp.ClientWebSocketResponse | None = None
    ) -> None:
        if only is not None and only is not self._ws:
            return
        ws, reader = self._ws, self._reader_task
        self._ws = None
        self._reader_task = None
        self._cancel_idle_timer()
        self._set_state(ConnectionState.CLOSED)

        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def _receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        error: BaseException | None = None
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        self._handle_message(msg.data)
                    except Exception:  # pylint: disable=broad-exception-caught
                        _LOG.exception("[%s] Error handling message", self.log_id)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    # aiohttp reports an invalid close code (1005) as an error message
                    if isinstance(msg.data, BaseException):
                        error = msg.data
                    else:
                        error = ws.exception()
                    break
        except Exception as err:  # pylint: disable=broad-exception-caught
            error = err
        finally:
            self._handle_closed(ws, error)

    def _handle_closed(
        self, ws: aiohttp.ClientWebSocketResponse, error: BaseException | None
    ) -> None:
        if self._connected is not None and not self._connected.done():
            if error is not None:
                failure = classify_exception(error, self._config)
            else:
                failure = classify_close(ws.close_code, self._config)
            _LOG.info("[%s] Socket closed before acknowledgement: %s", self.log_id, failure)
            self._fail_connect(failure)
        elif error is not None:
            _LOG.debug("[%s] Socket error: %s", self.log_id, error)

        if ws is self._ws:
            _LOG.debug("[%s] Connection closed (code %s)", self.log_id, ws.close_code)
            self._ws = None
            self._reader_task = None
            self._cancel_idle_timer()
            self._set_state(ConnectionState.CLOSED)

    def _handle_message(self, data: str) -> None:
        try:
            message = json.loads(data)
        except ValueError:
            _LOG.warning("[%s] Ignoring invalid message: %s", self.log_id, data)
            return
        if not isinstance(message, dict):
            _LOG.warning("[%s] Ignoring unexpected message: %s", self.log_id, data)
            return

        event = message.get("event", "")
        payload = message.get("data")

        if event == MS_CHANNEL_CONNECT_EVENT:
            self._handle_connect(payload)
        elif event == MS_CHANNEL_UNAUTHORIZED:
            self._fail_pending(auth_error(self._config))
        elif event == MS_CHANNEL_TIMEOUT_EVENT:
            self._fail_pending(
                SamsungTvError(ErrorKind.TIMED_OUT, "Access request timed out on the TV")
            )
        elif event == ED_INSTALLED_APP_EVENT:
            self._handle_installed_apps(message)
        elif event == MS_ERROR_EVENT:
            _LOG.warning("[%s] Error event from the TV: %s", self.log_id, _ms_error(message))
        else:
            _LOG.debug("[%s] Event %s: %s", self.log_id, event, payload)

        self._publish(event, payload)

    def _handle_connect(self, payload: Any) -> None:
        token = payload.get("token") if isinstance(payload, dict) else None
        if token:
            self.store_token(token)

        if self._connected is not None and not self._connected.done():
            self._arm_idle_timer()
            self._set_state(ConnectionState.OPEN)
            self._connected.set_result(None)
        elif self._state == ConnectionState.OPEN:
            self._arm_idle_timer()

    def _handle_installed_apps(self, message: dict[str, Any]) -> None:
        try:
            apps = {app["appId"]: app["name"] for app in parse_installed_app(message)}
        except (KeyError, TypeError) as err:
            _LOG.warning("[%s] Ignoring malformed app list: %s", self.log_id, err)
            return
        if not apps:
            _LOG.debug("[%s] Ignoring empty app list", self.log_id)
            return
        self._app_catalog = apps
        _LOG.info("[%s] Installed apps updated: %d apps", self.log_id, len(apps))

    def _fail_pending(self, error: SamsungTvError) -> None:
        self._fail_connect(error)
        _LOG.info("[%s] Connection refused by the TV: %s", self.log_id, error)
        self._schedule_close()

    def _publish(self, event: str, payload: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:  # pylint: disable=broad-exception-caught
                _LOG.exception("[%s] Event listener failed for %s", self.log_id, event)

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self._idle_timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        if self._ws is not None:
            _LOG.debug("[%s] Closing idle connection", self.log_id)
            self._schedule_close()

    def _schedule_close(self) -> None:
        if self._ws is None:
            return
        if self._close_task is None or self._close_task.done():
            self._close_task = asyncio.get_running_loop().create_task(
                self._close_socket(self._ws)
            )


def _ms_error(message: dict[str, Any]) -> Any:
    try:
        return parse_ms_error(message)
    except (KeyError, TypeError):
        return message.get("data")


class CommandQueue:
    """
    Serialize messages onto the connection, one send at a time.

    Each submission gets its own connection attempt; a failed submission does
    not affect the ones queued behind it. Success means the socket accepted the
    write, the TV sends no reply to match.
    """

    def __init__(self, connection: SamsungConnection) -> None:
        """Create instance."""
        self._connection = connection
        self._lock = asyncio.Lock()

    async def submit(self, command: SamsungTVCommand | dict[str, Any]) -> None:
        """
        Queue a message and wait until it was written to the socket.

        Cancelling the caller does not abort the send.

        :raises SamsungTvError: connection or send failure
        """
        task = asyncio.ensure_future(self._run(command))
        task.add_done_callback(self._consume_result)
        await asyncio.shield(task)

    async def _run(self, command: SamsungTVCommand | dict[str, Any]) -> None:
        async with self._lock:
            await self._connection.ensure_open()

            ws = self._connection.socket
            if ws is None or ws.closed:
                raise SamsungTvError(
                    ErrorKind.SOCKET_NOT_READY, "The connection to the TV is not open"
                )

            if isinstance(command, SamsungTVCommand):
                payload = command.get_payload()
            else:
                payload = json.dumps(command)
            _LOG.debug("[%s] Sending %s", self._connection.log_id, payload)

            try:
                await ws.send_str(payload)
            except Exception as err:  # pylint: disable=broad-exception-caught
                raise SamsungTvError(
                    ErrorKind.SEND_FAILED, f"Sending to the TV failed: {err}"
                ) from err

    def _consume_result(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            _LOG.debug(
                "[%s] Command failed: %s", self._connection.log_id, task.exception()
            )
