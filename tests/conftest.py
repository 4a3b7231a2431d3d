"""Test fixtures for the Samsung TV client tests."""

import asyncio
import json
from http import HTTPStatus
from types import SimpleNamespace
from typing import Any, Callable

import aiohttp
import pytest
from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from const import SamsungConfig

# close codes aiohttp refuses to accept from a peer
INVALID_CLOSE_CODES = (1004, 1005, 1006, 1015)


def ws_message(data: Any) -> SimpleNamespace:
    """Return a text WebSocket message."""
    if not isinstance(data, str):
        data = json.dumps(data)
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)


def connect_event(token: str | None = None) -> dict[str, Any]:
    """Return the connect acknowledgement the TV sends."""
    data: dict[str, Any] = {"id": "client-1", "clients": []}
    if token:
        data["token"] = token
    return {"event": "ms.channel.connect", "data": data}


class FakeWebSocket:
    """Stand-in for aiohttp.ClientWebSocketResponse."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.close_code: int | None = None
        self.send_error: Exception | None = None
        self._error: BaseException | None = None
        self._incoming: asyncio.Queue = asyncio.Queue()

    def push(self, data: Any) -> None:
        """Deliver a message from the TV."""
        self._incoming.put_nowait(ws_message(data))

    def push_close(self, code: int) -> None:
        """
        Close the socket from the TV side.

        Like aiohttp, an invalid close code arrives as an error message
        carrying a WebSocketError, with the close code set to 1002.
        """
        if code in INVALID_CLOSE_CODES:
            self.close_code = aiohttp.WSCloseCode.PROTOCOL_ERROR
            error = aiohttp.WebSocketError(
                aiohttp.WSCloseCode.PROTOCOL_ERROR, f"Invalid close code: {code}"
            )
            self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=error))
            return
        self.close_code = code
        self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.CLOSE, data=code))

    def push_error(self, error: BaseException) -> None:
        """Fail the socket."""
        self._error = error
        self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=error))

    def exception(self) -> BaseException | None:
        return self._error

    async def send_str(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(json.loads(data))

    async def receive(self, timeout: float | None = None) -> SimpleNamespace:
        return await asyncio.wait_for(self._incoming.get(), timeout)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            if self.close_code is None:
                self.close_code = 1000
            self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None))

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> SimpleNamespace:
        msg = await self._incoming.get()
        if msg.type in (
            aiohttp.WSMsgType.CLOSE,
            aiohttp.WSMsgType.CLOSING,
            aiohttp.WSMsgType.CLOSED,
        ):
            self.closed = True
            raise StopAsyncIteration
        return msg


class FakeResponse:
    """Stand-in for aiohttp.ClientResponse."""

    def __init__(self, status: int = 200, body: Any = None, reason: str | None = None) -> None:
        self.status = status
        self.reason = reason or HTTPStatus(status).phrase
        if body is None:
            self._text = ""
        elif isinstance(body, str):
            self._text = body
        else:
            self._text = json.dumps(body)

    async def text(self) -> str:
        return self._text

    async def json(self, content_type: str | None = "application/json") -> Any:
        return json.loads(self._text)


class _RequestContext:
    def __init__(
        self,
        method: str,
        url: str,
        outcome: FakeResponse | BaseException,
        raise_for_status: Any,
    ) -> None:
        self._method = method
        self._url = url
        self._outcome = outcome
        self._raise_for_status = raise_for_status

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        response = self._outcome
        if callable(self._raise_for_status):
            await self._raise_for_status(response)
        elif self._raise_for_status and response.status >= 400:
            url = URL(self._url)
            raise aiohttp.ClientResponseError(
                aiohttp.RequestInfo(url, self._method, CIMultiDictProxy(CIMultiDict()), url),
                (),
                status=response.status,
                message=response.reason,
            )
        return response

    async def __aexit__(self, *args: Any) -> None:
        return None

    def __await__(self):
        return self.__aenter__().__await__()


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    WebSocket connections are answered with a connect acknowledgement unless
    ``on_connect`` is replaced. HTTP requests are answered from routes added
    with :meth:`route`, matched on method and a URL fragment. Error statuses
    raise like a session created with ``raise_for_status=True`` unless
    ``raise_for_status`` is changed.
    """

    def __init__(self, raise_for_status: Any = True) -> None:
        self.raise_for_status = raise_for_status
        self.sockets: list[FakeWebSocket] = []
        self.ws_urls: list[str] = []
        self.connect_error: BaseException | None = None
        self.ack_token: str | None = None
        self.on_connect: Callable[[FakeWebSocket], None] = self._acknowledge
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self._routes: list[tuple[str, str, FakeResponse | BaseException]] = []

    def _acknowledge(self, ws: FakeWebSocket) -> None:
        ws.push(connect_event(self.ack_token))

    async def ws_connect(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.ws_urls.append(url)
        if self.connect_error is not None:
            raise self.connect_error
        ws = FakeWebSocket()
        self.on_connect(ws)
        self.sockets.append(ws)
        return ws

    def route(
        self,
        method: str,
        fragment: str,
        status: int = 200,
        body: Any = None,
        error: BaseException | None = None,
    ) -> None:
        """Answer requests whose URL contains ``fragment``."""
        outcome = error if error is not None else FakeResponse(status, body)
        self._routes.insert(0, (method, fragment, outcome))

    def request(self, method: str, url: Any, **kwargs: Any) -> _RequestContext:
        url = str(url)
        self.requests.append((method, url, kwargs))
        for route_method, fragment, outcome in self._routes:
            if route_method == method and fragment in url:
                return _RequestContext(method, url, outcome, self.raise_for_status)
        return _RequestContext(
            method, url, FakeResponse(404, reason="Not Found"), self.raise_for_status
        )

    def calls(self, method: str | None = None) -> list[tuple[str, str]]:
        """Return the (method, url) of the requests sent, optionally filtered."""
        return [(m, u) for m, u, _ in self.requests if method is None or m == method]

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class RecordingConfigManager:
    """Settings owner recording the persisted token at every update."""

    def __init__(self) -> None:
        self.tokens: list[str | None] = []

    def update(self, config: SamsungConfig) -> None:
        self.tokens.append(config.token)


@pytest.fixture
def config() -> SamsungConfig:
    """Return a configuration of a TV in legacy mode."""
    return SamsungConfig(identifier="tv-1", name="Living Room", address="192.168.1.20")


@pytest.fixture
def token_config() -> SamsungConfig:
    """Return a configuration of a TV using token authentication."""
    return SamsungConfig(
        identifier="tv-1",
        name="Living Room",
        address="192.168.1.20",
        token_auth_support=True,
        token="12345678",
    )


@pytest.fixture
def session() -> FakeSession:
    """Return a fake aiohttp session."""
    return FakeSession()


@pytest.fixture
def config_manager() -> RecordingConfigManager:
    """Return a settings owner recording updates."""
    return RecordingConfigManager()
