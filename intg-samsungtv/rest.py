"""
One-shot HTTP calls to a Samsung TV.

The application lifecycle endpoints (``/api/v2/applications/{id}``) and the
device info query go through ``samsungtvws``'s async REST client. The YouTube
DIAL launch and the PIN pairing pages, which it does not cover, are plain
aiohttp requests. Every failure is mapped through the error classifier.

The aiohttp session must be created with ``raise_for_status=True``:
``samsungtvws`` parses the body without looking at the status.
"""

import contextlib
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

import aiohttp
from const import DIAL_PORT, HTTP_OK_STATUSES, YOUTUBE_PATH, SamsungConfig
from errors import SamsungTvError, classify_exception, classify_http_status
from samsungtvws.async_rest import SamsungTVAsyncRest
from samsungtvws.exceptions import HttpApiError, ResponseError

_LOG = logging.getLogger(__name__)


class SamsungRest:
    """HTTP client for the local REST API of a Samsung TV."""

    def __init__(
        self, config: SamsungConfig, session: aiohttp.ClientSession | None = None
    ) -> None:
        """Create instance."""
        self._config = config
        self._session = session

    @property
    def log_id(self) -> str:
        """Return a log identifier."""
        return self._config.log_id

    def base_url(self, address: str | None = None) -> str:
        """Return the base URL of the REST API."""
        return f"http://{address or self._config.address}:{self._config.port}/api/v2/"

    @property
    def timeout(self) -> aiohttp.ClientTimeout:
        """Return the deadline of one request."""
        return aiohttp.ClientTimeout(total=self._config.api_timeout / 1000)

    @contextlib.asynccontextmanager
    async def _client_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
        else:
            async with aiohttp.ClientSession(raise_for_status=True) as session:
                yield session

    async def _rest_api_call(
        self,
        call: Callable[[SamsungTVAsyncRest], Awaitable[Any]],
        address: str | None = None,
    ) -> Any:
        try:
            async with self._client_session() as session:
                rest_api = SamsungTVAsyncRest(
                    host=address or self._config.address,
                    port=self._config.port,
                    session=session,
                    timeout=self._config.api_timeout / 1000,
                )
                return await call(rest_api)
        except ResponseError as err:
            # successful status without a JSON body
            _LOG.debug("[%s] REST answer without data: %s", self.log_id, err)
            return None
        except HttpApiError as err:
            raise classify_exception(err.__cause__ or err, self._config) from err
        except SamsungTvError:
            raise
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise classify_exception(err, self._config) from err

    async def request(self, method: str, url: str, **kwargs: Any) -> Any:
        """
        Send one request and return the decoded body.

        :param method: HTTP verb
        :param url: absolute URL
        :return: the JSON body, the raw text if it is not JSON, or None if empty
        :raises SamsungTvError: classified transport failure or non-successful status
        """
        try:
            async with self._client_session() as session:
                async with session.request(
                    method, url, timeout=self.timeout, **kwargs
                ) as response:
                    text = await response.text()
                    if response.status not in HTTP_OK_STATUSES:
                        _LOG.debug(
                            "[%s] %s %s failed: %s %s",
                            self.log_id,
                            method,
                            url,
                            response.status,
                            text,
                        )
                        raise classify_http_status(response.status, response.reason)
        except SamsungTvError:
            raise
        except Exception as err:  # pylint: disable=broad-exception-caught
            raise classify_exception(err, self._config) from err

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    async def _application_cmd(
        self,
        method: str,
        app_id: str,
        call: Callable[[SamsungTVAsyncRest], Awaitable[Any]],
    ) -> Any:
        try:
            data = await self._rest_api_call(call)
        except SamsungTvError as err:
            _LOG.info(
                "[%s] Application command failed: %s %s: %s",
                self.log_id,
                method,
                app_id,
                err,
            )
            raise
        _LOG.info("[%s] Application command OK: %s %s", self.log_id, method, app_id)
        return data

    async def rest_app_status(self, app_id: str) -> dict[str, Any]:
        """Return the status of an application (``id``, ``running``, ``visible``, ...)."""
        data = await self._application_cmd(
            "GET", app_id, lambda rest_api: rest_api.rest_app_status(app_id)
        )
        return data if isinstance(data, dict) else {}

    async def rest_app_run(self, app_id: str) -> Any:
        """Launch an application."""
        return await self._application_cmd(
            "POST", app_id, lambda rest_api: rest_api.rest_app_run(app_id)
        )

    async def rest_app_close(self, app_id: str) -> Any:
        """Close an application."""
        return await self._application_cmd(
            "DELETE", app_id, lambda rest_api: rest_api.rest_app_close(app_id)
        )

    async def rest_device_info(self, address: str | None = None) -> dict[str, Any]:
        """Get REST info from the TV."""
        data = await self._rest_api_call(
            lambda rest_api: rest_api.rest_device_info(), address
        )
        _LOG.debug("[%s] REST info: %s", self.log_id, data)
        return data if isinstance(data, dict) else {}

    async def launch_youtube(self, video_id: str) -> None:
        """Start the YouTube app on a video through the DIAL endpoint."""
        url = f"http://{self._config.address}:{DIAL_PORT}{YOUTUBE_PATH}"
        try:
            await self.request(
                "POST",
                url,
                data=f"v={video_id}",
                headers={"Content-Type": "text/plain"},
            )
        except SamsungTvError as err:
            _LOG.info(
                "[%s] Error starting YouTube for video ID %s: %s",
                self.log_id,
                video_id,
                err,
            )
            raise
        _LOG.debug("[%s] Started YouTube with video ID %s", self.log_id, video_id)
