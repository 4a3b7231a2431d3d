"""
Error taxonomy and transport failure classification.

Every failure raised by the remote control client is a :class:`SamsungTvError`
carrying one :class:`ErrorKind`. The ``classify_*`` functions map raw transport
failures (socket errors, WebSocket close codes, HTTP statuses) to that closed
taxonomy. They never retry; retry policy belongs to the caller.
"""

import asyncio
import errno
from enum import StrEnum

import aiohttp
from const import SamsungConfig

AUTH_CLOSE_CODE = 1005


class ErrorKind(StrEnum):
    """Kinds of errors reported by the Samsung TV client."""

    CONNECTION_REFUSED = "connection_refused"
    HOST_UNREACHABLE = "host_unreachable"
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMED_OUT = "timed_out"
    CONNECTION_RESET = "connection_reset"
    AUTH_TOKEN_MISSING = "auth_token_missing"
    AUTH_TOKEN_INVALID = "auth_token_invalid"
    SOCKET_NOT_READY = "socket_not_ready"
    SEND_FAILED = "send_failed"
    HTTP_FORBIDDEN = "http_forbidden"
    HTTP_NOT_FOUND = "http_not_found"
    HTTP_PAYLOAD_TOO_LARGE = "http_payload_too_large"
    HTTP_NOT_IMPLEMENTED = "http_not_implemented"
    HTTP_SERVICE_UNAVAILABLE = "http_service_unavailable"
    HTTP_OTHER = "http_other"
    UNKNOWN = "unknown"

    PAIRING_FAILED = "pairing_failed"
    NO_APP_RUNNING = "no_app_running"
    APP_NOT_RUNNING = "app_not_running"
    CLOUD_NOT_ENABLED = "cloud_not_enabled"
    CLOUD_NO_TOKEN = "cloud_no_token"
    CLOUD_TOKEN_INVALID = "cloud_token_invalid"
    CLOUD_NO_TV_FOUND = "cloud_no_tv_found"
    CAPABILITY_UNSUPPORTED = "capability_unsupported"


_ERRNO_KINDS = {
    errno.ECONNREFUSED: ErrorKind.CONNECTION_REFUSED,
    errno.EHOSTUNREACH: ErrorKind.HOST_UNREACHABLE,
    errno.ENETUNREACH: ErrorKind.NETWORK_UNREACHABLE,
    errno.ETIMEDOUT: ErrorKind.TIMED_OUT,
    errno.ECONNRESET: ErrorKind.CONNECTION_RESET,
}

_ERRNO_NAMES = {
    "ECONNREFUSED": ErrorKind.CONNECTION_REFUSED,
    "EHOSTUNREACH": ErrorKind.HOST_UNREACHABLE,
    "ENETUNREACH": ErrorKind.NETWORK_UNREACHABLE,
    "ETIMEDOUT": ErrorKind.TIMED_OUT,
    "ECONNRESET": ErrorKind.CONNECTION_RESET,
}

_HTTP_KINDS = {
    403: ErrorKind.HTTP_FORBIDDEN,
    404: ErrorKind.HTTP_NOT_FOUND,
    413: ErrorKind.HTTP_PAYLOAD_TOO_LARGE,
    501: ErrorKind.HTTP_NOT_IMPLEMENTED,
    503: ErrorKind.HTTP_SERVICE_UNAVAILABLE,
}


class SamsungTvError(Exception):
    """Error raised by the Samsung TV client."""

    def __init__(
        self, kind: ErrorKind, message: str | None = None, status: int | None = None
    ) -> None:
        """Create instance."""
        super().__init__(message or kind.value)
        self.kind = kind
        self.status = status

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"SamsungTvError({self.kind.value!r}, {str(self)!r}, status={self.status})"


def auth_error(config: SamsungConfig) -> SamsungTvError:
    """Return the authentication error matching the configured token state."""
    if not config.token_auth_support or not config.token:
        return SamsungTvError(
            ErrorKind.AUTH_TOKEN_MISSING,
            "The TV closed the connection: access must be allowed on the TV",
        )
    return SamsungTvError(
        ErrorKind.AUTH_TOKEN_INVALID,
        "The TV closed the connection: the pairing token was rejected",
    )


def classify_close(code: int | None, config: SamsungConfig) -> SamsungTvError:
    """Classify a WebSocket close received before the connect acknowledgement."""
    if code == AUTH_CLOSE_CODE:
        return auth_error(config)
    return SamsungTvError(
        ErrorKind.CONNECTION_RESET,
        f"Connection closed by the TV (close code {code})",
    )


def classify_http_status(status: int, reason: str | None = None) -> SamsungTvError:
    """Classify a non-successful HTTP status of an application command."""
    kind = _HTTP_KINDS.get(status, ErrorKind.HTTP_OTHER)
    if kind == ErrorKind.HTTP_OTHER:
        return SamsungTvError(
            kind, f"Request failed: {status} {reason or ''}".strip(), status=status
        )
    return SamsungTvError(kind, f"Request rejected by the TV ({status})", status=status)


def _errno_kind(err: BaseException) -> ErrorKind | None:
    """Find a known socket errno on the exception or its causes."""
    seen: BaseException | None = err
    while seen is not None:
        code = getattr(seen, "errno", None)
        if code in _ERRNO_KINDS:
            return _ERRNO_KINDS[code]
        os_error = getattr(seen, "os_error", None)
        if os_error is not None and getattr(os_error, "errno", None) in _ERRNO_KINDS:
            return _ERRNO_KINDS[os_error.errno]
        seen = seen.__cause__
    return None


def classify_exception(
    err: BaseException, config: SamsungConfig | None = None
) -> SamsungTvError:
    """
    Classify a raw transport exception.

    :param err: the exception raised by the transport
    :param config: device configuration, needed to tell a missing token from an invalid one
    :return: the classified error
    """
    if isinstance(err, SamsungTvError):
        return err

    kind = _errno_kind(err)
    if kind is not None:
        return SamsungTvError(kind, str(err) or kind.value)

    if isinstance(err, (asyncio.TimeoutError, TimeoutError)):
        return SamsungTvError(ErrorKind.TIMED_OUT, "Connection to the TV timed out")
    if isinstance(err, ConnectionResetError):
        return SamsungTvError(ErrorKind.CONNECTION_RESET, str(err) or None)
    if isinstance(err, aiohttp.ClientResponseError):
        return classify_http_status(err.status, err.message)

    text = str(err)
    if str(AUTH_CLOSE_CODE) in text and config is not None:
        return auth_error(config)
    for name, name_kind in _ERRNO_NAMES.items():
        if name in text:
            return SamsungTvError(name_kind, text)
    if isinstance(err, aiohttp.ServerDisconnectedError):
        return SamsungTvError(ErrorKind.CONNECTION_RESET, text or None)

    return SamsungTvError(ErrorKind.UNKNOWN, f"Unknown connection error: {text or repr(err)}")
