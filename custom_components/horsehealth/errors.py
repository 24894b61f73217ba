"""
Error taxonomy for the Horse Health integration.

Transport code raises the exceptions below; the poller and the location
resolver turn them into state (ErrorKind / GeolocationErrorKind) so nothing
escapes into Home Assistant's event loop.
"""
from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Kinds of failure a poll cycle can report."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    INVALID_RESPONSE = "invalid_response"
    PARTIAL_FAILURE = "partial_failure"


class GeolocationErrorKind(StrEnum):
    """Kinds of failure the location resolver can report."""

    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


class HorseHealthError(Exception):
    """Base class for all errors raised by this integration."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR


class NetworkError(HorseHealthError):
    """Transport-level failure (DNS, connection refused, reset...)."""

    kind = ErrorKind.NETWORK_ERROR


class RequestTimeout(HorseHealthError):
    """Request exceeded its configured time bound and was aborted."""

    kind = ErrorKind.TIMEOUT


class HttpError(HorseHealthError):
    """Backend answered with a non-2xx status."""

    kind = ErrorKind.HTTP_ERROR

    def __init__(self, status: int, url: str = "") -> None:
        self.status = status
        self.url = url
        super().__init__(f"HTTP {status} from {url}" if url else f"HTTP {status}")


class InvalidResponseError(HorseHealthError):
    """Backend answered 2xx with a body we cannot interpret."""

    kind = ErrorKind.INVALID_RESPONSE


class GeolocationError(HorseHealthError):
    """Raised by position sources; carries a GeolocationErrorKind."""

    def __init__(self, kind: GeolocationErrorKind, message: str = "") -> None:
        self.geo_kind = kind
        super().__init__(message or kind.value)
