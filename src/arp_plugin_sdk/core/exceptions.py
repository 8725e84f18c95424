"""Custom exceptions for the arp plugin SDK.

Host-facing surfaces never raise these into the host: the dispatcher turns
request-level failures into result payloads. They signal programming and
contract errors on the SDK side.
"""

from typing import Any


class ArpException(Exception):
    """Base exception class for the arp plugin SDK."""

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# Route table exceptions
class RouteBindingError(ArpException):
    """Raised when a route names a handler that the module does not provide."""

    def __init__(self, function: str, path: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Route '{path}' references unknown handler '{function}'",
            error_code="ROUTE_BINDING_ERROR",
            details=details or {"function": function, "path": path},
        )


class DuplicateRouteError(ArpException):
    """Raised when two routes share the same path and method."""

    def __init__(self, path: str, method: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Duplicate route {method.upper()} {path}",
            error_code="DUPLICATE_ROUTE",
            details=details or {"path": path, "method": method},
        )


# Buffer ownership exceptions
class BufferReleaseError(ArpException):
    """Base class for violations of the release-exactly-once contract."""


class BufferAlreadyReleasedError(BufferReleaseError):
    """Raised when a response handle is released a second time."""

    def __init__(self, handle_id: int, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Response buffer {handle_id} was already released",
            error_code="BUFFER_ALREADY_RELEASED",
            details=details or {"handle_id": handle_id},
        )


class ForeignBufferError(BufferReleaseError):
    """Raised when asked to release a buffer this module never handed out."""

    def __init__(self, handle_id: Any, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Response buffer {handle_id!r} does not belong to this module",
            error_code="FOREIGN_BUFFER",
            details=details or {"handle_id": repr(handle_id)},
        )


# Request exceptions
class InvalidRequestError(ArpException):
    """Raised while decoding a request; surfaces as a ``{"error": ...}`` payload."""

    def __init__(self, reason: str, code: str = "invalid_request", details: dict[str, Any] | None = None):
        super().__init__(
            message=reason,
            error_code=code,
            details=details or {},
        )


# Plugin loading exceptions
class PluginLoadError(ArpException):
    """Raised when a discovered plugin cannot be imported or fails validation."""

    def __init__(self, plugin_name: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Failed to load plugin '{plugin_name}': {reason}",
            error_code="PLUGIN_LOAD_ERROR",
            details=details or {"plugin": plugin_name, "reason": reason},
        )


class HttpRequestFailed(Exception):
    """Raised by the outbound HTTP helpers when a non-success status is returned.

    Attributes:
        status_code: int HTTP status
        url: str request URL
        body: Any parsed body (dict/list/str)
        headers: dict of response headers

    Properties:
        error_category: Semantic category (auth_error, forbidden, rate_limited, etc.)
        is_retryable: True for 429 and 5xx errors
        retry_after_seconds: From Retry-After header if present
    """

    def __init__(self, status_code: int, url: str, body: object = None, headers: dict | None = None):
        self.status_code = int(status_code)
        self.url = str(url)
        self.body = body
        self.headers = dict(headers or {})
        super().__init__(f"HTTP {self.status_code} calling {self.url}")

    @property
    def error_category(self) -> str:
        """Semantic error category based on HTTP status code."""
        if self.status_code == 401:
            return "auth_error"
        elif self.status_code == 403:
            return "forbidden"
        elif self.status_code == 404:
            return "not_found"
        elif self.status_code == 410:
            return "gone"
        elif self.status_code == 429:
            return "rate_limited"
        elif self.status_code >= 500:
            return "server_error"
        else:
            return "client_error"

    @property
    def is_retryable(self) -> bool:
        """True for errors that may succeed on retry (429, 5xx)."""
        return self.status_code == 429 or self.status_code >= 500

    @property
    def retry_after_seconds(self) -> int | None:
        """Parse Retry-After header if present. Returns seconds or None.

        Performs case-insensitive header lookup per RFC 7230.
        """
        retry_after = None
        for key, value in self.headers.items():
            if key.lower() == "retry-after":
                retry_after = value
                break

        if not retry_after:
            return None
        try:
            return int(retry_after)
        except (ValueError, TypeError):
            # Could be HTTP-date format; return None for simplicity
            return None
