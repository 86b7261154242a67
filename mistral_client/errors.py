"""
Error definitions for the Mistral API client.

This module defines the closed set of errors a failed API call can produce,
plus the few errors that sit outside that set (configuration problems,
programmer errors while building a request, and stream decoding failures).

Every failed call yields exactly one of:

    AuthenticationError, PermissionDeniedError, NotFoundError, ValidationError,
    RateLimitError, ServerError, NetworkError, APIError

Each carries an ``ErrorKind`` so callers can branch on ``error.kind`` without
an isinstance chain.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Taxonomy tag carried by every classified error."""
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    NETWORK = "network"
    API = "api"


class MistralError(Exception):
    """Base exception for all classified API call failures."""

    kind = ErrorKind.API
    default_message = "API request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        """
        Initialize the error.

        Args:
            message: Human-readable message (class default when empty)
            status_code: HTTP status of the failed response (None for network failures)
            request_id: Value of the ``x-request-id`` response header (optional)
        """
        self.message = message or self.default_message
        self.status_code = status_code
        self.request_id = request_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with the request id if available."""
        if self.request_id:
            return f"{self.message} (request_id: {self.request_id})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class AuthenticationError(MistralError):
    """Authentication failure (HTTP 401)."""

    kind = ErrorKind.AUTHENTICATION
    default_message = "Authentication failed. Please check your API key."


class PermissionDeniedError(MistralError):
    """Permission denied (HTTP 403)."""

    kind = ErrorKind.PERMISSION
    default_message = "Permission denied. You don't have access to this resource."


class NotFoundError(MistralError):
    """Resource not found (HTTP 404)."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class ValidationError(MistralError):
    """Request rejected by server-side validation (HTTP 422)."""

    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        status_code: Optional[int] = 422,
        request_id: Optional[str] = None,
    ):
        """
        Initialize the validation error.

        Args:
            message: Error message
            field: Name of the offending request field, when the body names one
            status_code: HTTP status (422)
            request_id: Request identifier (optional)
        """
        self.field = field
        if not message and field:
            message = f"Validation failed for field '{field}'"
        super().__init__(message, status_code, request_id)


class RateLimitError(MistralError):
    """Rate limit exceeded (HTTP 429)."""

    kind = ErrorKind.RATE_LIMIT
    default_message = "Rate limit exceeded."

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = 429,
        request_id: Optional[str] = None,
    ):
        """
        Initialize the rate limit error.

        Args:
            message: Error message
            retry_after: Seconds to wait before retrying, when the server said so
            status_code: HTTP status (429)
            request_id: Request identifier (optional)
        """
        self.retry_after = retry_after
        if not message and retry_after is not None:
            message = f"Rate limit exceeded. Retry after {retry_after:g} seconds."
        super().__init__(message, status_code, request_id)


class ServerError(MistralError):
    """Server-side failure (HTTP 5xx)."""

    kind = ErrorKind.SERVER
    default_message = "Server error. Please try again later."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = 500,
        request_id: Optional[str] = None,
    ):
        if not message and status_code is not None:
            message = f"Server error ({status_code}). Please try again later."
        super().__init__(message, status_code, request_id)


class NetworkError(MistralError):
    """Transport failure before any HTTP response was received."""

    kind = ErrorKind.NETWORK
    default_message = "Network error"

    _REASON_MESSAGES = {
        "timeout": "Network request timed out",
        "connect_error": "Connection failed",
        "read_error": "Failed to read response",
        "write_error": "Failed to send request",
    }

    def __init__(self, reason: str, message: Optional[str] = None):
        """
        Initialize the network error.

        Args:
            reason: Short machine-readable reason (e.g. "timeout", "connect_error")
            message: Error message (derived from the reason when omitted)
        """
        self.reason = reason
        if not message:
            message = self._REASON_MESSAGES.get(reason, f"Network error: {reason}")
        super().__init__(message, None, None)


class APIError(MistralError):
    """Any other non-success status; keeps the raw status for callers."""

    kind = ErrorKind.API

    def __init__(
        self,
        status_code: int,
        message: Optional[str] = None,
        response_body: Any = None,
        request_id: Optional[str] = None,
    ):
        """
        Initialize the API error.

        Args:
            status_code: HTTP status code of the response
            message: Error message
            response_body: Decoded (or raw) response body
            request_id: Request identifier (optional)
        """
        self.response_body = response_body
        if not message:
            message = f"API request failed with status {status_code}"
        super().__init__(message, status_code, request_id)


# ============================================================================
# Errors outside the API call taxonomy
# ============================================================================

class ConfigError(Exception):
    """Error in client configuration."""

    def __init__(self, message: str, config_key: str = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Configuration key that caused the error (optional)
        """
        self.message = message
        self.config_key = config_key
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.config_key:
            return f"{self.message} (config: {self.config_key})"
        return self.message


class RequestBuildError(ValueError):
    """A request could not be built; always a caller bug, raised before any I/O."""


class StreamError(Exception):
    """Base exception for failures while decoding an event stream."""

    def __init__(self, message: str, position: int = None):
        """
        Initialize the stream error.

        Args:
            message: Error message
            position: Sequence position the failing event would have had (optional)
        """
        self.message = message
        self.position = position
        super().__init__(message)


class StreamDecodeError(StreamError):
    """A complete event carried a payload that is not valid JSON."""

    def __init__(self, message: str, payload: str = "", position: int = None):
        self.payload = payload
        super().__init__(message, position)


class IncompleteStreamError(StreamError):
    """The stream ended while a partial event was still buffered."""

    def __init__(self, message: str = "Stream ended unexpectedly", fragment: bytes = b""):
        self.fragment = fragment
        super().__init__(message)


__all__ = [
    "APIError",
    "AuthenticationError",
    "ConfigError",
    "ErrorKind",
    "IncompleteStreamError",
    "MistralError",
    "NetworkError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "RequestBuildError",
    "ServerError",
    "StreamDecodeError",
    "StreamError",
    "ValidationError",
]
