"""
Response classification for the Mistral API.

Maps an HTTP status and body to either a success value or exactly one error
from the taxonomy in ``mistral_client.errors``. The mapping is total: every
integer status code has an outcome, with APIError as the catch-all.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional, Tuple, TypeVar

from .errors import (
    APIError,
    AuthenticationError,
    MistralError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from .transport.base import TransportError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Non-JSON error bodies (HTML error pages, proxies) are cut to this length
MAX_ERROR_MESSAGE_LENGTH = 1000

_NO_BODY = object()


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one call: a value, or a classified error."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the error if the call failed."""
        if self.error is not None:
            raise self.error
        return self.value

    def map(self, fn) -> "Result":
        """Apply ``fn`` to a successful value; errors pass through unchanged."""
        if self.error is not None:
            return self
        return Result(value=fn(self.value))

    @classmethod
    def failure(cls, error: MistralError) -> "Result":
        return cls(error=error)


def parse_body(body: Any) -> Tuple[Any, Optional[str]]:
    """
    Decode a response body.

    Returns:
        ``(parsed, text)``: ``parsed`` is the decoded JSON value, or ``_NO_BODY``
        when the body is empty or not JSON; ``text`` is the raw text when the
        body was bytes/str, else None
    """
    if body is None:
        return _NO_BODY, None
    if isinstance(body, (bytes, bytearray)):
        try:
            text = bytes(body).decode("utf-8")
        except UnicodeDecodeError:
            return _NO_BODY, None
    elif isinstance(body, str):
        text = body
    else:
        # Already decoded by the transport
        return body, None

    if not text.strip():
        return _NO_BODY, text
    try:
        return json.loads(text), text
    except ValueError:
        return _NO_BODY, text


def extract_error_message(parsed: Any) -> Optional[str]:
    """Pull a human-readable message out of a decoded error body."""
    if isinstance(parsed, str):
        return parsed or None
    if not isinstance(parsed, dict):
        return None

    error = parsed.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error

    if parsed.get("message"):
        return str(parsed["message"])

    detail = parsed.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, list):
        messages = [d.get("msg") for d in detail if isinstance(d, dict) and d.get("msg")]
        if messages:
            return "; ".join(str(m) for m in messages)

    if parsed.get("msg"):
        return str(parsed["msg"])
    return None


def extract_error_field(parsed: Any) -> Optional[str]:
    """Name of the field a validation error refers to, when the body says."""
    if not isinstance(parsed, dict):
        return None

    error = parsed.get("error")
    if isinstance(error, dict):
        for key in ("field", "param"):
            if error.get(key):
                return str(error[key])
    for key in ("field", "param"):
        if parsed.get(key):
            return str(parsed[key])

    detail = parsed.get("detail")
    if isinstance(detail, list) and detail and isinstance(detail[0], dict):
        loc = detail[0].get("loc")
        if isinstance(loc, (list, tuple)) and loc:
            return str(loc[-1])
    return None


def parse_retry_after(value: Any) -> Optional[float]:
    """Parse a retry-after hint in seconds; anything unparseable is ignored."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _retry_after(headers: Mapping[str, str], parsed: Any) -> Optional[float]:
    retry_after = parse_retry_after(headers.get("retry-after"))
    if retry_after is not None:
        return retry_after
    if isinstance(parsed, dict):
        retry_after = parse_retry_after(parsed.get("retry_after"))
        if retry_after is None and isinstance(parsed.get("error"), dict):
            retry_after = parse_retry_after(parsed["error"].get("retry_after"))
    return retry_after


def _normalize_headers(headers: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    if not headers:
        return {}
    return {str(k).lower(): v for k, v in dict(headers).items()}


def classify_error(status_code: int, body: Any, headers: Optional[Mapping[str, str]] = None) -> MistralError:
    """
    Build the taxonomy error for a non-success response.

    Args:
        status_code: HTTP status code
        body: Raw (bytes/str) or decoded response body
        headers: Response headers (any case)

    Returns:
        Exactly one MistralError subclass instance
    """
    headers = _normalize_headers(headers)
    request_id = headers.get("x-request-id")
    parsed, text = parse_body(body)

    if parsed is not _NO_BODY:
        message = extract_error_message(parsed)
    else:
        message = text.strip()[:MAX_ERROR_MESSAGE_LENGTH] if text else None

    if status_code == 401:
        return AuthenticationError(message, status_code, request_id)
    if status_code == 403:
        return PermissionDeniedError(message, status_code, request_id)
    if status_code == 404:
        return NotFoundError(message, status_code, request_id)
    if status_code == 422:
        return ValidationError(message, extract_error_field(parsed), status_code, request_id)
    if status_code == 429:
        return RateLimitError(message, _retry_after(headers, parsed), status_code, request_id)
    if 500 <= status_code <= 599:
        return ServerError(message, status_code, request_id)

    response_body = parsed if parsed is not _NO_BODY else (text if text is not None else body)
    return APIError(status_code, message, response_body, request_id)


def classify_response(status_code: int, body: Any, headers: Optional[Mapping[str, str]] = None) -> Result:
    """
    Classify one HTTP response.

    2xx responses succeed with the decoded JSON body (None when empty, the raw
    body when it is not JSON). Every other status yields one taxonomy error.

    Args:
        status_code: HTTP status code
        body: Raw (bytes/str) or decoded response body
        headers: Response headers (any case)

    Returns:
        Result holding either the value or the error
    """
    if 200 <= status_code <= 299:
        parsed, _ = parse_body(body)
        if parsed is not _NO_BODY:
            return Result(value=parsed)
        if body is None or (isinstance(body, (bytes, bytearray, str)) and not body):
            return Result(value=None)
        return Result(value=body)

    return Result.failure(classify_error(status_code, body, headers))


def network_error(exc: TransportError) -> NetworkError:
    """Map a transport failure to the Network variant."""
    return NetworkError(exc.reason, exc.message or None)


__all__ = [
    "Result",
    "classify_error",
    "classify_response",
    "extract_error_field",
    "extract_error_message",
    "network_error",
    "parse_body",
    "parse_retry_after",
]
