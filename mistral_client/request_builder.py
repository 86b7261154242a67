"""
Request construction for the Mistral API.

Turns a logical call (method, path, optional JSON or multipart body, optional
query parameters) into an immutable RequestDescriptor that any Transport can
execute. Every descriptor carries bearer authentication and exactly one
content type.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from .errors import ConfigError, RequestBuildError


logger = logging.getLogger(__name__)


API_VERSION_PREFIX = "/v1"

JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class ListStyle(Enum):
    """How a list-valued query parameter is put on the wire."""
    COMMA = "comma"      # status=QUEUED,RUNNING
    REPEAT = "repeat"    # sample_type=a&sample_type=b


# Per-field list conventions, as each endpoint family expects them
LIST_PARAM_STYLES: Dict[str, ListStyle] = {
    "status": ListStyle.COMMA,
    "sample_type": ListStyle.REPEAT,
    "source": ListStyle.REPEAT,
}


@dataclass(frozen=True)
class JsonBody:
    """A structured value sent as ``application/json``."""

    value: Any

    def encode(self) -> bytes:
        return json.dumps(self.value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class FilePart:
    """The single ``file`` part of a multipart upload."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
    field_name: str = "file"


@dataclass(frozen=True)
class MultipartBody:
    """Ordered form fields followed by one file part."""

    fields: Tuple[Tuple[str, str], ...]
    file: FilePart


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything a transport needs to execute one call."""

    method: str
    path: str
    url: str
    headers: Tuple[Tuple[str, str], ...]
    body: Union[None, JsonBody, MultipartBody] = None
    query: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    stream: bool = False

    def header(self, name: str) -> Optional[str]:
        """Return the first header value matching ``name`` (case-insensitive)."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    @property
    def content_type(self) -> Optional[str]:
        return self.header("content-type")


def versioned_path(path: str) -> str:
    """Ensure a leading slash and the API version segment."""
    if not path.startswith("/"):
        path = "/" + path
    if path == API_VERSION_PREFIX or path.startswith(API_VERSION_PREFIX + "/"):
        return path
    return API_VERSION_PREFIX + path


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC with a ``Z`` suffix (naive means UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return _format_scalar(value.value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


def encode_query(
    query: Optional[Mapping[str, Any]],
    list_styles: Optional[Mapping[str, ListStyle]] = None,
) -> Tuple[Tuple[str, str], ...]:
    """
    Serialize query parameters into ordered string pairs.

    Args:
        query: Parameter mapping; None values are dropped
        list_styles: Per-call additions to LIST_PARAM_STYLES

    Returns:
        Ordered (name, value) pairs ready for percent-encoding

    Raises:
        RequestBuildError: If a list value has no configured list style
    """
    if not query:
        return ()

    styles = dict(LIST_PARAM_STYLES)
    if list_styles:
        styles.update(list_styles)

    pairs = []
    for name, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            style = styles.get(name)
            if style is None:
                raise RequestBuildError(
                    f"No list convention configured for query parameter '{name}'"
                )
            items = [_format_scalar(item) for item in value if item is not None]
            if not items:
                continue
            if style is ListStyle.COMMA:
                pairs.append((name, ",".join(items)))
            else:
                pairs.extend((name, item) for item in items)
        else:
            pairs.append((name, _format_scalar(value)))
    return tuple(pairs)


class RequestBuilder:
    """Builds authenticated request descriptors for one configured client."""

    def __init__(self, api_key: str, base_url: str, user_agent: str):
        """
        Initialize the request builder.

        Args:
            api_key: Mistral API key used for bearer authentication
            base_url: Service root, e.g. ``https://api.mistral.ai``
            user_agent: User-Agent header value

        Raises:
            ConfigError: If the API key is missing
        """
        if not api_key or not str(api_key).strip():
            raise ConfigError("API key is required", "apiKey")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent

    def build(
        self,
        method: str,
        path: str,
        json: Any = None,
        multipart: Optional[MultipartBody] = None,
        query: Optional[Mapping[str, Any]] = None,
        stream: bool = False,
        list_styles: Optional[Mapping[str, ListStyle]] = None,
    ) -> RequestDescriptor:
        """
        Build a request descriptor.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            path: Endpoint path; the version prefix is added when missing
            json: Structured body to send as JSON (optional)
            multipart: Multipart upload body (optional)
            query: Query parameters (optional)
            stream: Whether the response will be consumed as an event stream
            list_styles: Per-call list conventions for query parameters

        Returns:
            Immutable request descriptor

        Raises:
            RequestBuildError: On an unknown method, both body kinds at once,
                or an unconfigured list-valued query parameter
        """
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise RequestBuildError(f"Unsupported HTTP method: {method}")
        if json is not None and multipart is not None:
            raise RequestBuildError("A request body is either JSON or multipart, not both")
        if multipart is not None and not isinstance(multipart, MultipartBody):
            raise RequestBuildError("multipart must be a MultipartBody")

        path = versioned_path(path)
        query_pairs = encode_query(query, list_styles)

        url = self.base_url + path
        if query_pairs:
            url = f"{url}?{urlencode(query_pairs)}"

        if multipart is not None:
            body = multipart
            content_type = MULTIPART_CONTENT_TYPE
        else:
            body = JsonBody(json) if json is not None else None
            content_type = JSON_CONTENT_TYPE

        headers = [
            ("authorization", f"Bearer {self._api_key}"),
            ("user-agent", self.user_agent),
            ("content-type", content_type),
        ]
        if stream:
            headers.append(("accept", EVENT_STREAM_CONTENT_TYPE))

        logger.debug(f"Built {method} request for {path}")

        return RequestDescriptor(
            method=method,
            path=path,
            url=url,
            headers=tuple(headers),
            body=body,
            query=query_pairs,
            stream=stream,
        )

    def __repr__(self) -> str:
        return f"RequestBuilder(base_url={self.base_url!r})"


__all__ = [
    "API_VERSION_PREFIX",
    "FilePart",
    "JsonBody",
    "LIST_PARAM_STYLES",
    "ListStyle",
    "MultipartBody",
    "RequestBuilder",
    "RequestDescriptor",
    "encode_query",
    "format_timestamp",
    "versioned_path",
]
