"""
httpx-based transport implementation.

Executes request descriptors with ``httpx.AsyncClient``. JSON bodies go out
as pre-encoded bytes; multipart bodies are handed to httpx as form data and
files so that it can generate the boundary parameter.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..request_builder import JsonBody, MultipartBody
from .base import (
    Headers,
    ResponseEnvelope,
    StreamingResponse,
    Transport,
    TransportError,
    TransportOptions,
)


logger = logging.getLogger(__name__)


def _reason_for(exc: httpx.RequestError) -> str:
    """Short reason string for an httpx request failure."""
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.ConnectError):
        return "connect_error"
    if isinstance(exc, httpx.ReadError):
        return "read_error"
    if isinstance(exc, httpx.WriteError):
        return "write_error"
    if isinstance(exc, httpx.RemoteProtocolError):
        return "remote_protocol_error"
    return type(exc).__name__.lower()


def _normalize_headers(headers: httpx.Headers) -> Dict[str, str]:
    return {key.lower(): value for key, value in headers.items()}


class HttpxTransport(Transport):
    """
    Transport backed by ``httpx.AsyncClient``.

    No retries are performed; a failed attempt surfaces immediately as
    TransportError.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the httpx transport.

        Args:
            timeout: Default read/write/pool timeout in seconds
            connect_timeout: Connection timeout in seconds
            client: Pre-built AsyncClient to use instead of creating one
                (it is not closed by this transport)
        """
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
        )

        logger.debug(f"HttpxTransport initialized (timeout={timeout}s)")

    def _timeout(self, options: TransportOptions) -> httpx.Timeout:
        if options.timeout is None:
            return httpx.Timeout(self.timeout, connect=self.connect_timeout)
        return httpx.Timeout(options.timeout, connect=min(self.connect_timeout, options.timeout))

    def _request_kwargs(self, headers: Headers, body: Any, options: TransportOptions) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"timeout": self._timeout(options)}

        if isinstance(body, MultipartBody):
            # httpx adds "multipart/form-data; boundary=..." itself
            kwargs["headers"] = [(k, v) for k, v in headers if k.lower() != "content-type"]
            data: Dict[str, Any] = {}
            for name, value in body.fields:
                if name in data:
                    existing = data[name]
                    data[name] = (existing if isinstance(existing, list) else [existing]) + [value]
                else:
                    data[name] = value
            kwargs["data"] = data
            kwargs["files"] = {
                body.file.field_name: (body.file.filename, body.file.content, body.file.content_type)
            }
        else:
            kwargs["headers"] = list(headers)
            if isinstance(body, JsonBody):
                kwargs["content"] = body.encode()
            elif isinstance(body, (bytes, str)):
                kwargs["content"] = body
            elif body is not None:
                raise TypeError(f"Unsupported request body type: {type(body).__name__}")

        return kwargs

    async def request(
        self,
        method: str,
        url: str,
        headers: Headers,
        body: Any,
        options: TransportOptions,
    ) -> ResponseEnvelope:
        kwargs = self._request_kwargs(headers, body, options)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise TransportError(f"Request error: {e}", _reason_for(e)) from e

        return ResponseEnvelope(
            status_code=response.status_code,
            body=response.content,
            headers=_normalize_headers(response.headers),
        )

    @asynccontextmanager
    async def stream_request(
        self,
        method: str,
        url: str,
        headers: Headers,
        body: Any,
        options: TransportOptions,
    ) -> AsyncIterator[StreamingResponse]:
        kwargs = self._request_kwargs(headers, body, options)
        try:
            async with self._client.stream(method, url, **kwargs) as response:
                yield StreamingResponse(
                    status_code=response.status_code,
                    headers=_normalize_headers(response.headers),
                    frames=response.aiter_bytes(),
                )
        except httpx.RequestError as e:
            raise TransportError(f"Stream error: {e}", _reason_for(e)) from e

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    def __repr__(self) -> str:
        return f"HttpxTransport(timeout={self.timeout})"
