"""
Transport Base Definitions

This module defines the pluggable transport capability used by the client
core. A transport performs the network I/O for one request and nothing else:
it does not retry, classify status codes, or decode event streams.

Two operations are required:

    request()         unary call, returns a ResponseEnvelope
    stream_request()  async context manager yielding a StreamingResponse whose
                      frames are pulled lazily as the caller iterates

Failures that happen before an HTTP response exists (timeouts, DNS, refused or
reset connections) are raised as TransportError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Dict,
    Optional,
    Sequence,
    Tuple,
    Union,
)


Headers = Sequence[Tuple[str, str]]


@dataclass(frozen=True)
class TransportOptions:
    """Per-call options handed to a transport."""

    # Seconds; None falls back to the transport's default
    timeout: Optional[float] = None


@dataclass
class ResponseEnvelope:
    """Status, body and headers of one completed HTTP response."""

    status_code: int
    body: Union[bytes, str, Any] = b""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class StreamingResponse:
    """
    An open streaming HTTP response.

    ``frames`` yields raw byte chunks exactly as they arrive; chunk boundaries
    carry no meaning. The response is only valid inside the transport's
    ``stream_request`` context.
    """

    status_code: int
    headers: Dict[str, str]
    frames: AsyncIterator[bytes]

    async def read(self) -> bytes:
        """Drain the remaining frames into one body (used for error responses)."""
        chunks = []
        async for chunk in self.frames:
            chunks.append(chunk)
        return b"".join(chunks)


class TransportError(Exception):
    """Failure before any HTTP response was received."""

    def __init__(self, message: str, reason: str = "transport_error"):
        """
        Initialize the transport error.

        Args:
            message: Error message
            reason: Short machine-readable reason (e.g. "timeout")
        """
        self.message = message
        self.reason = reason
        super().__init__(message)


class Transport(ABC):
    """Abstract network transport for Mistral API requests."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        headers: Headers,
        body: Any,
        options: TransportOptions,
    ) -> ResponseEnvelope:
        """
        Perform one unary HTTP request.

        Args:
            method: HTTP method
            url: Absolute request URL including the query string
            headers: Ordered header pairs
            body: None, a JsonBody or a MultipartBody
            options: Per-call options

        Returns:
            The response envelope, whatever its status code

        Raises:
            TransportError: If no HTTP response could be obtained
        """
        ...

    @abstractmethod
    def stream_request(
        self,
        method: str,
        url: str,
        headers: Headers,
        body: Any,
        options: TransportOptions,
    ) -> AsyncContextManager[StreamingResponse]:
        """
        Open a streaming HTTP request.

        Args:
            method: HTTP method
            url: Absolute request URL including the query string
            headers: Ordered header pairs
            body: None, a JsonBody or a MultipartBody
            options: Per-call options

        Returns:
            Async context manager yielding the open StreamingResponse; leaving
            the context closes the underlying connection

        Raises:
            TransportError: If the request fails before or while streaming
        """
        ...

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = [
    "Headers",
    "ResponseEnvelope",
    "StreamingResponse",
    "Transport",
    "TransportError",
    "TransportOptions",
]
