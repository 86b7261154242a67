"""
Mistral API Client

This module ties the core together: it builds requests with RequestBuilder,
executes them through an injected Transport, and hands the outcome to the
response classifier or the stream decoder.

Unary calls return a Result. Streaming calls come in two modes sharing one
decoder: ``stream()`` is a lazy async iterator (pull) and ``stream_request()``
invokes a callback per event (push).
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Mapping, Optional

from .config import Config
from .errors import MistralError
from .request_builder import ListStyle, MultipartBody, RequestBuilder, RequestDescriptor
from .resources import Agents, Batch, Chat, Conversations, Embeddings, FIM, Files, FineTuning, Models
from .response import Result, classify_error, classify_response, network_error
from .stream import StreamDecoder, StreamEvent, aiter_events, dispatch_events
from .transport.base import StreamingResponse, Transport, TransportError, TransportOptions
from .transport.httpx_transport import HttpxTransport


logger = logging.getLogger(__name__)


class MistralClient:
    """
    Async client for the Mistral REST API.

    The configuration and request builder are read-only after construction;
    every call owns its own request, response and stream buffer, so one client
    can serve concurrent calls.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        **overrides: Any
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration (loaded from the environment if omitted)
            transport: Transport to execute requests (HttpxTransport by default)
            **overrides: Config keyword overrides, used only when ``config`` is omitted

        Raises:
            ConfigError: If no usable configuration is available
        """
        self.config = config or Config(**overrides)
        self.builder = RequestBuilder(
            api_key=self.config.get_api_key(),
            base_url=self.config.get_base_url(),
            user_agent=self.config.get_user_agent(),
        )
        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=self.config.get_timeout())

        # Endpoint wrappers
        self.chat = Chat(self)
        self.agents = Agents(self)
        self.fim = FIM(self)
        self.embeddings = Embeddings(self)
        self.models = Models(self)
        self.files = Files(self)
        self.batch = Batch(self)
        self.fine_tuning = FineTuning(self)
        self.conversations = Conversations(self)

        logger.debug(f"MistralClient initialized for {self.config.get_base_url()}")

    def _options(self, timeout: Optional[float]) -> TransportOptions:
        return TransportOptions(timeout=timeout if timeout is not None else self.config.get_timeout())

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
        """Build a request descriptor with this client's credentials."""
        return self.builder.build(
            method,
            path,
            json=json,
            multipart=multipart,
            query=query,
            stream=stream,
            list_styles=list_styles,
        )

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        multipart: Optional[MultipartBody] = None,
        query: Optional[Mapping[str, Any]] = None,
        list_styles: Optional[Mapping[str, ListStyle]] = None,
        timeout: Optional[float] = None,
    ) -> Result:
        """
        Perform a unary API call.

        Args:
            method: HTTP method
            path: Endpoint path (``/v1`` is added when missing)
            json: JSON body (optional)
            multipart: Multipart upload body (optional)
            query: Query parameters (optional)
            list_styles: Per-call list conventions for query parameters
            timeout: Per-call timeout in seconds

        Returns:
            Result with the decoded JSON body, or the classified error

        Raises:
            RequestBuildError: If the request itself is malformed
        """
        descriptor = self.build(
            method, path, json=json, multipart=multipart, query=query, list_styles=list_styles
        )
        return await self.execute(descriptor, timeout=timeout)

    async def execute(self, descriptor: RequestDescriptor, timeout: Optional[float] = None) -> Result:
        """Send a prepared descriptor and classify the response."""
        logger.debug(f"Making {descriptor.method} request to {descriptor.url}")

        try:
            envelope = await self.transport.request(
                descriptor.method,
                descriptor.url,
                descriptor.headers,
                descriptor.body,
                self._options(timeout),
            )
        except TransportError as e:
            error = network_error(e)
            logger.error(f"Request error: {error}")
            return Result.failure(error)

        result = classify_response(envelope.status_code, envelope.body, envelope.headers)
        if not result.ok:
            logger.warning(f"API request failed: {result.error}")
        return result

    @asynccontextmanager
    async def _open_stream(
        self,
        descriptor: RequestDescriptor,
        timeout: Optional[float],
    ) -> AsyncIterator[StreamingResponse]:
        """
        Open a streaming response, classifying non-2xx statuses.

        Raises:
            MistralError: If the call fails before any event can be decoded
        """
        logger.debug(f"Making streaming {descriptor.method} request to {descriptor.url}")

        try:
            async with self.transport.stream_request(
                descriptor.method,
                descriptor.url,
                descriptor.headers,
                descriptor.body,
                self._options(timeout),
            ) as response:
                if not 200 <= response.status_code <= 299:
                    body = await response.read()
                    error = classify_error(response.status_code, body, response.headers)
                    logger.warning(f"Streaming request failed: {error}")
                    raise error
                yield response
        except TransportError as e:
            error = network_error(e)
            logger.error(f"Streaming request error: {error}")
            raise error from e

    async def stream(
        self,
        method: str,
        path: str,
        json: Any = None,
        query: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Pull-mode streaming call.

        Events are decoded as frames arrive; leaving the loop early closes the
        connection and discards buffered bytes.

        Yields:
            StreamEvent objects in arrival order

        Raises:
            MistralError: If the request fails or the server answers non-2xx
            StreamError: If the stream is malformed or cut short, after every
                event that preceded the failure has been yielded
        """
        descriptor = self.build(method, path, json=json, query=query, stream=True)
        async with self._open_stream(descriptor, timeout) as response:
            async for event in aiter_events(response.frames, StreamDecoder()):
                yield event

    async def stream_request(
        self,
        method: str,
        path: str,
        callback: Callable[[StreamEvent], Any],
        json: Any = None,
        query: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Result:
        """
        Push-mode streaming call.

        Args:
            method: HTTP method
            path: Endpoint path
            callback: Invoked once per event, sequentially, in arrival order
            json: JSON body (optional)
            query: Query parameters (optional)
            timeout: Per-call timeout in seconds

        Returns:
            Result whose value is the number of events delivered; on failure
            the error is the MistralError or StreamError that ended the call
        """
        descriptor = self.build(method, path, json=json, query=query, stream=True)
        try:
            async with self._open_stream(descriptor, timeout) as response:
                return await dispatch_events(response.frames, callback, StreamDecoder())
        except MistralError as e:
            return Result.failure(e)

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self) -> "MistralClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"MistralClient(base_url={self.config.get_base_url()!r})"
