"""
Mistral Client Package

Async client core for the Mistral AI REST API: request construction, response
classification, Server-Sent Events decoding and a pluggable transport.

Usage:
    from mistral_client import MistralClient

    async with MistralClient(api_key="...") as client:
        result = await client.chat.complete([{"role": "user", "content": "Hi"}])
        print(result.unwrap())
"""

__version__ = "1.0.0"

from .config import Config
from .errors import (
    APIError,
    AuthenticationError,
    ConfigError,
    ErrorKind,
    IncompleteStreamError,
    MistralError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RequestBuildError,
    ServerError,
    StreamDecodeError,
    StreamError,
    ValidationError,
)
from .request_builder import (
    FilePart,
    JsonBody,
    ListStyle,
    MultipartBody,
    RequestBuilder,
    RequestDescriptor,
)
from .response import Result, classify_error, classify_response
from .stream import (
    DecoderState,
    StreamDecoder,
    StreamEvent,
    accumulate_content,
    aiter_events,
    decode_stream,
    dispatch_events,
    extract_content,
    extract_finish_reason,
    extract_tool_calls,
    is_stream_complete,
)
from .transport import (
    HttpxTransport,
    ResponseEnvelope,
    StreamingResponse,
    Transport,
    TransportError,
    TransportOptions,
)
from .client import MistralClient


__all__ = [
    # Client
    "Config",
    "MistralClient",
    "Result",
    # Errors
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
    # Requests and responses
    "FilePart",
    "JsonBody",
    "ListStyle",
    "MultipartBody",
    "RequestBuilder",
    "RequestDescriptor",
    "classify_error",
    "classify_response",
    # Streaming
    "DecoderState",
    "StreamDecoder",
    "StreamEvent",
    "accumulate_content",
    "aiter_events",
    "decode_stream",
    "dispatch_events",
    "extract_content",
    "extract_finish_reason",
    "extract_tool_calls",
    "is_stream_complete",
    # Transport
    "HttpxTransport",
    "ResponseEnvelope",
    "StreamingResponse",
    "Transport",
    "TransportError",
    "TransportOptions",
]
