"""
Transport Package

Pluggable network transports for the Mistral client core. ``Transport`` is
the capability interface; ``HttpxTransport`` is the production
implementation. Tests inject their own Transport subclasses.

Usage:
    from mistral_client.transport import HttpxTransport

    transport = HttpxTransport(timeout=30.0)
    client = MistralClient(transport=transport)
"""

from .base import (
    Headers,
    ResponseEnvelope,
    StreamingResponse,
    Transport,
    TransportError,
    TransportOptions,
)
from .httpx_transport import HttpxTransport


__all__ = [
    "Headers",
    "HttpxTransport",
    "ResponseEnvelope",
    "StreamingResponse",
    "Transport",
    "TransportError",
    "TransportOptions",
]
