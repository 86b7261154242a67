"""
Shared fixtures for the Mistral client test suite.

``FakeTransport`` is an in-memory Transport: unary calls pop scripted
ResponseEnvelopes and streaming calls pop scripted chunk lists, while every
call is recorded for inspection.
"""

import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from mistral_client import Config, MistralClient
from mistral_client.transport import (
    ResponseEnvelope,
    StreamingResponse,
    Transport,
    TransportOptions,
)


MISTRAL_ENV_VARS = (
    "MISTRAL_API_KEY",
    "MISTRAL_BASE_URL",
    "MISTRAL_TIMEOUT",
    "MISTRAL_USER_AGENT",
    "MISTRAL_LOG_LEVEL",
    "MISTRAL_LOG_FORMAT",
    "MISTRAL_LOG_FILE",
)

TEST_API_KEY = "test-key-123"
TEST_BASE_URL = "https://api.test.local"


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: List[tuple]
    body: Any
    options: TransportOptions
    stream: bool = False

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


@dataclass
class ScriptedStream:
    """One scripted streaming response; Exception items in ``chunks`` are raised mid-stream."""

    chunks: List[Any]
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=lambda: {"content-type": "text/event-stream"})


class FakeTransport(Transport):
    """In-memory transport that replays scripted responses."""

    def __init__(self, responses=None, streams=None):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.calls: List[RecordedCall] = []
        self.frames_read = 0
        self.closed = False

    async def request(self, method, url, headers, body, options):
        self.calls.append(RecordedCall(method, url, list(headers), body, options))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @asynccontextmanager
    async def stream_request(self, method, url, headers, body, options):
        self.calls.append(RecordedCall(method, url, list(headers), body, options, stream=True))
        script = self.streams.pop(0)
        if isinstance(script, Exception):
            raise script

        async def frames():
            for chunk in script.chunks:
                if isinstance(chunk, Exception):
                    raise chunk
                self.frames_read += 1
                yield chunk

        yield StreamingResponse(script.status_code, dict(script.headers), frames())

    async def close(self):
        self.closed = True


def sse(*payloads: Any, done: bool = True) -> bytes:
    """Encode payloads as an SSE body; dicts are JSON-encoded."""
    parts = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        parts.append(f"data: {data}\n\n")
    if done:
        parts.append("data: [DONE]\n\n")
    return "".join(parts).encode("utf-8")


def chat_chunk(content: str, finish_reason: Optional[str] = None) -> Dict[str, Any]:
    """A chat completion stream chunk carrying ``content``."""
    return {
        "id": "cmpl-1",
        "object": "chat.completion.chunk",
        "model": "mistral-small-latest",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}],
    }


def json_response(status_code: int, payload: Any, headers: Optional[Dict[str, str]] = None) -> ResponseEnvelope:
    return ResponseEnvelope(
        status_code=status_code,
        body=json.dumps(payload).encode("utf-8"),
        headers=headers or {"content-type": "application/json"},
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove every MISTRAL_* variable from the environment."""
    for name in MISTRAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config(clean_env):
    """Create a test configuration that ignores .env files."""
    return Config(use_dotenv=False, api_key=TEST_API_KEY, base_url=TEST_BASE_URL)


@pytest.fixture
def transport():
    """Create an empty fake transport; tests script its responses."""
    return FakeTransport()


@pytest.fixture
def client(config, transport):
    """Create a client wired to the fake transport."""
    return MistralClient(config=config, transport=transport)
