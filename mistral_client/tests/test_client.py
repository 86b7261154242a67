"""
Tests for MistralClient wiring: building, executing, classifying and
streaming through an injected transport.
"""

import asyncio

import httpx
import pytest

from conftest import (
    TEST_API_KEY,
    TEST_BASE_URL,
    FakeTransport,
    ScriptedStream,
    chat_chunk,
    json_response,
    sse,
)

from mistral_client import MistralClient
from mistral_client.errors import (
    AuthenticationError,
    ConfigError,
    IncompleteStreamError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestBuildError,
    StreamDecodeError,
    ValidationError,
)
from mistral_client.stream import accumulate_content
from mistral_client.transport import HttpxTransport, ResponseEnvelope, TransportError


# ============================================================================
# Construction
# ============================================================================

class TestClientSetup:
    """Tests for client construction."""

    def test_default_transport(self, config):
        client = MistralClient(config=config)
        assert isinstance(client.transport, HttpxTransport)
        assert client.transport.timeout == config.get_timeout()

    def test_overrides_build_config(self, clean_env):
        clean_env.setenv("MISTRAL_API_KEY", "env-key")
        client = MistralClient(transport=FakeTransport(), base_url="https://other.test")
        assert client.config.get_api_key() == "env-key"
        assert client.builder.base_url == "https://other.test"

    def test_missing_key(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        with pytest.raises(ConfigError):
            MistralClient(transport=FakeTransport())

    def test_repr_hides_key(self, client):
        assert TEST_API_KEY not in repr(client)
        assert TEST_BASE_URL in repr(client)


# ============================================================================
# Unary calls
# ============================================================================

class TestUnaryCalls:
    """Tests for request() and execute()."""

    @pytest.mark.asyncio
    async def test_success(self, client, transport):
        transport.responses.append(json_response(200, {"object": "list", "data": []}))

        result = await client.request("GET", "/models")

        assert result.ok
        assert result.value == {"object": "list", "data": []}
        call = transport.calls[0]
        assert call.method == "GET"
        assert call.url == f"{TEST_BASE_URL}/v1/models"
        assert call.header("authorization") == f"Bearer {TEST_API_KEY}"

    @pytest.mark.asyncio
    async def test_validation_error(self, client, transport):
        transport.responses.append(json_response(422, {
            "message": "Invalid temperature",
            "detail": [{"loc": ["body", "temperature"], "msg": "must be <= 1.5"}],
        }))

        result = await client.request("POST", "/chat/completions", json={"temperature": 3})

        assert isinstance(result.error, ValidationError)
        assert result.error.field == "temperature"
        with pytest.raises(ValidationError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_rate_limited(self, client, transport):
        transport.responses.append(ResponseEnvelope(429, b'{"message": "Too many requests"}', {"retry-after": "12"}))

        result = await client.request("GET", "/models")

        assert isinstance(result.error, RateLimitError)
        assert result.error.retry_after == 12.0
        # No retries
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_network_failure(self, client, transport):
        transport.responses.append(TransportError("Request error: timed out", "timeout"))

        result = await client.request("GET", "/models")

        assert isinstance(result.error, NetworkError)
        assert result.error.reason == "timeout"

    @pytest.mark.asyncio
    async def test_build_error_raised_before_io(self, client, transport):
        with pytest.raises(RequestBuildError):
            await client.request("GET", "/files", query={"ids": ["a", "b"]})
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_timeout_defaults_to_config(self, client, transport, config):
        transport.responses.extend([json_response(200, {}), json_response(200, {})])

        await client.request("GET", "/models")
        await client.request("GET", "/models", timeout=2.5)

        assert transport.calls[0].options.timeout == config.get_timeout()
        assert transport.calls[1].options.timeout == 2.5

    @pytest.mark.asyncio
    async def test_concurrent_calls(self, client, transport):
        transport.responses.extend(json_response(200, {"n": i}) for i in range(5))

        results = await asyncio.gather(*(client.request("GET", f"/models/m{i}") for i in range(5)))

        assert all(result.ok for result in results)
        assert len(transport.calls) == 5


# ============================================================================
# Streaming calls
# ============================================================================

class TestPullStreaming:
    """Tests for stream() (pull mode)."""

    @pytest.mark.asyncio
    async def test_events_in_order(self, client, transport):
        raw = sse(chat_chunk("Hel"), chat_chunk("lo", finish_reason="stop"))
        transport.streams.append(ScriptedStream([raw[:5], raw[5:40], raw[40:]]))

        events = [event async for event in client.stream("POST", "/chat/completions", json={"stream": True})]

        assert accumulate_content(events) == "Hello"
        call = transport.calls[0]
        assert call.stream
        assert call.header("accept") == "text/event-stream"

    @pytest.mark.asyncio
    async def test_error_status_raised_before_events(self, client, transport):
        transport.streams.append(ScriptedStream([b'{"message": "Unauthorized"}'], status_code=401))

        with pytest.raises(AuthenticationError) as exc_info:
            async for _ in client.stream("POST", "/chat/completions", json={}):
                pass
        assert exc_info.value.message == "Unauthorized"

    @pytest.mark.asyncio
    async def test_malformed_event(self, client, transport):
        transport.streams.append(ScriptedStream([sse({"n": 1}, "{broken", {"n": 3})]))
        received = []

        with pytest.raises(StreamDecodeError):
            async for event in client.stream("POST", "/chat/completions", json={}):
                received.append(event.data)
        assert received == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_connection_dropped(self, client, transport):
        transport.streams.append(ScriptedStream([
            b'data: {"n": 1}\n\n',
            TransportError("Stream error: reset", "read_error"),
        ]))
        received = []

        with pytest.raises(NetworkError) as exc_info:
            async for event in client.stream("POST", "/chat/completions", json={}):
                received.append(event.data)
        assert received == [{"n": 1}]
        assert exc_info.value.reason == "read_error"

    @pytest.mark.asyncio
    async def test_early_exit_stops_reading(self, client, transport):
        frames = [sse({"n": i}, done=False) for i in range(10)]
        transport.streams.append(ScriptedStream(frames))

        stream = client.stream("POST", "/chat/completions", json={})
        first = await stream.__anext__()
        await stream.aclose()

        assert first.data == {"n": 0}
        assert transport.frames_read == 1


class TestPushStreaming:
    """Tests for stream_request() (push mode)."""

    @pytest.mark.asyncio
    async def test_callback_per_event(self, client, transport):
        transport.streams.append(ScriptedStream([sse(chat_chunk("a"), chat_chunk("b"), chat_chunk("c"))]))
        seen = []

        result = await client.stream_request("POST", "/chat/completions", seen.append, json={})

        assert result.ok
        assert result.value == 3
        assert accumulate_content(seen) == "abc"

    @pytest.mark.asyncio
    async def test_error_status(self, client, transport):
        transport.streams.append(ScriptedStream([b'{"message": "no such model"}'], status_code=404))
        seen = []

        result = await client.stream_request("POST", "/chat/completions", seen.append, json={})

        assert isinstance(result.error, NotFoundError)
        assert seen == []

    @pytest.mark.asyncio
    async def test_truncated_stream(self, client, transport):
        transport.streams.append(ScriptedStream([b'data: {"n": 1}\n\ndata: {"n"']))
        seen = []

        result = await client.stream_request("POST", "/chat/completions", seen.append, json={})

        assert [event.data for event in seen] == [{"n": 1}]
        assert isinstance(result.error, IncompleteStreamError)

    @pytest.mark.asyncio
    async def test_connect_failure(self, client, transport):
        transport.streams.append(TransportError("Stream error: refused", "connect_error"))

        result = await client.stream_request("POST", "/chat/completions", lambda event: None, json={})

        assert isinstance(result.error, NetworkError)
        assert result.error.reason == "connect_error"


# ============================================================================
# End to end over httpx
# ============================================================================

class TestClientOverHttpx:
    """Tests running the client against httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_stream_over_httpx(self, config):
        def handler(request):
            body = sse(chat_chunk("Bon"), chat_chunk("jour", finish_reason="stop"))
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with MistralClient(config=config, transport=HttpxTransport(client=http_client)) as client:
            events = [event async for event in client.stream("POST", "/chat/completions", json={})]
        await http_client.aclose()

        assert accumulate_content(events) == "Bonjour"

    @pytest.mark.asyncio
    async def test_unary_over_httpx(self, config):
        def handler(request):
            return httpx.Response(403, json={"message": "Forbidden"}, headers={"x-request-id": "abc"})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = MistralClient(config=config, transport=HttpxTransport(client=http_client))

        result = await client.request("DELETE", "/models/ft:my-model")
        await http_client.aclose()

        assert result.error.status_code == 403
        assert result.error.request_id == "abc"

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_transport(self, client, transport):
        await client.aclose()
        assert not transport.closed
