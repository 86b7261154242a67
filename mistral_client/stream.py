"""
Server-Sent Events decoding for streaming Mistral responses.

The decoder consumes raw byte chunks in whatever sizes the network delivers
them and emits fully decoded JSON events in arrival order. Chunk boundaries
never change the result: a stream fed one byte at a time decodes to the same
events as the same stream fed in one piece.

Wire format handled here:

    data: {"id": "...", "choices": [...]}   <- payload line(s)
                                            <- blank line ends the event
    : keep-alive                            <- comment, ignored
    data: [DONE]                            <- sentinel, ends the stream

Three drivers share the one StreamDecoder state machine:

    decode_stream()    sync generator over an iterable of byte chunks
    aiter_events()     async generator over an async iterable of chunks
    dispatch_events()  push mode; invokes a callback per event
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    Callable,
    Iterable,
    Iterator,
    AsyncIterator,
    List,
    Optional,
)

from .errors import IncompleteStreamError, StreamDecodeError, StreamError
from .response import Result


logger = logging.getLogger(__name__)


DONE_SENTINEL = "[DONE]"


class DecoderState(Enum):
    """Stream decoder state enumeration."""
    OPEN = "open"
    EMITTING = "emitting"
    CLOSED = "closed"
    ERRORED = "errored"


@dataclass(frozen=True)
class StreamEvent:
    """One decoded event and its position in the stream."""

    index: int
    data: Any
    event: Optional[str] = None
    id: Optional[str] = None


class StreamBuffer:
    """
    Accumulator for bytes that do not yet form a complete line.

    Owned by exactly one decoder; discarded with it.
    """

    def __init__(self):
        self._data = bytearray()

    def append(self, chunk: bytes) -> None:
        self._data.extend(chunk)

    def pop_line(self) -> Optional[bytes]:
        """Remove and return the next complete line without its terminator."""
        end = self._data.find(b"\n")
        if end < 0:
            return None
        line = bytes(self._data[:end])
        del self._data[:end + 1]
        if line.endswith(b"\r"):
            line = line[:-1]
        return line

    def peek(self) -> bytes:
        return bytes(self._data)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class StreamDecoder:
    """
    Incremental SSE decoder.

    States move ``OPEN -> EMITTING -> CLOSED``; a malformed event or an
    unterminated stream moves to ``ERRORED`` instead. Once CLOSED or ERRORED
    the decoder ignores further input.
    """

    def __init__(self, encoding: str = "utf-8"):
        """
        Initialize the stream decoder.

        Args:
            encoding: Text encoding of the event stream
        """
        self.encoding = encoding
        self._buffer = StreamBuffer()
        self._state = DecoderState.OPEN
        self._data_lines: List[str] = []
        self._event_name: Optional[str] = None
        self._event_id: Optional[str] = None
        self._emitted = 0
        self.error: Optional[StreamError] = None

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def finished(self) -> bool:
        """True once the decoder is CLOSED or ERRORED."""
        return self._state in (DecoderState.CLOSED, DecoderState.ERRORED)

    @property
    def emitted(self) -> int:
        """Number of events emitted so far."""
        return self._emitted

    def feed(self, data: bytes) -> List[StreamEvent]:
        """
        Feed raw bytes and return the events they complete.

        A malformed event stops decoding: the events completed before it are
        still returned and ``self.error`` holds the single StreamDecodeError.

        Args:
            data: Next chunk of the byte stream

        Returns:
            Newly completed events, in arrival order
        """
        if self.finished:
            if data:
                logger.debug(f"Ignoring {len(data)} bytes received after stream {self._state.value}")
            return []

        self._buffer.append(data)
        events = []

        while not self.finished:
            raw_line = self._buffer.pop_line()
            if raw_line is None:
                break
            event = self._process_line(raw_line)
            if event is not None:
                events.append(event)

        return events

    def close(self) -> None:
        """
        Signal the end of the byte stream.

        The pending event, including an unterminated last line, is dispatched
        one final time: if it is the ``[DONE]`` sentinel the stream closed
        normally. Any other leftover means the stream was cut short and the
        decoder moves to ERRORED with an IncompleteStreamError.
        """
        if self.finished:
            return

        fragment = self._buffer.peek()
        data_lines = list(self._data_lines)

        if fragment.strip():
            try:
                name, value = self._parse_field(fragment.rstrip(b"\r").decode(self.encoding))
            except UnicodeDecodeError:
                name, value = None, ""
            if name != "data":
                self._fail(IncompleteStreamError(fragment=fragment))
                return
            data_lines.append(value)

        if data_lines:
            if "\n".join(data_lines).strip() != DONE_SENTINEL:
                self._fail(IncompleteStreamError(fragment=fragment))
                return
            logger.debug(f"Stream complete after {self._emitted} events")
        else:
            logger.debug(f"Stream ended without {DONE_SENTINEL} after {self._emitted} events")

        self._state = DecoderState.CLOSED
        self._buffer.clear()
        self._data_lines = []

    @staticmethod
    def _parse_field(line: str):
        """Split an SSE line into ``(field, value)``."""
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        return name, value

    def _process_line(self, raw_line: bytes) -> Optional[StreamEvent]:
        try:
            line = raw_line.decode(self.encoding)
        except UnicodeDecodeError as e:
            self._fail(StreamDecodeError(f"Invalid {self.encoding} in stream: {e}", position=self._emitted))
            return None

        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, value = self._parse_field(line)

        if name == "data":
            self._data_lines.append(value)
        elif name == "event":
            self._event_name = value or None
        elif name == "id":
            self._event_id = value or None
        # "retry" and unknown fields are ignored
        return None

    def _dispatch(self) -> Optional[StreamEvent]:
        if not self._data_lines:
            # Blank separator with no pending payload
            self._event_name = None
            return None

        payload = "\n".join(self._data_lines)
        event_name, event_id = self._event_name, self._event_id
        self._data_lines = []
        self._event_name = None

        if payload.strip() == DONE_SENTINEL:
            logger.debug(f"Stream complete after {self._emitted} events")
            self._state = DecoderState.CLOSED
            self._buffer.clear()
            return None

        try:
            data = json.loads(payload)
        except ValueError as e:
            self._fail(StreamDecodeError(
                f"Invalid JSON in stream event {self._emitted}: {e}",
                payload=payload,
                position=self._emitted,
            ))
            return None

        event = StreamEvent(index=self._emitted, data=data, event=event_name, id=event_id)
        self._emitted += 1
        self._state = DecoderState.EMITTING
        return event

    def _fail(self, error: StreamError) -> None:
        logger.error(f"Stream decoding failed: {error}")
        self.error = error
        self._state = DecoderState.ERRORED
        self._buffer.clear()
        self._data_lines = []

    def __repr__(self) -> str:
        return f"StreamDecoder(state={self._state.value}, emitted={self._emitted})"


# ============================================================================
# Drivers
# ============================================================================

def decode_stream(chunks: Iterable[bytes], decoder: Optional[StreamDecoder] = None) -> Iterator[StreamEvent]:
    """
    Decode an iterable of byte chunks, yielding events lazily.

    Raises:
        StreamError: After every event preceding the failure has been yielded
    """
    decoder = decoder or StreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.error is not None:
            raise decoder.error
        if decoder.finished:
            return
    decoder.close()
    if decoder.error is not None:
        raise decoder.error


async def aiter_events(
    frames: AsyncIterable[bytes],
    decoder: Optional[StreamDecoder] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Decode an async iterable of byte chunks, yielding events as they complete.

    Iteration stops at the ``[DONE]`` sentinel without reading further frames.

    Raises:
        StreamError: After every event preceding the failure has been yielded
    """
    decoder = decoder or StreamDecoder()
    async for chunk in frames:
        for event in decoder.feed(chunk):
            yield event
        if decoder.error is not None:
            raise decoder.error
        if decoder.finished:
            return
    decoder.close()
    if decoder.error is not None:
        raise decoder.error


async def dispatch_events(
    frames: AsyncIterable[bytes],
    callback: Callable[[StreamEvent], Any],
    decoder: Optional[StreamDecoder] = None,
) -> Result:
    """
    Push mode: invoke ``callback`` once per event, sequentially and in order.

    Args:
        frames: Async iterable of raw byte chunks
        callback: Called with each StreamEvent; exceptions it raises propagate
        decoder: Decoder to use (a fresh one by default)

    Returns:
        Result whose value is the number of events delivered, or whose error is
        the single StreamError that ended the stream
    """
    decoder = decoder or StreamDecoder()
    try:
        async for event in aiter_events(frames, decoder):
            callback(event)
    except StreamError as e:
        return Result(value=decoder.emitted, error=e)
    return Result(value=decoder.emitted)


# ============================================================================
# Chat chunk helpers
# ============================================================================

def _choice(chunk: Any, choice_index: int) -> Optional[dict]:
    if isinstance(chunk, StreamEvent):
        chunk = chunk.data
    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not (0 <= choice_index < len(choices)):
        return None
    choice = choices[choice_index]
    return choice if isinstance(choice, dict) else None


def extract_content(chunk: Any, choice_index: int = 0) -> Optional[str]:
    """Delta text of one choice in a chat completion chunk."""
    choice = _choice(chunk, choice_index)
    delta = choice.get("delta") if choice else None
    return delta.get("content") if isinstance(delta, dict) else None


def extract_tool_calls(chunk: Any, choice_index: int = 0) -> Optional[list]:
    choice = _choice(chunk, choice_index)
    delta = choice.get("delta") if choice else None
    return delta.get("tool_calls") if isinstance(delta, dict) else None


def extract_finish_reason(chunk: Any, choice_index: int = 0) -> Optional[str]:
    choice = _choice(chunk, choice_index)
    return choice.get("finish_reason") if choice else None


def is_stream_complete(chunk: Any) -> bool:
    """True when the first choice of the chunk carries a finish reason."""
    return extract_finish_reason(chunk) is not None


def accumulate_content(chunks: Iterable[Any], choice_index: int = 0) -> str:
    """Concatenate the delta text of a sequence of chunks."""
    parts = []
    for chunk in chunks:
        content = extract_content(chunk, choice_index)
        if isinstance(content, str):
            parts.append(content)
    return "".join(parts)


__all__ = [
    "DONE_SENTINEL",
    "DecoderState",
    "StreamBuffer",
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
]
