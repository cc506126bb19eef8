"""
Incremental SSE parser and fragment accumulator for proxied RAG streams.
"""

from __future__ import annotations

import codecs
import json
import time
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from chatrag.exceptions import StreamingError
from chatrag.models import Source

from .models import (
    AccumulatorState,
    FragmentType,
    RawSSEFrame,
    SSEEventType,
    StreamFragment,
    StreamingStats,
)

# Constants
EVENT_DELIMITER = "\n\n"
DATA_PREFIX = "data: "
HEARTBEAT_PAYLOADS = ("", "ping", "heartbeat")
DONE_MARKER = "[DONE]"

logger = structlog.get_logger(__name__)


class StreamingParser:
    """
    SSE frame extractor over a chunked byte stream.

    Bytes go through an incremental UTF-8 decoder that carries incomplete
    multi-byte sequences over to the next chunk. Decoded text is appended to
    a rolling buffer that is cut on blank-line delimiters; whatever follows
    the last delimiter stays buffered until more data (or the end) arrives.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.stats = {
            'total_frames': 0,
            'error_frames': 0,
        }

    def feed(self, chunk: bytes) -> list[RawSSEFrame]:
        """Decode one byte chunk and return every frame it completes."""
        self._buffer += self._decoder.decode(chunk)
        timestamp = time.time()
        frames: list[RawSSEFrame] = []

        boundary = self._buffer.find(EVENT_DELIMITER)
        while boundary != -1:
            segment = self._buffer[:boundary]
            self._buffer = self._buffer[boundary + len(EVENT_DELIMITER):]

            frame = self._parse_sse_event(segment, timestamp)
            if frame is not None:
                frames.append(frame)

            boundary = self._buffer.find(EVENT_DELIMITER)

        return frames

    def finish(self) -> list[RawSSEFrame]:
        """
        Flush the decoder and parse a trailing frame with no closing delimiter.
        """
        self._buffer += self._decoder.decode(b"", final=True)
        segment, self._buffer = self._buffer, ""

        frame = self._parse_sse_event(segment, time.time())
        return [frame] if frame is not None else []

    async def parse_sse_stream(
        self, byte_stream: AsyncIterable[bytes]
    ) -> AsyncGenerator[RawSSEFrame]:
        """
        Yield frames from a byte stream in arrival order.

        Raises:
            StreamingError: If reading the underlying stream fails.
        """
        try:
            async for chunk in byte_stream:
                for frame in self.feed(chunk):
                    yield frame
        except httpx.HTTPError as e:
            raise StreamingError(f"Stream error: {e}") from e

        for frame in self.finish():
            yield frame

    def _parse_sse_event(self, event_data: str, timestamp: float) -> RawSSEFrame | None:
        """Parse one delimited segment; segments without the data prefix are skipped."""
        if not event_data.startswith(DATA_PREFIX):
            return None

        payload = event_data[len(DATA_PREFIX):].strip()
        self.stats['total_frames'] += 1

        if payload == DONE_MARKER:
            return RawSSEFrame(
                event_type=SSEEventType.COMPLETION,
                data=None,
                raw_data=payload,
                timestamp=timestamp,
            )

        if payload in HEARTBEAT_PAYLOADS:
            return RawSSEFrame(
                event_type=SSEEventType.HEARTBEAT,
                data=None,
                raw_data=payload,
                timestamp=timestamp,
            )

        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as e:
            return self._error_frame(payload, f"JSON decode error: {e}", timestamp)

        if not isinstance(parsed, dict):
            return self._error_frame(
                payload, f"Expected JSON object, got {type(parsed).__name__}", timestamp
            )

        return RawSSEFrame(
            event_type=SSEEventType.CHUNK,
            data=parsed,
            raw_data=payload,
            timestamp=timestamp,
        )

    def _error_frame(self, payload: str, error: str, timestamp: float) -> RawSSEFrame:
        self.stats['error_frames'] += 1
        logger.warning("Skipping malformed stream frame", error=error, raw_data=payload)
        return RawSSEFrame(
            event_type=SSEEventType.ERROR,
            data=None,
            raw_data=payload,
            error=error,
            timestamp=timestamp,
        )

    def get_stats(self) -> dict[str, int]:
        """Get streaming statistics for monitoring."""
        return self.stats.copy()


class ChunkAccumulator:
    """
    Turns parsed frames into answer fragments.

    `response` and `token` are both appended as increments. Only a frame
    carrying `response` may bring a `data` array, which replaces the source
    list in full.
    """

    def __init__(self):
        self.state = AccumulatorState()

    @property
    def text(self) -> str:
        return self.state.text_buffer

    @property
    def sources(self) -> list[Source] | None:
        return self.state.sources

    def process_frame(self, raw_frame: RawSSEFrame) -> StreamFragment | None:
        """Apply one frame; returns None when it carries nothing to apply."""
        if raw_frame.event_type != SSEEventType.CHUNK or not raw_frame.data:
            return None

        data = raw_frame.data
        response = data.get("response")
        token = data.get("token")
        raw_sources = data.get("data")

        sources: list[Source] | None = None
        if isinstance(response, str) and (response or isinstance(raw_sources, list)):
            text = response
            if isinstance(raw_sources, list):
                sources = self._parse_sources(raw_sources)
            fragment_type = FragmentType.RESPONSE if text else FragmentType.SOURCES
        elif isinstance(token, str) and token:
            text = token
            fragment_type = FragmentType.TOKEN
        else:
            return None

        self.state.update_timing(raw_frame.timestamp)
        self.state.text_buffer += text
        if sources is not None:
            self.state.sources = sources

        return StreamFragment(
            fragment_type=fragment_type,
            text=text,
            accumulated_text=self.state.text_buffer,
            sources=sources,
        )

    @staticmethod
    def _parse_sources(raw_sources: list[Any]) -> list[Source]:
        sources: list[Source] = []
        for raw_source in raw_sources:
            try:
                sources.append(Source.model_validate(raw_source))
            except ValidationError as e:
                logger.warning(
                    "Dropping malformed source entry",
                    error_count=e.error_count(),
                    raw_source=raw_source,
                )
        return sources

    def get_streaming_stats(self, parser_stats: dict[str, int]) -> StreamingStats:
        """Combine parser counters with accumulation state."""
        return StreamingStats(
            total_frames=parser_stats.get('total_frames', 0),
            error_frames=parser_stats.get('error_frames', 0),
            fragments=self.state.fragment_count,
            total_duration=self.state.streaming_duration,
            characters=len(self.state.text_buffer),
        )

    def reset(self) -> None:
        """Reset accumulator state for new stream."""
        self.state = AccumulatorState()
