"""
Streaming-specific dataclasses for the SSE consumer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chatrag.models import Source


class SSEEventType(Enum):
    """Server-Sent Event types."""
    CHUNK = "chunk"
    COMPLETION = "completion"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


class FragmentType(Enum):
    """Kinds of interpreted frames."""
    RESPONSE = "response"
    TOKEN = "token"
    SOURCES = "sources"


@dataclass(frozen=True)
class RawSSEFrame:
    """One `data: ` frame cut from the byte stream."""
    event_type: SSEEventType
    data: dict[str, Any] | None
    raw_data: str
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class StreamFragment:
    """Interpreted frame with the accumulated answer text."""
    fragment_type: FragmentType
    text: str
    accumulated_text: str
    sources: list[Source] | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class AccumulatorState:
    """Mutable state for fragment accumulation."""
    text_buffer: str = ""
    sources: list[Source] | None = None
    fragment_count: int = 0
    first_fragment_time: float | None = None
    last_fragment_time: float | None = None

    def update_timing(self, timestamp: float) -> None:
        """Update timing information for latency tracking."""
        if self.first_fragment_time is None:
            self.first_fragment_time = timestamp
        self.last_fragment_time = timestamp
        self.fragment_count += 1

    @property
    def streaming_duration(self) -> float:
        """Calculate total streaming duration."""
        if self.first_fragment_time is None or self.last_fragment_time is None:
            return 0.0
        return self.last_fragment_time - self.first_fragment_time


@dataclass(frozen=True)
class StreamingStats:
    """Statistics for one consumed stream."""
    total_frames: int
    error_frames: int
    fragments: int
    total_duration: float
    characters: int
