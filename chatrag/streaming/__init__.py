"""
Streaming consumption of proxied RAG answers.

- Incremental UTF-8 decoding and SSE frame extraction
- Fragment accumulation with source attachment
"""

from __future__ import annotations

from .models import (
    FragmentType,
    RawSSEFrame,
    SSEEventType,
    StreamFragment,
    StreamingStats,
)
from .parser import ChunkAccumulator, StreamingParser

__all__ = [
    "ChunkAccumulator",
    "FragmentType",
    "RawSSEFrame",
    "SSEEventType",
    "StreamFragment",
    "StreamingParser",
    "StreamingStats",
]
