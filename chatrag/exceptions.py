"""
Error types for the RAG chat proxy and stream consumer.

This module provides the error hierarchy used on both sides of the stream:
- Missing upstream configuration
- Upstream failures with the raw upstream detail preserved
- Failures while reading a proxied stream
"""

from __future__ import annotations


class ChatRAGError(Exception):
    """Base error with optional HTTP status and detail text."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ConfigurationError(ChatRAGError):
    """Required upstream settings are absent."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message, status_code=500)
        self.missing = missing or []


class UpstreamError(ChatRAGError):
    """Upstream answered with a non-success status or without a body."""

    def __init__(
        self,
        message: str,
        status_code: int,
        details: str | None = None,
    ):
        super().__init__(message, status_code=status_code, details=details)


class StreamingError(ChatRAGError):
    """Streaming-specific errors."""
    pass
