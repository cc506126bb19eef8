"""
Stream proxy between the chat client and the hosted RAG service.
"""

from __future__ import annotations

from .app import create_app, relay_stream
from .upstream import UpstreamClient

__all__ = [
    "UpstreamClient",
    "create_app",
    "relay_stream",
]
