"""
ChatRAG: re-streams hosted RAG answers and rebuilds them on the client.

- `chatrag.proxy`: ASGI pass-through proxy to the ai-search endpoint
- `chatrag.streaming`: incremental SSE parsing and fragment accumulation
- `chatrag.client`: conversation-holding stream consumer
"""

from __future__ import annotations

__version__ = "0.1.0"
