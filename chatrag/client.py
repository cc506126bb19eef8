"""
Stream consumer for the ChatRAG proxy.

ChatClient owns one conversation. Each `send` runs a single turn: the query
(with recent history) is posted to the proxy, the SSE body is read chunk by
chunk, and every fragment is applied to the transcript in arrival order.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import structlog

from chatrag.conversation import (
    DEFAULT_MAX_HISTORY_MESSAGES,
    ConversationState,
    Turn,
    apply_fragment,
    fail_turn,
    finish_turn,
    mark_sent_message_shown,
    reset_conversation,
    should_autoscroll,
    submit_user_message,
    update_scroll_position,
)
from chatrag.exceptions import StreamingError
from chatrag.streaming import ChunkAccumulator, StreamingParser, StreamingStats

# Called with the new state and whether the view should jump to the bottom
UpdateCallback = Callable[[ConversationState, bool], None]

logger = structlog.get_logger(__name__)


class ChatClient:
    """HTTP client that streams answers from the proxy into a conversation."""

    def __init__(
        self,
        proxy_url: str,
        *,
        max_history: int = DEFAULT_MAX_HISTORY_MESSAGES,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
        on_update: UpdateCallback | None = None,
    ) -> None:
        self.proxy_url = proxy_url
        self.max_history = max_history
        self.on_update = on_update
        self.state = ConversationState()
        self.last_stats: StreamingStats | None = None
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=timeout, transport=transport
        )
        self._logger = logger.bind(component="chat_client")

    @classmethod
    def from_config(
        cls, client_config: dict[str, Any], **kwargs: Any
    ) -> ChatClient:
        return cls(
            client_config["proxy_url"],
            max_history=client_config["max_history_messages"],
            timeout=client_config.get("timeout", 120.0),
            **kwargs,
        )

    def _set_state(self, state: ConversationState, scroll_to_bottom: bool = False) -> None:
        self.state = state
        if self.on_update is not None:
            self.on_update(state, scroll_to_bottom)

    async def send(self, text: str) -> ConversationState:
        """
        Submit `text` and stream the answer to completion.

        Blank input or a call made while another turn is streaming leaves the
        conversation untouched and makes no request.
        """
        state, turn = submit_user_message(self.state, text, self.max_history)
        if turn is None:
            return self.state

        self._set_state(state, scroll_to_bottom=True)
        self.state = mark_sent_message_shown(self.state)
        turn_logger = self._logger.bind(message_id=turn.assistant_message_id)

        try:
            await self._stream_turn(turn)
        except Exception as e:
            turn_logger.error(
                "Chat submission error",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            self._set_state(
                fail_turn(self.state, turn.assistant_message_id, str(e)),
                should_autoscroll(self.state),
            )
        finally:
            self._set_state(finish_turn(self.state))

        if self.last_stats is not None:
            turn_logger.debug(
                "Turn complete",
                fragments=self.last_stats.fragments,
                error_frames=self.last_stats.error_frames,
            )
        return self.state

    async def _stream_turn(self, turn: Turn) -> None:
        self.last_stats = None
        async with self.client.stream(
            "POST", self.proxy_url, json={"query": turn.query}
        ) as response:
            if not response.is_success:
                await response.aread()
                raise StreamingError(
                    self._error_message(response), status_code=response.status_code
                )

            parser = StreamingParser()
            accumulator = ChunkAccumulator()

            async for frame in parser.parse_sse_stream(response.aiter_bytes()):
                fragment = accumulator.process_frame(frame)
                if fragment is None:
                    continue

                scroll_to_bottom = should_autoscroll(self.state)
                self._set_state(
                    apply_fragment(
                        self.state,
                        turn.assistant_message_id,
                        fragment.accumulated_text,
                        fragment.sources,
                    ),
                    scroll_to_bottom,
                )

            self.last_stats = accumulator.get_streaming_stats(parser.get_stats())

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Error text from a JSON `{error, details?}` body, else the status reason."""
        fallback = f"API Error: {response.reason_phrase}"
        try:
            payload = response.json()
        except ValueError:
            return fallback

        if not isinstance(payload, dict) or not payload.get("error"):
            return fallback

        message = str(payload["error"])
        if payload.get("details"):
            message = f"{message} ({payload['details']})"
        return message

    def reset(self) -> ConversationState:
        """Start a new chat; ignored while a response is streaming."""
        if not self.state.is_loading:
            self._set_state(reset_conversation(self.state), scroll_to_bottom=True)
        return self.state

    def update_viewport(
        self, scroll_top: float, scroll_height: float, client_height: float
    ) -> None:
        """Record where the reader's viewport currently sits."""
        self.state = update_scroll_position(
            self.state, scroll_top, scroll_height, client_height
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
