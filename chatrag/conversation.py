"""
Conversation transcript state and its transitions.

Every transition takes a ConversationState and returns a new one, so a turn
can be replayed and checked without any rendering attached.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, replace

from chatrag.models import ConversationMessage, Source

FALLBACK_RESPONSE_TEXT = "Sorry, I couldn't get a response."
DEFAULT_MAX_HISTORY_MESSAGES = 4
SCROLL_BOTTOM_THRESHOLD = 10


@dataclass(frozen=True)
class ConversationState:
    """Snapshot of one conversation and its input/loading status."""
    messages: tuple[ConversationMessage, ...] = ()
    input_value: str = ""
    is_loading: bool = False
    error: str | None = None
    is_at_bottom: bool = True
    last_message_was_user: bool = False

    @property
    def last_message(self) -> ConversationMessage | None:
        return self.messages[-1] if self.messages else None

    def get_message(self, message_id: str) -> ConversationMessage | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


@dataclass(frozen=True)
class Turn:
    """Identifiers and query text for a submitted turn."""
    user_message_id: str
    assistant_message_id: str
    query: str


def build_query_with_history(
    messages: Sequence[ConversationMessage],
    current_input: str,
    max_history: int = DEFAULT_MAX_HISTORY_MESSAGES,
) -> str:
    """
    Prefix the current input with the most recent transcript messages.

    Example:
        Previous conversation:
        User: hi
        AI: hello

        Current query: what is RAG?
    """
    history = list(messages)[-max_history:] if max_history > 0 else []

    query = ""
    if history:
        query += "Previous conversation:\n"
        for message in history:
            speaker = "User" if message.sender == "user" else "AI"
            query += f"{speaker}: {message.text}\n"
        query += "\n"
    query += f"Current query: {current_input}"
    return query


def submit_user_message(
    state: ConversationState,
    text: str,
    max_history: int = DEFAULT_MAX_HISTORY_MESSAGES,
) -> tuple[ConversationState, Turn | None]:
    """
    Start a turn for `text`.

    Returns the unchanged state and no turn when the input is blank or a
    response is still streaming.
    """
    current_input = text.strip()
    if not current_input or state.is_loading:
        return state, None

    query = build_query_with_history(state.messages, current_input, max_history)

    user_message = ConversationMessage(
        id=str(uuid.uuid4()), sender="user", text=current_input
    )
    assistant_message = ConversationMessage(
        id=str(uuid.uuid4()), sender="assistant", text=""
    )

    new_state = replace(
        state,
        messages=(*state.messages, user_message, assistant_message),
        input_value="",
        is_loading=True,
        error=None,
        last_message_was_user=True,
    )
    return new_state, Turn(
        user_message_id=user_message.id,
        assistant_message_id=assistant_message.id,
        query=query,
    )


def mark_sent_message_shown(state: ConversationState) -> ConversationState:
    """
    Record that the view has jumped to the just-sent message.

    From here on, new output follows the reader only while they stay at the
    bottom.
    """
    return replace(state, last_message_was_user=False, is_at_bottom=True)


def _update_message(
    state: ConversationState, message_id: str, **changes
) -> ConversationState:
    messages = tuple(
        message.model_copy(update=changes) if message.id == message_id else message
        for message in state.messages
    )
    return replace(state, messages=messages)


def apply_fragment(
    state: ConversationState,
    message_id: str,
    accumulated_text: str,
    sources: list[Source] | None = None,
) -> ConversationState:
    """Set the assistant message to the text accumulated so far."""
    changes: dict = {"text": accumulated_text}
    if sources is not None:
        changes["sources"] = list(sources)
    return _update_message(state, message_id, **changes)


def fail_turn(
    state: ConversationState, message_id: str, reason: str
) -> ConversationState:
    """Replace the in-progress answer with the fallback text and record the error."""
    state = _update_message(
        state, message_id, text=FALLBACK_RESPONSE_TEXT, sources=[]
    )
    return replace(state, error=reason or "Failed to get response from AI.")


def finish_turn(state: ConversationState) -> ConversationState:
    return replace(state, is_loading=False, last_message_was_user=False)


def reset_conversation(_state: ConversationState) -> ConversationState:
    """Clear the transcript; used for "new chat"."""
    return ConversationState()


def update_scroll_position(
    state: ConversationState,
    scroll_top: float,
    scroll_height: float,
    client_height: float,
) -> ConversationState:
    at_bottom = scroll_height - scroll_top - client_height < SCROLL_BOTTOM_THRESHOLD
    return replace(state, is_at_bottom=at_bottom)


def should_autoscroll(state: ConversationState) -> bool:
    """Follow new output only when the reader is already at the bottom or just sent."""
    return state.is_at_bottom or state.last_message_was_user
