#!/usr/bin/env python3
"""
Tests for conversation state transitions.
"""

from chatrag.conversation import (
    FALLBACK_RESPONSE_TEXT,
    ConversationState,
    apply_fragment,
    build_query_with_history,
    fail_turn,
    finish_turn,
    mark_sent_message_shown,
    reset_conversation,
    should_autoscroll,
    submit_user_message,
    update_scroll_position,
)
from chatrag.models import ConversationMessage, Source


def make_history(count: int) -> tuple[ConversationMessage, ...]:
    return tuple(
        ConversationMessage(
            sender="user" if i % 2 == 0 else "assistant", text=f"m{i}"
        )
        for i in range(count)
    )


class TestBuildQueryWithHistory:

    def test_without_history(self):
        assert build_query_with_history([], "what is RAG?") == "Current query: what is RAG?"

    def test_with_history(self):
        query = build_query_with_history(make_history(2), "next")
        assert query == (
            "Previous conversation:\n"
            "User: m0\n"
            "AI: m1\n"
            "\n"
            "Current query: next"
        )

    def test_only_last_four_messages(self):
        query = build_query_with_history(make_history(7), "q")
        assert "m2" not in query
        for i in range(3, 7):
            assert f"m{i}" in query

    def test_zero_history(self):
        assert build_query_with_history(make_history(3), "q", max_history=0) == "Current query: q"


class TestSubmit:

    def test_blank_input_is_a_no_op(self):
        state = ConversationState(input_value="   ")
        for text in ("", "   ", "\n\t"):
            new_state, turn = submit_user_message(state, text)
            assert turn is None
            assert new_state is state

    def test_submit_while_loading_is_a_no_op(self):
        state = ConversationState(is_loading=True)
        new_state, turn = submit_user_message(state, "hello")
        assert turn is None
        assert new_state.messages == ()

    def test_submit_adds_user_and_empty_assistant_message(self):
        state = ConversationState(input_value="  hello  ", error="old")
        new_state, turn = submit_user_message(state, state.input_value)

        user, assistant = new_state.messages
        assert user.sender == "user" and user.text == "hello"
        assert assistant.sender == "assistant" and assistant.text == ""
        assert turn.user_message_id == user.id
        assert turn.assistant_message_id == assistant.id
        assert turn.query == "Current query: hello"
        assert new_state.input_value == ""
        assert new_state.is_loading
        assert new_state.error is None
        assert new_state.last_message_was_user

    def test_history_excludes_current_turn(self):
        state = ConversationState(messages=make_history(2))
        _, turn = submit_user_message(state, "third")
        assert turn.query.endswith("AI: m1\n\nCurrent query: third")
        assert "User: third" not in turn.query

    def test_message_ids_are_unique(self):
        state = ConversationState()
        for text in ("a", "b", "c"):
            state, _ = submit_user_message(state, text)
            state = finish_turn(state)
        ids = [m.id for m in state.messages]
        assert len(ids) == len(set(ids)) == 6


class TestTurnTransitions:

    def _started(self):
        state, turn = submit_user_message(ConversationState(), "hi")
        return state, turn.assistant_message_id

    def test_apply_fragment_sets_accumulated_text(self):
        state, message_id = self._started()
        state = apply_fragment(state, message_id, "Hel")
        state = apply_fragment(state, message_id, "Hello")
        assert state.get_message(message_id).text == "Hello"
        assert state.get_message(message_id).sources is None

    def test_apply_fragment_with_sources(self):
        state, message_id = self._started()
        sources = [Source(file_id="f1", filename="doc.pdf")]
        state = apply_fragment(state, message_id, "Hello", sources)
        assert state.get_message(message_id).sources == sources

    def test_other_messages_untouched(self):
        state, message_id = self._started()
        user_before = state.messages[0]
        state = apply_fragment(state, message_id, "x")
        assert state.messages[0] == user_before

    def test_fail_turn(self):
        state, message_id = self._started()
        state = apply_fragment(state, message_id, "partial")
        state = fail_turn(state, message_id, "API Error: Bad Gateway")
        message = state.get_message(message_id)
        assert message.text == FALLBACK_RESPONSE_TEXT
        assert message.sources == []
        assert state.error == "API Error: Bad Gateway"

    def test_fail_turn_without_reason(self):
        state, message_id = self._started()
        state = fail_turn(state, message_id, "")
        assert state.error == "Failed to get response from AI."

    def test_finish_turn(self):
        state, _ = self._started()
        state = finish_turn(state)
        assert not state.is_loading
        assert not state.last_message_was_user

    def test_reset(self):
        state, _ = self._started()
        state = reset_conversation(fail_turn(state, state.messages[1].id, "boom"))
        assert state == ConversationState()


class TestScrolling:

    def test_at_bottom_within_threshold(self):
        state = update_scroll_position(ConversationState(), 495, 1000, 500)
        assert state.is_at_bottom

    def test_scrolled_up(self):
        state = update_scroll_position(ConversationState(), 100, 1000, 500)
        assert not state.is_at_bottom
        assert not should_autoscroll(state)

    def test_user_just_sent_forces_scroll(self):
        state = update_scroll_position(ConversationState(), 100, 1000, 500)
        state, _ = submit_user_message(state, "hello")
        assert should_autoscroll(state)
        assert not should_autoscroll(finish_turn(state))

    def test_showing_sent_message_hands_scroll_back_to_reader(self):
        state = update_scroll_position(ConversationState(), 100, 1000, 500)
        state, _ = submit_user_message(state, "hello")
        state = mark_sent_message_shown(state)
        assert state.is_at_bottom
        assert not state.last_message_was_user

        scrolled_up = update_scroll_position(state, 0, 2000, 500)
        assert not should_autoscroll(scrolled_up)
        assert should_autoscroll(state)
