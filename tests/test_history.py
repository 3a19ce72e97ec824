"""Tests for jarvis.planner.history — weighted window and session state."""
from __future__ import annotations

import json

import pytest

from jarvis.core import constants as C
from jarvis.planner.history import ConversationSession, HistoryStore


def _filled(n: int, **kwargs) -> HistoryStore:
    store = HistoryStore(**kwargs)
    for i in range(n):
        store.append("user" if i % 2 == 0 else "assistant", f"m{i}", float(i))
    return store


class TestWeightedWindow:

    def test_window_keeps_newest_five(self):
        weighted = _filled(7).weighted()
        assert [t.content for t in weighted] == ["m2", "m3", "m4", "m5", "m6"]

    def test_newest_turn_weighs_most(self):
        weighted = _filled(7).weighted()
        assert [t.weight for t in weighted] == [0.2, 0.4, 0.6, 0.8, 1.0]

    def test_short_history_uses_top_weights(self):
        weighted = _filled(2).weighted()
        assert [t.weight for t in weighted] == [0.8, 1.0]

    def test_empty_history(self):
        assert HistoryStore().weighted() == []

    def test_weighted_view_does_not_mutate_turns(self):
        store = _filled(3)
        store.weighted()
        assert [t.content for t in store.turns] == ["m0", "m1", "m2"]

    def test_custom_window(self):
        weighted = _filled(4, window=3, weights=(1.0, 0.5, 0.25), cap=6).weighted()
        assert [(t.content, t.weight) for t in weighted] == [("m1", 0.25), ("m2", 0.5), ("m3", 1.0)]

    def test_weights_must_match_window(self):
        with pytest.raises(ValueError):
            HistoryStore(window=3, weights=(1.0, 0.5))


class TestRetention:

    def test_raw_turns_capped(self):
        store = _filled(25)
        assert len(store) == C.RAW_HISTORY_CAP
        assert store.turns[0].content == "m15"

    def test_cap_never_below_window(self):
        store = _filled(8, cap=2)
        assert len(store) == C.HISTORY_WINDOW

    def test_append_records_action(self):
        store = HistoryStore()
        turn = store.append("assistant", "sent", 1.0, action=C.DRAFT_SEND)
        assert turn.action == C.DRAFT_SEND
        assert store.last_assistant() is turn


class TestDerivedQueries:

    def test_last_user_skips_current_message(self):
        store = HistoryStore()
        store.append("user", "first", 1.0)
        store.append("assistant", "reply", 2.0)
        store.append("user", "second", 3.0)
        assert store.last_user().content == "first"
        assert store.last_user(exclude_current=False).content == "second"

    def test_awaiting_draft_content(self):
        store = HistoryStore()
        store.append("assistant", "ok, what do you wanna announce? give me the text", 1.0)
        assert store.is_awaiting_draft_content()
        assert not store.is_awaiting_send_confirmation()

    def test_awaiting_send_confirmation(self):
        store = HistoryStore()
        store.append("assistant", 'here\'s the announcement:\n\n"hi"\n\nreply "send" to blast it out', 1.0)
        assert store.is_awaiting_send_confirmation()

    def test_no_assistant_turn(self):
        assert not HistoryStore().is_awaiting_draft_content()


class TestSessionState:

    def test_round_trip_keeps_pending_follow_ups(self):
        session = ConversationSession(pending_excuse="poll-1", pending_confirmation={"event_id": "evt-1"})
        session.history.append("user", "no", 10.0)
        session.history.append("assistant", "why?", 11.0, action=C.POLL_RESPONSE)
        session.updated_at = 11.0

        restored = ConversationSession.deserialize(session.serialize())
        assert restored.pending_excuse == "poll-1"
        assert restored.pending_confirmation == {"event_id": "evt-1"}
        assert restored.updated_at == 11.0
        assert [(t.role, t.content, t.action) for t in restored.history.turns] == [
            ("user", "no", None),
            ("assistant", "why?", C.POLL_RESPONSE),
        ]

    @pytest.mark.parametrize("raw", [None, "", "not json", "42", '{"turns": [{"role": "robot"}]}',
                                     '{"pending_confirmation": "yes"}'])
    def test_unreadable_state_starts_fresh(self, raw):
        session = ConversationSession.deserialize(raw)
        assert len(session.history) == 0
        assert session.pending_excuse is None
        assert session.pending_confirmation is None

    def test_bare_turn_list_accepted(self):
        raw = json.dumps([{"role": "user", "content": "hey", "timestamp": 1}])
        session = ConversationSession.deserialize(raw)
        assert session.history.turns[0].content == "hey"

    def test_deserialize_applies_window(self):
        session = ConversationSession(history=_filled(8))
        restored = ConversationSession.deserialize(session.serialize(), window=2, weights=(1.0, 0.5), cap=4)
        assert len(restored.history) == 4
        assert len(restored.history.weighted()) == 2
