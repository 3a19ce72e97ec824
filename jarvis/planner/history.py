"""Conversation history with a bounded, recency-weighted view.

Raw turns are kept up to ``cap``; the classifier only sees the newest
``window`` turns, weighted most-recent-first. The whole session (turns plus
pending follow-ups) serializes to one opaque string that travels with the
request/response cycle.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from jarvis.core import constants as C
from jarvis.planner.state import ConversationTurn, WeightedTurn

logger = logging.getLogger(__name__)

_STATE_VERSION = 1

# Every template that asks for draft content contains one of these
AWAITING_CONTENT_MARKERS = (
    "wanna announce",
    "wanna ask everyone",
    "send me the link",
)
# Every draft preview template contains this
AWAITING_SEND_MARKERS = ('"send"',)


class HistoryStore:
    """Append-only turn log pruned to a fixed cap.

    Args:
        turns: Existing turns, oldest first.
        window: Size of the weighted view.
        weights: Weight table, most recent first. Must have ``window`` entries.
        cap: Raw retention bound (>= window).
    """

    def __init__(
        self,
        turns: Sequence[ConversationTurn] | None = None,
        *,
        window: int = C.HISTORY_WINDOW,
        weights: Sequence[float] = C.HISTORY_WEIGHTS,
        cap: int = C.RAW_HISTORY_CAP,
    ) -> None:
        if len(weights) != window:
            raise ValueError(f"expected {window} weights, got {len(weights)}")
        self.window = window
        self.weights = tuple(weights)
        self.cap = max(cap, window)
        self.turns: list[ConversationTurn] = list(turns or [])[-self.cap:]

    def __len__(self) -> int:
        return len(self.turns)

    def append(
        self,
        role: str,
        content: str,
        timestamp: float,
        action: str | None = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(role=role, content=content, timestamp=timestamp, action=action)
        self.turns.append(turn)
        if len(self.turns) > self.cap:
            del self.turns[: len(self.turns) - self.cap]
        return turn

    def weighted(self) -> list[WeightedTurn]:
        """The newest ``window`` turns, chronological, newest weighted highest."""
        recent = self.turns[-self.window:]
        result = []
        for age, turn in enumerate(reversed(recent)):
            result.append(WeightedTurn(
                role=turn.role,
                content=turn.content,
                timestamp=turn.timestamp,
                action=turn.action,
                weight=self.weights[age],
            ))
        result.reverse()
        return result

    # --- Derived queries ---

    def last_assistant(self) -> ConversationTurn | None:
        for turn in reversed(self.turns):
            if turn.role == "assistant":
                return turn
        return None

    def last_user(self, *, exclude_current: bool = True) -> ConversationTurn | None:
        """Most recent user turn. With ``exclude_current`` the newest turn is
        skipped when it is the message being processed."""
        turns = self.turns
        if exclude_current and turns and turns[-1].role == "user":
            turns = turns[:-1]
        for turn in reversed(turns):
            if turn.role == "user":
                return turn
        return None

    def _last_assistant_contains(self, markers: Sequence[str]) -> bool:
        turn = self.last_assistant()
        if turn is None:
            return False
        text = turn.content.lower()
        return any(m in text for m in markers)

    def is_awaiting_draft_content(self) -> bool:
        return self._last_assistant_contains(AWAITING_CONTENT_MARKERS)

    def is_awaiting_send_confirmation(self) -> bool:
        return self._last_assistant_contains(AWAITING_SEND_MARKERS)

    def to_list(self) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self.turns]


@dataclass
class ConversationSession:
    """Per-user conversational state carried between messages.

    ``pending_excuse`` holds the poll id whose "No" still needs a reason;
    ``pending_confirmation`` holds a proposed event change awaiting yes/no.
    """

    history: HistoryStore = field(default_factory=HistoryStore)
    pending_excuse: str | None = None
    pending_confirmation: dict[str, Any] | None = None
    updated_at: float = 0.0

    def serialize(self) -> str:
        return json.dumps({
            "v": _STATE_VERSION,
            "turns": self.history.to_list(),
            "pending_excuse": self.pending_excuse,
            "pending_confirmation": self.pending_confirmation,
            "updated_at": self.updated_at,
        }, ensure_ascii=False)

    @classmethod
    def deserialize(
        cls,
        raw: str | None,
        *,
        window: int = C.HISTORY_WINDOW,
        weights: Sequence[float] = C.HISTORY_WEIGHTS,
        cap: int = C.RAW_HISTORY_CAP,
    ) -> ConversationSession:
        """Rebuild a session. Unreadable state resets to an empty session."""
        empty = cls(history=HistoryStore(window=window, weights=weights, cap=cap))
        if not raw:
            return empty
        try:
            data = json.loads(raw)
            if isinstance(data, list):
                # bare list of turns
                data = {"turns": data}
            if not isinstance(data, dict):
                raise ValueError(f"expected object, got {type(data).__name__}")
            turns = [ConversationTurn.from_dict(t) for t in data.get("turns") or []]
            pending_confirmation = data.get("pending_confirmation")
            if pending_confirmation is not None and not isinstance(pending_confirmation, dict):
                raise ValueError("pending_confirmation must be an object")
            return cls(
                history=HistoryStore(turns, window=window, weights=weights, cap=cap),
                pending_excuse=data.get("pending_excuse"),
                pending_confirmation=pending_confirmation,
                updated_at=float(data.get("updated_at", 0.0)),
            )
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Unreadable conversation state, starting fresh: %s", exc)
            return empty
