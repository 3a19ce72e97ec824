"""Shared handler context."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.core.llm import LanguageService
from jarvis.planner.collaborators import Collaborators
from jarvis.planner.history import ConversationSession
from jarvis.planner.personality import Personality
from jarvis.planner.state import ClassificationResult, Clock, Draft, Poll, UserContext


@dataclass
class HandlerContext:
    """Everything an action handler may read. Built once per message."""

    user_id: str
    message: str
    user: UserContext
    classification: ClassificationResult
    session: ConversationSession
    collaborators: Collaborators
    personality: Personality
    config: PlannerConfig
    clock: Clock
    draft: Draft | None = None
    poll: Poll | None = None
    service: LanguageService | None = None

    @property
    def templates(self) -> Any:
        return self.personality.templates

    def permits(self, action: str) -> bool:
        """Whether this user may run ``action`` under the admin policy."""
        if self.user.is_admin:
            return True
        if action in C.ADMIN_ONLY_ACTIONS:
            return False
        return not (action in C.BROADCAST_ACTIONS and self.config.admin_only_broadcasts)

    def now(self) -> datetime:
        return self.clock()

    def style(self, base: str) -> str:
        return self.personality.style(base, self.message, self.user.name)
