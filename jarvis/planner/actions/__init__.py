"""Action handlers, one per classified action."""
from __future__ import annotations

from typing import Awaitable, Callable

from jarvis.core import constants as C
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.actions.capability import handle_capability_query
from jarvis.planner.actions.chat import handle_chat
from jarvis.planner.actions.content import handle_content_query
from jarvis.planner.actions.draft import handle_draft_write
from jarvis.planner.actions.event_update import handle_event_update
from jarvis.planner.actions.knowledge import handle_knowledge_upload
from jarvis.planner.actions.poll_response import handle_poll_response
from jarvis.planner.actions.send import handle_draft_send
from jarvis.planner.state import ActionResult

Handler = Callable[[HandlerContext], Awaitable[ActionResult]]

HANDLERS: dict[str, Handler] = {
    C.DRAFT_WRITE: handle_draft_write,
    C.DRAFT_SEND: handle_draft_send,
    C.POLL_RESPONSE: handle_poll_response,
    C.CONTENT_QUERY: handle_content_query,
    C.CAPABILITY_QUERY: handle_capability_query,
    C.KNOWLEDGE_UPLOAD: handle_knowledge_upload,
    C.EVENT_UPDATE: handle_event_update,
    C.CHAT: handle_chat,
}

__all__ = ["HANDLERS", "Handler", "HandlerContext"]
