"""Conversation Planner — classify an inbound SMS, act on it, reply.

Public API::

    from jarvis.planner import plan, PlanInput, Collaborators, StoreDraftRepository

    result = await plan(PlanInput(
        user_id="+15551234567",
        message="announce meeting tonight at 7pm",
        user=UserContext("+15551234567", name="Sam", is_admin=True),
        collaborators=Collaborators(drafts=StoreDraftRepository(MemoryStateStore())),
        prior_state=previous.new_state,
    ))
"""
from __future__ import annotations

from jarvis.planner.collaborators import Collaborators, StoreDraftRepository
from jarvis.planner.graph import plan
from jarvis.planner.state import ClassificationResult, Draft, PlanInput, PlanResult, UserContext

__all__ = [
    "ClassificationResult",
    "Collaborators",
    "Draft",
    "PlanInput",
    "PlanResult",
    "StoreDraftRepository",
    "UserContext",
    "plan",
]
