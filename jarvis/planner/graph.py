"""Planner graph — one inbound message in, one reply and new state out.

Flow::

    load_session → record_inbound → route:
      empty          → empty_reply ─────────────────────────────┐
      build_context  → classify → <action node> → record_outbound → END

Every node takes PlannerState and returns a partial update. Action nodes
are named after the classified action, so routing is the action name itself.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.planner.actions import HANDLERS, HandlerContext
from jarvis.planner.classifier import classify, fallback_result
from jarvis.planner.history import ConversationSession
from jarvis.planner.personality import build_personality
from jarvis.planner.state import (
    ActionResult,
    ClassificationContext,
    ClassificationResult,
    PlanInput,
    PlannerState,
    PlanResult,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Graph nodes: each takes PlannerState, returns partial PlannerState update
# ---------------------------------------------------------------------------


def load_session(state: PlannerState) -> dict[str, Any]:
    """Rebuild history and pending follow-ups from the opaque prior state."""
    config: PlannerConfig = state["_config"]
    session = ConversationSession.deserialize(
        state.get("prior_state"),
        window=config.history_window,
        weights=config.history_weights,
        cap=config.raw_history_cap,
    )
    return {"session": session, "is_empty": not (state.get("message") or "").strip()}


def record_inbound(state: PlannerState) -> dict[str, Any]:
    session: ConversationSession = state["session"]
    session.history.append("user", state.get("message") or "", state["_clock"]().timestamp())
    return {"session": session}


def route_inbound(state: PlannerState) -> str:
    return "empty_reply" if state.get("is_empty") else "build_context"


def empty_reply(state: PlannerState) -> dict[str, Any]:
    """Whitespace-only message: canned reply, pending follow-ups kept."""
    session: ConversationSession = state["session"]
    result = ActionResult(
        C.CHAT,
        state["_personality"].empty_reply(),
        pending_confirmation=session.pending_confirmation,
        pending_excuse=session.pending_excuse,
    )
    return {
        "classification": ClassificationResult(C.CHAT, 1.0, None, "empty message"),
        "result": result,
    }


async def build_context(state: PlannerState) -> dict[str, Any]:
    """Load the active draft and poll, and assemble the classifier context."""
    collaborators = state["_collaborators"]
    session: ConversationSession = state["session"]
    user = state["user"]
    user_id = state["user_id"]

    draft = None
    try:
        draft = await collaborators.drafts.get_active_draft(user_id)
    except Exception as exc:
        logger.warning("Could not load draft for %s: %s", user_id, exc)

    poll = None
    if collaborators.polls is not None:
        try:
            poll = await collaborators.polls.get_active_poll()
        except Exception as exc:
            logger.warning("Could not load active poll: %s", exc)

    pending_excuse = poll is not None and session.pending_excuse == poll.id
    if session.pending_excuse and not pending_excuse:
        logger.info("Dropping reason request for %s: poll %s is no longer active", user_id, session.pending_excuse)
        session.pending_excuse = None

    context = ClassificationContext(
        message=state["message"].strip(),
        history=session.history.weighted(),
        draft=draft,
        is_admin=user.is_admin,
        user_name=user.name,
        has_active_poll=poll is not None,
        pending_excuse=pending_excuse,
        pending_confirmation=bool(session.pending_confirmation),
        awaiting_content=session.history.is_awaiting_draft_content(),
        awaiting_send=session.history.is_awaiting_send_confirmation(),
    )
    return {"draft": draft, "poll": poll, "context": context}


async def classify_message(state: PlannerState) -> dict[str, Any]:
    config: PlannerConfig = state["_config"]
    result = await classify(
        state["context"], state.get("_service"), temperature=config.classification_temperature
    )
    logger.info(
        "Classified message from %s as %s (%.2f): %s",
        state["user_id"], result.action, result.confidence, result.reasoning,
    )
    return {"classification": result}


def route_action(state: PlannerState) -> str:
    action = state["classification"].action
    return action if action in HANDLERS else C.CHAT


def _action_node(action: str):
    handler = HANDLERS[action]

    async def run(state: PlannerState) -> dict[str, Any]:
        session: ConversationSession = state["session"]
        ctx = HandlerContext(
            user_id=state["user_id"],
            message=state["message"].strip(),
            user=state["user"],
            classification=state["classification"],
            session=session,
            collaborators=state["_collaborators"],
            personality=state["_personality"],
            config=state["_config"],
            clock=state["_clock"],
            draft=state.get("draft"),
            poll=state.get("poll"),
            service=state.get("_service"),
        )
        try:
            result = await handler(ctx)
        except Exception:
            logger.error("Handler %s failed for %s", action, state["user_id"], exc_info=True)
            result = ActionResult(
                action,
                ctx.templates.something_broke(),
                state.get("draft"),
                pending_confirmation=session.pending_confirmation,
                pending_excuse=session.pending_excuse,
            )
        return {"result": result}

    run.__name__ = f"handle_{action}"
    return run


def record_outbound(state: PlannerState) -> dict[str, Any]:
    """Append the reply, carry pending follow-ups, serialize the session."""
    session: ConversationSession = state["session"]
    result: ActionResult = state["result"]
    now = state["_clock"]().timestamp()

    session.pending_excuse = result.pending_excuse
    session.pending_confirmation = result.pending_confirmation
    session.history.append("assistant", result.response, now, action=result.action)
    session.updated_at = now
    return {
        "response": result.response,
        "action": result.action,
        "new_state": session.serialize(),
    }


# ---------------------------------------------------------------------------
# Graph builder
# ---------------------------------------------------------------------------


def build_planner_graph():
    """Build the planner StateGraph.

    Returns a compiled LangGraph StateGraph ready for ainvoke().
    """
    from langgraph.graph import END, StateGraph

    graph = StateGraph(PlannerState)

    graph.add_node("load_session", load_session)
    graph.add_node("record_inbound", record_inbound)
    graph.add_node("empty_reply", empty_reply)
    graph.add_node("build_context", build_context)
    graph.add_node("classify", classify_message)
    for action in C.ACTIONS:
        graph.add_node(action, _action_node(action))
    graph.add_node("record_outbound", record_outbound)

    graph.set_entry_point("load_session")
    graph.add_edge("load_session", "record_inbound")
    graph.add_conditional_edges(
        "record_inbound",
        route_inbound,
        {"empty_reply": "empty_reply", "build_context": "build_context"},
    )
    graph.add_edge("empty_reply", "record_outbound")
    graph.add_edge("build_context", "classify")
    graph.add_conditional_edges("classify", route_action, {action: action for action in C.ACTIONS})
    for action in C.ACTIONS:
        graph.add_edge(action, "record_outbound")
    graph.add_edge("record_outbound", END)

    return graph.compile()


_app: Any = None


def get_planner_app():
    """Compiled graph, built once per process."""
    global _app
    if _app is None:
        _app = build_planner_graph()
    return _app


async def plan(request: PlanInput) -> PlanResult:
    """Run one planner cycle. Never raises for message-level failures.

    Missing config, personality and clock are filled with defaults. On an
    unexpected failure the prior state is returned unchanged.
    """
    config = request.config or PlannerConfig()
    personality = request.personality or build_personality(config)
    state: PlannerState = {
        "user_id": request.user_id,
        "message": request.message or "",
        "user": request.user,
        "prior_state": request.prior_state or "",
        "_collaborators": request.collaborators,
        "_service": request.service,
        "_personality": personality,
        "_config": config,
        "_clock": request.clock or _utc_now,
    }
    try:
        final = await get_planner_app().ainvoke(state)
    except Exception:
        logger.error("Planner failed for %s", request.user_id, exc_info=True)
        return PlanResult(
            response=personality.templates.something_broke(),
            action=C.CHAT,
            classification=fallback_result("planner error"),
            new_state=request.prior_state or "",
        )
    return PlanResult(
        response=final["response"],
        action=final["action"],
        classification=final["classification"],
        new_state=final["new_state"],
    )
