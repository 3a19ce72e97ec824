"""CLI entry point — Click group + async SMS simulator loop."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import click

logger = logging.getLogger(__name__)

SIMULATOR_PHONE = "+15550001111"


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx: click.Context) -> None:
    """Jarvis — SMS organizational assistant."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(chat)


@main.command()
@click.option("--admin", is_flag=True, help="Chat as an org admin")
@click.option("--name", default="Sam", help="Your display name")
@click.option("--seed", type=int, default=None, help="Seed the response banks")
@click.option("--offline", is_flag=True, help="No language service (patterns only)")
@click.option("--state-dir", default="", help="Persist state to this directory")
@click.option("--debug", is_flag=True, help="Debug output (show classification)")
def chat(admin: bool, name: str, seed: int | None, offline: bool, state_dir: str, debug: bool) -> None:
    """Text Jarvis from the terminal against an in-memory org."""
    asyncio.run(_chat_loop(admin, name, seed, offline, state_dir, debug))


@main.command()
@click.option("--state-dir", default="", help="State directory (default: JARVIS_STATE_DIR)")
def sweep(state_dir: str) -> None:
    """Clear stale drafts and conversation state."""
    asyncio.run(_sweep(state_dir))


async def _chat_loop(admin: bool, name: str, seed: int | None, offline: bool, state_dir: str, debug: bool) -> None:
    from jarvis import ui
    from jarvis.config import load_config
    from jarvis.core import PlannerConfigError, PlannerEngine
    from jarvis.core import constants as C
    from jarvis.core.storage import FilesystemStateStore, MemoryStateStore
    from jarvis.planner.state import UserContext
    from jarvis.sandbox import Sandbox

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    config = load_config(offline=offline, seed=seed)
    store = FilesystemStateStore(state_dir) if state_dir else MemoryStateStore()
    sandbox = Sandbox(store=store)
    sandbox.seed_demo()
    try:
        engine = PlannerEngine(config, sandbox.collaborators(retry=True), store=store, clock=sandbox.clock)
    except PlannerConfigError as e:
        ui.print_error(str(e))
        return

    user = UserContext(SIMULATOR_PHONE, name=name, is_admin=admin)
    ui.print_welcome(user=name, is_admin=admin, provider=config.llm_provider, members=len(sandbox.members))

    while True:
        try:
            text = await ui.styled_input_async()
        except (EOFError, KeyboardInterrupt):
            break

        command = text.strip().lower()
        if command in ("exit", "quit", "/exit"):
            break
        if command == "/help":
            ui.print_help()
            continue
        if command == "/admin":
            user.is_admin = not user.is_admin
            ui.print_status(f"admin mode {'on' if user.is_admin else 'off'}")
            continue
        if command == "/draft":
            draft = await sandbox.drafts.get_active_draft(user.user_id)
            if draft is None:
                last = await sandbox.drafts.draft_status(user.user_id)
                ui.print_info(f"no active draft (last: {last})")
            else:
                flags = [f for f in ("pending_mandatory", "pending_link", "requires_excuse") if getattr(draft, f)]
                ui.print_status(f"{draft.type}/{draft.status} {flags or ''}: {draft.content!r}")
            continue
        if command == "/poll":
            poll = sandbox.polls.active
            if poll is None:
                ui.print_info("no active poll")
            else:
                ui.print_status(f"{poll.question} (reason for no: {poll.requires_reason_for_no})")
                for (poll_id, member), answer in sandbox.polls.responses.items():
                    if poll_id == poll.id:
                        ui.print_info(f"{member}: {answer.response} {answer.notes or ''}")
            continue
        if command == "/sent":
            if not sandbox.broadcaster.sent:
                ui.print_info("nothing sent yet")
            for sent in sandbox.broadcaster.sent:
                ui.print_status(f"[{sent.kind}] {sent.content}")
            continue
        if command == "/state":
            ui.print_info(await engine.load_state(user.user_id) or "(empty)")
            continue
        if command == "/sweep":
            report = await engine.sweep()
            ui.print_status(f"cleared {report.drafts_cleared} draft(s), {report.states_cleared} state(s)")
            continue
        if command == "/clear":
            await store.delete(f"{C.CONVERSATION_KEY_PREFIX}{user.user_id}")
            await store.delete(f"{C.DRAFT_KEY_PREFIX}{user.user_id}")
            ui.print_status("conversation cleared")
            continue

        result = await engine.handle(user, text)
        ui.print_reply(result.response, result.action, result.classification.confidence, debug)


async def _sweep(state_dir: str) -> None:
    from jarvis import ui
    from jarvis.config import STATE_DIR, load_config
    from jarvis.core.storage import FilesystemStateStore
    from jarvis.maintenance import sweep_stale_state
    from jarvis.planner.collaborators import StoreDraftRepository

    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    store = FilesystemStateStore(state_dir or STATE_DIR)
    report = await sweep_stale_state(store, StoreDraftRepository(store), datetime.now(timezone.utc), load_config(offline=True))
    ui.print_status(f"cleared {report.drafts_cleared} draft(s), {report.states_cleared} conversation state(s)")
