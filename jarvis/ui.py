"""Rich console UI for the local SMS simulator — banner, input, replies."""
from __future__ import annotations

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory
from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.console import Console
from rich.markup import escape

console = Console()

_session: PromptSession | None = None

COMMANDS = [
    ("/help", "Show this help"),
    ("/admin", "Toggle admin mode"),
    ("/draft", "Show the active draft"),
    ("/poll", "Show the active poll and answers"),
    ("/sent", "List broadcasts sent this session"),
    ("/state", "Show the raw conversation state"),
    ("/sweep", "Run the stale-state sweep"),
    ("/clear", "Forget the conversation"),
    ("exit", "End session"),
]


def print_welcome(*, user: str, is_admin: bool, provider: str = "", members: int = 0) -> None:
    """Banner with session info and the command list."""
    text = Text()
    text.append("jarvis", style="bold cyan")
    text.append("  sms simulator\n\n", style="dim")
    text.append("● ", style="bold green")
    text.append("User:     ", style="bold white")
    text.append(f"{user}{' (admin)' if is_admin else ''}\n", style="cyan")
    text.append("● ", style="bold green")
    text.append("Language: ", style="bold white")
    text.append(f"{provider or 'patterns only'}\n", style="cyan")
    if members:
        text.append("● ", style="bold green")
        text.append("Members:  ", style="bold white")
        text.append(f"{members}\n", style="cyan")
    text.append("\n")
    for cmd, desc in COMMANDS:
        text.append(f"{cmd:<10}", style="bold yellow")
        text.append(f"{desc}\n", style="dim")

    console.print()
    console.print(Panel(text, box=box.DOUBLE, border_style="cyan", padding=(1, 2)))
    console.print()


def print_status(text: str, style: str = "green") -> None:
    """Print a status line with a colored bullet."""
    console.print(f"  [{style}]●[/{style}] {escape(text)}")


def print_info(text: str) -> None:
    console.print(f"  [dim]{escape(text)}[/dim]")


def print_error(text: str) -> None:
    console.print(f"  [bold red]✗ {escape(text)}[/bold red]")


def print_reply(text: str, action: str, confidence: float, debug: bool = False) -> None:
    """Print Jarvis's SMS reply; with ``debug`` also the classified action."""
    console.print()
    header = "[bold bright_cyan]jarvis:[/bold bright_cyan]"
    if debug:
        header += f" [dim]({action} {confidence:.2f})[/dim]"
    console.print(header)
    console.print(text, markup=False, highlight=False)
    console.print()


def print_help() -> None:
    table = Table(
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
        box=box.SIMPLE,
        padding=(0, 1),
    )
    table.add_column("Command", style="bold yellow", no_wrap=True, width=10)
    table.add_column("Description", style="white")
    for cmd, desc in COMMANDS:
        table.add_row(cmd, desc)
    console.print(table)


def setup_input() -> None:
    """Initialise the prompt_toolkit session with completion and history."""
    global _session
    _session = PromptSession(
        completer=WordCompleter([cmd for cmd, _ in COMMANDS], sentence=True),
        history=InMemoryHistory(),
        multiline=False,
    )


async def styled_input_async() -> str:
    if _session is None:
        setup_input()
    return await _session.prompt_async("sms > ")
