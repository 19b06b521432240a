"""
Rendering functions for trace-working output.

This module handles all pretty-printing. The service returns events and
results; this module makes them human-readable.
"""

from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .domain.outcome import Decision, NotFoundReason, TraversalEvent, TraversalResult

console = Console()

DECISION_STYLES = {
    Decision.PASSED: ("✓ pass", "green"),
    Decision.FAILED: ("✗ fail", "red"),
    Decision.COMMAND_ERROR: ("! error", "yellow"),
    Decision.SKIPPED: ("- skip", "dim"),
}

OUTPUT_TAIL_LINES = 10


def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.rstrip().splitlines()[-lines:])


def render_event(event: TraversalEvent, verbose: bool = False, out: Optional[Console] = None) -> None:
    """
    Print one line for a visited commit.

    Skipped commits and command output only appear in verbose mode.
    """
    out = out or console
    if event.decision == Decision.SKIPPED and not verbose:
        return

    label, style = DECISION_STYLES[event.decision]
    line = Text()
    line.append(f"{label:<8}", style=style)
    line.append(f"{event.commit.short_hash} ", style="cyan")
    line.append(event.commit.date.strftime("%Y-%m-%d %H:%M"), style="dim")
    if event.detail:
        line.append(f"  {event.detail}")
    out.print(line)

    if verbose and event.decision == Decision.FAILED:
        output = event.outcome.stderr or event.outcome.stdout
        if output.strip():
            out.print(Text(_tail(output), style="dim"), highlight=False)


def render_result(result: TraversalResult, file_path: str = "", out: Optional[Console] = None) -> None:
    """Print the final answer as a panel."""
    out = out or console
    if result.success:
        commit = result.found
        body = Text()
        body.append("Commit:  ", style="bold")
        body.append(f"{commit.hash}\n", style="cyan")
        body.append("Date:    ", style="bold")
        body.append(f"{commit.date.isoformat(sep=' ')}\n")
        body.append("Message: ", style="bold")
        body.append(result.summary or "(no message)")
        out.print(Panel(body, title="Last working commit", border_style="green", box=box.ROUNDED))
    elif result.reason == NotFoundReason.FILE_NEVER_PRESENT:
        out.print(f"[yellow]{escape(file_path or 'The file')} is not present in any commit of the history.[/yellow]")
    elif result.reason == NotFoundReason.WALK_LIMIT_REACHED:
        out.print(
            f"[yellow]No working commit found in the newest {result.visited} commits; "
            f"older history was not checked (raise --max-commits).[/yellow]"
        )
    else:
        out.print("[yellow]No working commit found in the history.[/yellow]")

    out.print(
        f"[dim]{result.visited} commits visited, {result.checked} checked out "
        f"({result.counts.get('failed', 0)} failed, "
        f"{result.counts.get('command_error', 0)} command errors, "
        f"{result.counts.get('skipped', 0)} skipped)[/dim]"
    )
    if result.restore_warning:
        out.print(f"[bold red]Warning:[/bold red] {escape(result.restore_warning)}")
        out.print("[red]The working tree may be left on the wrong commit.[/red]")


def render_events_table(events: Iterable[TraversalEvent], out: Optional[Console] = None) -> None:
    """
    Render the commits that were checked out as a table.

    Args:
        events: Events of a run, in walk order
    """
    out = out or console
    checked = [e for e in events if e.decision != Decision.SKIPPED]
    if not checked:
        return

    table = Table(
        title="Checked commits",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Commit", style="cyan")
    table.add_column("Date", style="dim")
    table.add_column("Result")
    table.add_column("Detail")
    table.add_column("Time", justify="right")

    for event in checked:
        label, style = DECISION_STYLES[event.decision]
        table.add_row(
            str(event.index),
            event.commit.short_hash,
            event.commit.date.strftime("%Y-%m-%d %H:%M"),
            Text(label, style=style),
            event.detail,
            f"{event.outcome.duration:.1f}s",
        )

    out.print(table)
