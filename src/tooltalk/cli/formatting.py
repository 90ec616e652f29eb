"""Rich formatting helpers for the tooltalk CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from tooltalk.orchestrator.models import RoundResult


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def configure_logging(verbose: bool) -> None:
    """Route tooltalk logs through Rich. INFO with --verbose, else WARNING."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def format_reply(text: str, console: Console) -> None:
    """Display one assistant reply."""
    console.print(f"[bold cyan]assistant>[/bold cyan] {escape(text)}", highlight=False)


def format_round(result: RoundResult, console: Console) -> None:
    """Display the statistics line for a finished round."""
    parts = [
        f"{result.turns} dispatch(es)",
        f"{len(result.tool_results)} tool call(s)",
        f"{result.usage.total_tokens} tokens",
    ]
    if result.compacted:
        parts.append("[yellow]compacted[/yellow]")
    if result.forced_final:
        parts.append("[yellow]turn limit reached[/yellow]")
    console.print(f"[dim]{' | '.join(parts)}[/dim]")


def format_models(backend: str, models: list[str], console: Console) -> None:
    """Display a model listing."""
    if not models:
        console.print("[dim]No models.[/dim]")
        return
    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column(f"{backend} models")
    for name in models:
        table.add_row(escape(name))
    console.print(table)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
