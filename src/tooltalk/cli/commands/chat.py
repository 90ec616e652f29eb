"""tooltalk chat -- interactive conversation loop."""

from __future__ import annotations

import click

from tooltalk.cli.formatting import format_error, format_reply, format_round, get_console
from tooltalk.exceptions import ToolTalkError

EXIT_WORDS = {"exit", "quit", "/exit", "/quit"}


@click.command()
@click.option("--system", "system_prompt", default=None, help="System prompt.")
@click.option("--max-turns", type=int, default=None, help="Dispatches per round before a forced answer.")
@click.option("--context-window", type=int, default=None, help="Token budget before compaction.")
@click.option("--stats/--no-stats", default=False, help="Print round statistics.")
@click.pass_context
def chat(
    ctx: click.Context,
    system_prompt: str | None,
    max_turns: int | None,
    context_window: int | None,
    stats: bool,
) -> None:
    """Chat with the configured backend. Type 'exit' or Ctrl-D to leave."""
    from tooltalk.api import open_session
    from tooltalk.cli import _load_config
    from tooltalk.models.config import GenerationParams

    console = get_console()
    try:
        config = _load_config(ctx, system_prompt=system_prompt, max_turns=max_turns)
        if context_window is not None:
            params = GenerationParams.from_dict(
                {**config.params.to_dict(), "context_window": context_window}
            )
            config = config.model_copy(update={"params": params})
        session = open_session(config)
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    with session:
        console.print(f"[dim]{config.backend}/{config.model} -- type 'exit' to quit[/dim]")
        while True:
            try:
                text = click.prompt("you", prompt_suffix="> ", show_default=False)
            except (EOFError, click.Abort):
                console.print()
                break
            if text.strip().lower() in EXIT_WORDS:
                break
            if not text.strip():
                continue
            try:
                result = session.send(text)
            except ToolTalkError as e:
                format_error(str(e), console)
                continue
            for reply in result.replies:
                format_reply(reply, console)
            if stats:
                format_round(result, console)
