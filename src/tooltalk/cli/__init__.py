"""tooltalk CLI -- talk to a model backend from the terminal.

This module is NEVER imported from tooltalk/__init__.py.
It is only loaded via the ``tooltalk`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

from typing import Any

try:
    import click
    from dotenv import load_dotenv
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install tooltalk[cli]"
    ) from None

from tooltalk.cli.formatting import configure_logging
from tooltalk.models.config import SessionConfig


@click.group()
@click.option("--backend", default=None, envvar="TOOLTALK_BACKEND",
              help="Backend: openai, ollama or gemini.")
@click.option("--model", default=None, envvar="TOOLTALK_MODEL", help="Model name.")
@click.option("--base-url", default=None, envvar="TOOLTALK_BASE_URL",
              help="Backend base URL override.")
@click.option("-v", "--verbose", is_flag=True, help="Log round progress.")
@click.pass_context
def cli(
    ctx: click.Context,
    backend: str | None,
    model: str | None,
    base_url: str | None,
    verbose: bool,
) -> None:
    """tooltalk: multi-turn conversations with tool calling."""
    load_dotenv()
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        k: v for k, v in
        {"backend": backend, "model": model, "base_url": base_url}.items()
        if v is not None
    }


def _load_config(ctx: click.Context, **extra: Any) -> SessionConfig:
    """SessionConfig from TOOLTALK_* variables plus command-line overrides."""
    overrides = dict(ctx.obj["overrides"])
    overrides.update({k: v for k, v in extra.items() if v is not None})
    return SessionConfig.from_env(**overrides)


# Register subcommands after cli group is defined
from tooltalk.cli.commands.chat import chat  # noqa: E402
from tooltalk.cli.commands.models import models  # noqa: E402

cli.add_command(chat)
cli.add_command(models)
