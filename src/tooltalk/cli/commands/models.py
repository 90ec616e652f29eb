"""tooltalk models -- list models available on the backend."""

from __future__ import annotations

import click

from tooltalk.cli.formatting import format_error, format_models, get_console


@click.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List the models the configured backend offers."""
    from tooltalk.api import open_adapter
    from tooltalk.cli import _load_config

    console = get_console()
    try:
        config = _load_config(ctx)
        adapter = open_adapter(config)
        try:
            names = adapter.list_models()
        finally:
            adapter.close()
        format_models(config.backend, names, console)
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
