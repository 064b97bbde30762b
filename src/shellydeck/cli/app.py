from __future__ import annotations

from typing import Annotated

import typer

from shellydeck.utils.logging import setup_logging

from . import config as config_cmd
from .devices import register as register_devices
from .scan import register as register_scan
from .tui import register as register_tui

app = typer.Typer(
    help="shellydeck - keyboard-driven console for Shelly device fleets",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")

register_tui(app)
register_devices(app)
register_scan(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """shellydeck CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"shellydeck version {get_version('shellydeck')}")
        raise typer.Exit()
