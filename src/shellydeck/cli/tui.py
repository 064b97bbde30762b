from __future__ import annotations

import asyncio
import logging

import typer

from shellydeck.config import log_file_from_settings
from shellydeck.core import HttpTransport
from shellydeck.tui import App
from shellydeck.tui.terminal import run_console
from shellydeck.utils.logging import logging_to

from .common import build_database, load_registry_or_exit, load_settings_or_exit

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def tui() -> None:
        """Open the interactive console."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        registry = load_registry_or_exit(db)

        if not registry.devices:
            typer.echo("No devices registered. Use 'shellydeck add' or 'shellydeck scan --add'.")
            raise typer.Exit(1)

        log_path = log_file_from_settings(settings)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # The console owns the terminal; logs go to the file instead.
        with log_path.open("a", encoding="utf-8") as log_stream, logging_to(log_stream):
            logger.info("Starting console with %d devices", len(registry.devices))
            transport = HttpTransport(request_timeout=settings.fetch.device_timeout)
            console = App(registry.devices.values(), transport, settings)
            try:
                asyncio.run(run_console(console))
            except KeyboardInterrupt:
                logger.info("Interrupted")
