from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from shellydeck.core.scanner import scan_network

from .common import build_database, load_registry_or_exit, load_settings_or_exit

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def scan(
        add: bool = typer.Option(
            False, "--add", help="Register discovered devices that are not known yet"
        ),
        timeout: float | None = typer.Option(
            None, "--timeout", "-t", help="Seconds to listen (defaults to config)"
        ),
    ) -> None:
        """Discover Shelly devices on the local network via mDNS."""
        console = Console()

        settings = load_settings_or_exit()
        db = build_database(settings)
        registry = load_registry_or_exit(db)

        scanning = settings.scanning
        if timeout is not None:
            scanning = scanning.model_copy(update={"timeout": timeout})

        console.print(f"Listening for Shelly devices for {scanning.timeout:g}s...")
        logger.info("Scan settings: timeout=%.2fs", scanning.timeout)
        devices = asyncio.run(scan_network(scanning))

        if not devices:
            console.print("No Shelly devices found.")
            return

        address_to_name = {
            device.address: name for name, device in registry.devices.items()
        }

        table = Table()
        table.add_column("Name", style="cyan")
        table.add_column("Address", style="green")
        table.add_column("Registered", style="yellow")
        table.add_column("Model")
        table.add_column("Gen", justify="right")
        table.add_column("MAC Address")

        for device in devices:
            table.add_row(
                device.name,
                device.address,
                address_to_name.get(device.address, ""),
                device.model,
                str(device.generation) if device.generation else "?",
                device.mac_address,
            )

        console.print(table)
        console.print(f"\n[green]Found {len(devices)} device(s)[/green]")

        if not add:
            return

        added = 0
        for device in devices:
            if device.address in address_to_name or device.name in registry.devices:
                continue
            db.add_device(device.name, device.address, generation=device.generation)
            added += 1
        console.print(f"[green]✓[/green] Registered {added} new device(s) in {db.devices_path}")
