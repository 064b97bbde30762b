from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from shellydeck.config import Settings
from shellydeck.core import DeviceCache, HttpTransport
from shellydeck.models import Device, DeviceState
from shellydeck.tui.components import detail_lines

from .common import build_database, load_registry_or_exit, load_settings_or_exit


def list_devices() -> None:
    """List registered devices."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    registry = load_registry_or_exit(db)

    console = Console()

    if not registry.devices:
        console.print("No devices registered.")
        console.print(f"Use 'shellydeck add' or 'shellydeck scan --add', or edit {db.devices_path}")
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="green")
    table.add_column("Gen", justify="right")
    table.add_column("Push")
    table.add_column("Notes")

    for name, device in sorted(registry.devices.items()):
        table.add_row(
            name,
            device.address,
            str(device.generation) if device.generation else "?",
            "yes" if device.supports_push else "no",
            device.notes or "",
        )

    console.print(table)


def add_device(
    name: str = typer.Argument(..., help="Device name"),
    address: str = typer.Argument(..., help="Hostname or IP address"),
    generation: int = typer.Option(0, "--generation", "-g", help="1 for Gen1, 2+ for RPC devices, 0 to detect"),
    push: bool | None = typer.Option(None, "--push/--no-push", help="Override push support"),
    notes: str | None = typer.Option(None, "--notes", help="Optional notes"),
) -> None:
    """Add or update a device."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    load_registry_or_exit(db)
    try:
        db.add_device(name, address, generation=generation, push=push, notes=notes)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    console = Console()
    console.print(f"[green]✓[/green] Added '{name}' at {address}")


def remove_device(name: str = typer.Argument(..., help="Device name")) -> None:
    """Remove a device."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    load_registry_or_exit(db)

    console = Console()
    if db.remove_device(name):
        console.print(f"[green]✓[/green] Removed device '{name}'")
    else:
        console.print(f"[yellow]![/yellow] Device '{name}' not found")
        raise typer.Exit(1)


async def fetch_device_status(device: Device, settings: Settings) -> DeviceState:
    transport = HttpTransport(request_timeout=settings.fetch.device_timeout)
    cache = DeviceCache([device], transport, settings)
    try:
        return await cache.fetch_one(device.name)
    finally:
        await transport.close()


def device_status(name: str = typer.Argument(..., help="Device name")) -> None:
    """Fetch and show the current status of one device."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    registry = load_registry_or_exit(db)

    console = Console()
    device = registry.devices.get(name)
    if device is None:
        console.print(f"[yellow]![/yellow] Device '{name}' not found")
        raise typer.Exit(1)

    state = asyncio.run(fetch_device_status(device, settings))
    for line in detail_lines(state):
        console.print(line, highlight=False)
    if not state.online:
        raise typer.Exit(1)


def register(app: typer.Typer) -> None:
    app.command("list")(list_devices)
    app.command("add")(add_device)
    app.command("remove")(remove_device)
    app.command("status")(device_status)
