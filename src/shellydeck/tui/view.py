"""Rendering of the console state with rich."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel as RichPanel
from rich.table import Table
from rich.text import Text

from shellydeck.models import DeviceState

from .components import detail_lines, sparkline, status_text
from .focus import OverlayId, Panel, Tab
from .keys import base_context, key_context

if TYPE_CHECKING:
    from .app import App

WINDOW = 20
SPARK_WIDTH = 24
MAX_HINTS = 8

STATUS_STYLES = {
    "online": "green",
    "offline": "red",
    "offline (stale)": "yellow",
    "loading": "dim",
}

TOAST_STYLES = {"info": "cyan", "warning": "yellow", "error": "bold red"}

KIND_STYLES = {
    "online": "green",
    "offline": "red",
    "error": "bold red",
    "event": "magenta",
    "info": "cyan",
}


def _border(app: App, panel: Panel) -> str:
    return "bright_blue" if app.focus.is_panel_focused(panel) else "grey37"


def _outputs(state: DeviceState) -> str:
    parts = [f"{'●' if s.on else '○'}" for s in state.switches.values()]
    parts.extend(f"{'◆' if light.on else '◇'}" for light in state.lights.values())
    parts.extend(cover.state for cover in state.covers.values())
    return " ".join(parts)


def _power(state: DeviceState) -> str:
    if not state.has_telemetry:
        return "-"
    return f"{state.power:.1f} W"


def render_header(app: App) -> RenderableType:
    tabs = Text()
    for index, tab in enumerate(Tab, start=1):
        style = "bold reverse" if tab is app.focus.active_tab else "dim"
        tabs.append(f" {index} {tab.value.title()} ", style=style)
        tabs.append(" ")

    total = len(app.cache.names())
    status = Text(justify="right")
    waves = len(app.loader.waves)
    if waves and app.loaded_waves < waves and not app.loader.completed:
        status.append(f"loading {app.loaded_waves}/{waves}  ", style="yellow")
    status.append(f"{app.cache.online_count()}/{total} online  ", style="green")
    status.append(f"{app.cache.total_power():.1f} W  ", style="bold")
    status.append(f"{len(app.subscriptions.active_names())} live", style="cyan")
    if app.event_log.paused:
        status.append("  events paused", style="yellow")

    grid = Table.grid(expand=True)
    grid.add_column()
    grid.add_column(justify="right")
    grid.add_row(tabs, status)
    return grid


def render_devices(app: App, states: dict[str, DeviceState], panel: Panel) -> RenderableType:
    names = app.visible_devices()
    selected = app.selected_device()
    table = Table(expand=True, box=None, pad_edge=False)
    table.add_column("Device", style="bold", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Power", justify="right", no_wrap=True)
    table.add_column("Outputs", no_wrap=True)
    if panel is Panel.MONITOR:
        table.add_column("Voltage", justify="right")
        table.add_column("Current", justify="right")
        table.add_column("Energy", justify="right")
        table.add_column("Temp", justify="right")

    start = max(0, app.device_list.cursor - WINDOW + 1)
    for name in names[start : start + WINDOW]:
        state = states.get(name)
        if state is None:
            continue
        status = status_text(state)
        row = [
            ("▸ " if name == selected else "  ") + name,
            Text(status, style=STATUS_STYLES.get(status, "")),
            _power(state),
            _outputs(state),
        ]
        if panel is Panel.MONITOR:
            row.extend(
                [
                    f"{state.voltage:.1f} V" if state.voltage else "-",
                    f"{state.current:.2f} A" if state.current else "-",
                    f"{state.total_energy / 1000:.2f} kWh",
                    f"{state.temperature:.1f} °C" if state.temperature is not None else "-",
                ]
            )
        table.add_row(*row, style="reverse" if name == selected else None)

    title = "Devices"
    if app.device_list.filter:
        title += f" [filter: {app.device_list.filter}]"
    if not names:
        body: RenderableType = Text("No devices", style="dim")
    else:
        body = table
    return RichPanel(body, title=title, border_style=_border(app, panel))


def render_info(app: App, states: dict[str, DeviceState]) -> RenderableType:
    name = app.selected_device()
    state = states.get(name) if name else None
    body: RenderableType
    if state is None:
        body = Text("No device selected", style="dim")
    else:
        body = Text("\n".join(detail_lines(state)[:12]))
    return RichPanel(body, title="Info", border_style=_border(app, Panel.INFO))


def render_events(app: App) -> RenderableType:
    entries = app.event_log.entries()
    offset = app.events_view.offset
    table = Table.grid(padding=(0, 1))
    table.add_column(style="dim", no_wrap=True)
    table.add_column(style="bold", no_wrap=True)
    table.add_column()
    for entry in entries[offset : offset + WINDOW // 2]:
        table.add_row(
            entry.timestamp.astimezone().strftime("%H:%M:%S"),
            entry.device,
            Text(entry.description, style=KIND_STYLES.get(entry.kind, "")),
        )
    title = "Events" + (" (paused)" if app.event_log.paused else "")
    body: RenderableType = table if entries else Text("No events yet", style="dim")
    return RichPanel(body, title=title, border_style=_border(app, Panel.EVENTS))


def render_energy(app: App, states: dict[str, DeviceState]) -> RenderableType:
    online = [state for state in states.values() if state.online and state.has_telemetry]
    table = Table.grid(padding=(0, 1))
    table.add_column(no_wrap=True)
    table.add_column(justify="right", no_wrap=True)
    table.add_column()
    for state in sorted(online, key=lambda s: s.power, reverse=True)[:WINDOW // 2]:
        history = sparkline(app.energy_history.points(state.name), SPARK_WIDTH)
        table.add_row(state.name, f"{state.power:.1f} W", Text(history, style="green"))
    total_energy = sum(state.total_energy for state in online) / 1000
    footer = Text(f"Total {app.cache.total_power():.1f} W  {total_energy:.2f} kWh", style="bold")
    return RichPanel(
        Group(table, footer), title="Energy", border_style=_border(app, Panel.ENERGY)
    )


def _window(lines: list[str], offset: int) -> Text:
    return Text("\n".join(lines[offset : offset + WINDOW]))


def render_overlay(app: App, overlay: OverlayId) -> RenderableType | None:
    if overlay is OverlayId.HELP:
        rows = app.keymap.bindings(base_context(app.focus))
        table = Table(box=None)
        table.add_column("Key", style="bold cyan")
        table.add_column("Action")
        for key, _, description in rows[app.help_view.offset :]:
            table.add_row(key, description)
        return RichPanel(table, title="Help", border_style="bright_blue")
    if overlay is OverlayId.DEVICE_DETAIL and app.detail_device:
        state = app.cache.get(app.detail_device)
        lines = detail_lines(state) if state else ["Device removed"]
        return RichPanel(
            _window(lines, app.detail_view.offset),
            title=app.detail_device,
            border_style="bright_blue",
        )
    if overlay is OverlayId.JSON_VIEWER and app.document is not None:
        return RichPanel(
            _window(app.document.lines(), app.document.scroll.offset),
            title=app.document.title,
            border_style="bright_blue",
        )
    if overlay is OverlayId.CONFIRM and app.pending_confirm is not None:
        return RichPanel(
            Text(f"{app.pending_confirm.prompt}\n\n[y/enter] confirm   [n/esc] cancel"),
            title="Confirm",
            border_style="yellow",
        )
    return None


def render_footer(app: App) -> RenderableType:
    overlay = app.focus.top_overlay
    if overlay is OverlayId.SEARCH:
        return Text(f"/{app.search.value}█")
    if overlay is OverlayId.COMMAND:
        return Text(f":{app.command_line.value}█")
    if app.toast is not None:
        return Text(app.toast.message, style=TOAST_STYLES.get(app.toast.level, ""))
    hints = app.keymap.bindings(key_context(app.focus))[:MAX_HINTS]
    text = Text(style="dim")
    for key, _, description in hints:
        text.append(f"{key}", style="bold")
        text.append(f" {description}  ")
    return text


def render_app(app: App) -> RenderableType:
    states = app.cache.snapshot()

    if app.focus.active_tab is Tab.MONITOR:
        body: RenderableType = render_devices(app, states, Panel.MONITOR)
    else:
        body = Layout()
        body.split_row(Layout(name="left", ratio=3), Layout(name="right", ratio=2))
        body["left"].split_column(
            Layout(render_devices(app, states, Panel.DEVICES), ratio=2),
            Layout(render_events(app), ratio=1),
        )
        body["right"].split_column(
            Layout(render_info(app, states)),
            Layout(render_energy(app, states)),
        )

    # Input overlays render in the footer; the top visual overlay covers the body.
    for overlay in reversed(app.focus.overlays()):
        rendered = render_overlay(app, overlay)
        if rendered is not None:
            body = rendered
            break

    root = Layout()
    root.split_column(
        Layout(render_header(app), size=1),
        Layout(body),
        Layout(render_footer(app), size=1),
    )
    return root
