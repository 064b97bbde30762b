"""Stateful pieces of the console that are not part of the focus model.

Components hold cursor, scroll and text state only; they never perform I/O
and never change focus. The orchestrator feeds them keys and reads them back
when rendering.
"""

from __future__ import annotations

import enum
import json
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from shellydeck.models import Device, DeviceState


class DeviceList:
    """Cursor over the filtered, name-sorted device list."""

    def __init__(self) -> None:
        self.cursor = 0
        self.filter = ""

    def visible(self, devices: Sequence[Device]) -> list[str]:
        needle = self.filter.strip().lower()
        names = sorted(device.name for device in devices if _matches(device, needle))
        self._clamp(len(names))
        return names

    def selected(self, devices: Sequence[Device]) -> str | None:
        names = self.visible(devices)
        if not names:
            return None
        return names[self.cursor]

    def move(self, delta: int, count: int) -> None:
        if count <= 0:
            self.cursor = 0
            return
        self.cursor = max(0, min(count - 1, self.cursor + delta))

    def top(self) -> None:
        self.cursor = 0

    def bottom(self, count: int) -> None:
        self.cursor = max(0, count - 1)

    def select(self, name: str, devices: Sequence[Device]) -> bool:
        names = self.visible(devices)
        if name not in names:
            return False
        self.cursor = names.index(name)
        return True

    def set_filter(self, text: str) -> None:
        self.filter = text
        self.cursor = 0

    def _clamp(self, count: int) -> None:
        if count == 0:
            self.cursor = 0
        elif self.cursor >= count:
            self.cursor = count - 1


def _matches(device: Device, needle: str) -> bool:
    if not needle:
        return True
    return needle in device.name.lower() or needle in device.address.lower()


class ScrollView:
    def __init__(self, page_size: int = 10) -> None:
        self.offset = 0
        self.page_size = page_size

    def scroll(self, delta: int, total: int) -> None:
        limit = max(0, total - 1)
        self.offset = max(0, min(limit, self.offset + delta))

    def page(self, direction: int, total: int) -> None:
        self.scroll(direction * self.page_size, total)

    def reset(self) -> None:
        self.offset = 0


class InputOutcome(enum.Enum):
    IGNORED = "ignored"
    CHANGED = "changed"
    SUBMIT = "submit"
    CANCEL = "cancel"


class TextInput:
    """Single-line editor fed with raw key names."""

    def __init__(self, prompt: str = "") -> None:
        self.prompt = prompt
        self.value = ""
        self.position = 0

    def reset(self, value: str = "") -> None:
        self.value = value
        self.position = len(value)

    def handle_key(self, key: str) -> InputOutcome:
        if key == "enter":
            return InputOutcome.SUBMIT
        if key == "esc":
            return InputOutcome.CANCEL
        if key == "backspace":
            if self.position == 0:
                return InputOutcome.IGNORED
            self.value = self.value[: self.position - 1] + self.value[self.position :]
            self.position -= 1
            return InputOutcome.CHANGED
        if key == "delete":
            if self.position >= len(self.value):
                return InputOutcome.IGNORED
            self.value = self.value[: self.position] + self.value[self.position + 1 :]
            return InputOutcome.CHANGED
        if key == "left":
            self.position = max(0, self.position - 1)
            return InputOutcome.IGNORED
        if key == "right":
            self.position = min(len(self.value), self.position + 1)
            return InputOutcome.IGNORED
        if key in ("home", "ctrl+a"):
            self.position = 0
            return InputOutcome.IGNORED
        if key in ("end", "ctrl+e"):
            self.position = len(self.value)
            return InputOutcome.IGNORED
        if key == "ctrl+u":
            self.reset()
            return InputOutcome.CHANGED

        text = " " if key == "space" else key
        if len(text) != 1 or not text.isprintable():
            return InputOutcome.IGNORED
        self.value = self.value[: self.position] + text + self.value[self.position :]
        self.position += 1
        return InputOutcome.CHANGED


@dataclass
class PendingConfirm:
    """A destructive command waiting for the confirm modal."""

    device: str
    command: str
    prompt: str


@dataclass
class JsonDocument:
    title: str
    payload: dict[str, Any]
    scroll: ScrollView = field(default_factory=ScrollView)

    def lines(self) -> list[str]:
        return json.dumps(self.payload, indent=2, sort_keys=True, default=str).splitlines()


SPARK_CHARS = "▁▂▃▄▅▆▇█"


def sparkline(values: Sequence[float], width: int) -> str:
    """The last ``width`` values as block characters of eight heights.

    A flat series sits on the lowest block near zero and mid-height otherwise.
    """
    points = list(values)[-width:] if width > 0 else []
    if not points:
        return ""
    low, high = min(points), max(points)
    span = high - low
    if span < 0.001:
        return SPARK_CHARS[0 if high < 1.0 else 4] * len(points)
    return "".join(SPARK_CHARS[max(0, min(7, int((value - low) / span * 7)))] for value in points)


class EnergyHistory:
    """Bounded power samples per device, collected at most once per interval."""

    def __init__(self, max_items: int = 60, interval: float = 5.0) -> None:
        self.max_items = max_items
        self.interval = interval
        self._points: dict[str, deque[float]] = {}
        self._last_collection: float | None = None

    def due(self, now: float) -> bool:
        return self._last_collection is None or now - self._last_collection >= self.interval

    def collect(self, states: Iterable[DeviceState], now: float) -> bool:
        if not self.due(now):
            return False
        recorded = False
        for state in states:
            if state.online and state.has_telemetry:
                self.add(state.name, state.power)
                recorded = True
        if recorded:
            self._last_collection = now
        return recorded

    def add(self, name: str, power: float) -> None:
        self._points.setdefault(name, deque(maxlen=self.max_items)).append(power)

    def points(self, name: str) -> list[float]:
        return list(self._points.get(name, ()))


@dataclass
class Toast:
    message: str
    level: str = "info"
    expires_at: float = 0.0


def detail_lines(state: DeviceState) -> list[str]:
    """Text rows for the device detail overlay."""
    device = state.device
    lines = [
        f"Name:        {device.name}",
        f"Address:     {device.address}",
        f"Generation:  {state.generation or 'unknown'}",
        f"Push:        {'yes' if device.supports_push else 'no'}",
        f"Status:      {status_text(state)}",
    ]
    if state.error:
        lines.append(f"Error:       {state.error}")
    if state.info is not None:
        lines.extend(
            [
                f"Model:       {state.info.model or '-'}",
                f"MAC:         {state.info.mac_address or '-'}",
                f"Firmware:    {state.info.firmware or '-'}",
            ]
        )
    if device.notes:
        lines.append(f"Notes:       {device.notes}")

    lines.append("")
    lines.append(f"Power:       {state.power:.1f} W")
    if state.voltage:
        lines.append(f"Voltage:     {state.voltage:.1f} V")
    if state.current:
        lines.append(f"Current:     {state.current:.2f} A")
    lines.append(f"Energy:      {state.total_energy / 1000:.3f} kWh")
    if state.temperature is not None:
        lines.append(f"Temperature: {state.temperature:.1f} °C")

    for switch in state.switches.values():
        power = f" {switch.power:.1f} W" if switch.power is not None else ""
        lines.append(f"switch:{switch.id}    {'on' if switch.on else 'off'}{power}")
    for light in state.lights.values():
        brightness = f" {light.brightness}%" if light.brightness is not None else ""
        lines.append(f"light:{light.id}     {'on' if light.on else 'off'}{brightness}")
    for cover in state.covers.values():
        position = f" {cover.position}%" if cover.position is not None else ""
        lines.append(f"cover:{cover.id}     {cover.state}{position}")
    for sensor in state.sensors.values():
        lines.append(f"{sensor.key:<12} {sensor.value:g} {sensor.unit}".rstrip())
    return lines


def status_text(state: DeviceState) -> str:
    if not state.fetched:
        return "loading"
    if state.online:
        return "online"
    return "offline (stale)" if state.stale else "offline"


def controllable_component(state: DeviceState) -> tuple[str, int] | None:
    """The first switch, else the first light, of a device."""
    if state.switches:
        return "switch", min(state.switches)
    if state.lights:
        return "light", min(state.lights)
    return None
