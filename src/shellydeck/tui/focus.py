"""Tabs, panels and the overlay stack that decides where keys go."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    NORMAL = "normal"
    INPUT = "input"
    OVERLAY = "overlay"
    MODAL = "modal"


class Tab(enum.Enum):
    DASHBOARD = "dashboard"
    MONITOR = "monitor"


class Panel(enum.Enum):
    DEVICES = "devices"
    INFO = "info"
    EVENTS = "events"
    ENERGY = "energy"
    MONITOR = "monitor"


class OverlayId(enum.Enum):
    HELP = "help"
    DEVICE_DETAIL = "device_detail"
    JSON_VIEWER = "json_viewer"
    CONFIRM = "confirm"
    SEARCH = "search"
    COMMAND = "command"


TAB_PANELS: dict[Tab, tuple[Panel, ...]] = {
    Tab.DASHBOARD: (Panel.DEVICES, Panel.INFO, Panel.EVENTS, Panel.ENERGY),
    Tab.MONITOR: (Panel.MONITOR,),
}

DEFAULT_OVERLAY_MODES: dict[OverlayId, Mode] = {
    OverlayId.HELP: Mode.OVERLAY,
    OverlayId.DEVICE_DETAIL: Mode.OVERLAY,
    OverlayId.JSON_VIEWER: Mode.OVERLAY,
    OverlayId.CONFIRM: Mode.MODAL,
    OverlayId.SEARCH: Mode.INPUT,
    OverlayId.COMMAND: Mode.INPUT,
}

# Overlays tied to what the current tab shows; switching tabs closes them.
TAB_SCOPED_OVERLAYS = frozenset({OverlayId.DEVICE_DETAIL, OverlayId.JSON_VIEWER})


@dataclass(frozen=True, slots=True)
class OverlayEntry:
    id: OverlayId
    mode: Mode


class FocusState:
    """Owned and mutated by the orchestrator only."""

    def __init__(self, tab: Tab = Tab.DASHBOARD) -> None:
        self._tab = tab
        self._panels = {tab: panels[0] for tab, panels in TAB_PANELS.items()}
        self._stack: list[OverlayEntry] = []

    @property
    def active_tab(self) -> Tab:
        return self._tab

    @property
    def active_panel(self) -> Panel:
        return self._panels[self._tab]

    @property
    def mode(self) -> Mode:
        if self._stack:
            return self._stack[-1].mode
        return Mode.NORMAL

    @property
    def top_overlay(self) -> OverlayId | None:
        if self._stack:
            return self._stack[-1].id
        return None

    @property
    def depth(self) -> int:
        return len(self._stack)

    def overlays(self) -> list[OverlayId]:
        return [entry.id for entry in self._stack]

    def has_overlay(self, overlay: OverlayId | None = None) -> bool:
        if overlay is None:
            return bool(self._stack)
        return any(entry.id is overlay for entry in self._stack)

    def is_panel_focused(self, panel: Panel) -> bool:
        """True when ``panel`` is active and no overlay owns the keyboard."""
        return not self._stack and self.active_panel is panel

    def push_overlay(self, overlay: OverlayId, mode: Mode | None = None) -> bool:
        if self.has_overlay(overlay):
            logger.warning("Overlay %s is already open", overlay.value)
            return False
        resolved = mode or DEFAULT_OVERLAY_MODES[overlay]
        if resolved is Mode.NORMAL:
            raise ValueError("Overlays cannot use NORMAL mode")
        self._stack.append(OverlayEntry(overlay, resolved))
        return True

    def pop_overlay(self) -> OverlayId | None:
        if not self._stack:
            logger.warning("pop_overlay called with no open overlay")
            return None
        return self._stack.pop().id

    def close_overlay(self, overlay: OverlayId) -> bool:
        if self.top_overlay is not overlay:
            logger.warning("Cannot close %s: not the top overlay", overlay.value)
            return False
        self._stack.pop()
        return True

    def clear_overlays(self) -> int:
        count = len(self._stack)
        self._stack.clear()
        return count

    def next_panel(self) -> Panel:
        return self._cycle_panel(1)

    def prev_panel(self) -> Panel:
        return self._cycle_panel(-1)

    def _cycle_panel(self, step: int) -> Panel:
        panels = TAB_PANELS[self._tab]
        index = panels.index(self._panels[self._tab])
        self._panels[self._tab] = panels[(index + step) % len(panels)]
        return self._panels[self._tab]

    def set_panel(self, panel: Panel) -> bool:
        if panel not in TAB_PANELS[self._tab]:
            return False
        self._panels[self._tab] = panel
        return True

    def set_active_tab(self, tab: Tab) -> list[OverlayId]:
        """Switch tabs and return the tab-scoped overlays that were closed."""
        self._tab = tab
        self._panels[tab] = TAB_PANELS[tab][0]
        removed = [entry.id for entry in self._stack if entry.id in TAB_SCOPED_OVERLAYS]
        self._stack = [entry for entry in self._stack if entry.id not in TAB_SCOPED_OVERLAYS]
        return removed
