"""Context-dependent translation of key names into actions.

Keys are plain strings such as ``"q"``, ``"enter"``, ``"shift+tab"`` or
``"ctrl+c"`` as produced by :func:`shellydeck.tui.terminal.decode_keys`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .focus import FocusState, Mode, OverlayId, Panel, Tab


class Action(enum.Enum):
    QUIT = "quit"
    FORCE_QUIT = "force_quit"
    HELP = "help"
    CLOSE_OVERLAY = "close_overlay"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    NEXT_PANEL = "next_panel"
    PREV_PANEL = "prev_panel"
    TAB_DASHBOARD = "tab_dashboard"
    TAB_MONITOR = "tab_monitor"
    CURSOR_UP = "cursor_up"
    CURSOR_DOWN = "cursor_down"
    CURSOR_TOP = "cursor_top"
    CURSOR_BOTTOM = "cursor_bottom"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    TOGGLE = "toggle"
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"
    REBOOT = "reboot"
    REFRESH = "refresh"
    REFRESH_ALL = "refresh_all"
    DETAIL = "detail"
    VIEW_CONFIG = "view_config"
    SEARCH = "search"
    COMMAND = "command"
    CLEAR_FILTER = "clear_filter"
    PAUSE_EVENTS = "pause_events"
    CLEAR_EVENTS = "clear_events"


@dataclass(frozen=True, slots=True)
class KeyContext:
    mode: Mode
    tab: Tab
    panel: Panel
    overlay: OverlayId | None = None


def key_context(focus: FocusState) -> KeyContext:
    return KeyContext(
        mode=focus.mode,
        tab=focus.active_tab,
        panel=focus.active_panel,
        overlay=focus.top_overlay,
    )


def base_context(focus: FocusState) -> KeyContext:
    """Context of the tab and panel underneath any open overlays."""
    return KeyContext(mode=Mode.NORMAL, tab=focus.active_tab, panel=focus.active_panel)


Binding = tuple[str, Action, str]

FORCE_QUIT_KEY = "ctrl+c"

GLOBAL_BINDINGS: list[Binding] = [
    ("q", Action.QUIT, "quit"),
    ("?", Action.HELP, "help"),
    ("tab", Action.NEXT_PANEL, "next panel"),
    ("shift+tab", Action.PREV_PANEL, "previous panel"),
    ("1", Action.TAB_DASHBOARD, "dashboard tab"),
    ("2", Action.TAB_MONITOR, "monitor tab"),
    ("ctrl+r", Action.REFRESH_ALL, "refresh all devices"),
    ("/", Action.SEARCH, "filter devices"),
    (":", Action.COMMAND, "command line"),
]

_CURSOR: list[Binding] = [
    ("up", Action.CURSOR_UP, "previous device"),
    ("k", Action.CURSOR_UP, "previous device"),
    ("down", Action.CURSOR_DOWN, "next device"),
    ("j", Action.CURSOR_DOWN, "next device"),
    ("home", Action.CURSOR_TOP, "first device"),
    ("g", Action.CURSOR_TOP, "first device"),
    ("end", Action.CURSOR_BOTTOM, "last device"),
    ("G", Action.CURSOR_BOTTOM, "last device"),
]

_CONTROL: list[Binding] = [
    ("t", Action.TOGGLE, "toggle output"),
    ("space", Action.TOGGLE, "toggle output"),
    ("o", Action.TURN_ON, "turn on"),
    ("f", Action.TURN_OFF, "turn off"),
    ("R", Action.REBOOT, "reboot device"),
    ("r", Action.REFRESH, "refresh device"),
    ("enter", Action.DETAIL, "device details"),
    ("c", Action.VIEW_CONFIG, "view configuration"),
]

_SCROLL: list[Binding] = [
    ("up", Action.SCROLL_UP, "scroll up"),
    ("k", Action.SCROLL_UP, "scroll up"),
    ("down", Action.SCROLL_DOWN, "scroll down"),
    ("j", Action.SCROLL_DOWN, "scroll down"),
    ("pgup", Action.PAGE_UP, "page up"),
    ("pgdown", Action.PAGE_DOWN, "page down"),
]

PANEL_BINDINGS: dict[Panel, list[Binding]] = {
    Panel.DEVICES: [*_CURSOR, *_CONTROL, ("esc", Action.CLEAR_FILTER, "clear filter")],
    Panel.INFO: [
        ("r", Action.REFRESH, "refresh device"),
        ("enter", Action.DETAIL, "device details"),
        ("c", Action.VIEW_CONFIG, "view configuration"),
    ],
    Panel.EVENTS: [
        *_SCROLL,
        ("p", Action.PAUSE_EVENTS, "pause/resume event log"),
        ("space", Action.PAUSE_EVENTS, "pause/resume event log"),
        ("x", Action.CLEAR_EVENTS, "clear event log"),
    ],
    Panel.ENERGY: [
        *_CURSOR,
        ("r", Action.REFRESH, "refresh device"),
        ("enter", Action.DETAIL, "device details"),
    ],
    Panel.MONITOR: [*_CURSOR, *_CONTROL, ("esc", Action.CLEAR_FILTER, "clear filter")],
}

OVERLAY_BINDINGS: dict[OverlayId, list[Binding]] = {
    OverlayId.HELP: [
        ("q", Action.CLOSE_OVERLAY, "close help"),
        ("?", Action.CLOSE_OVERLAY, "close help"),
        *_SCROLL,
    ],
    OverlayId.DEVICE_DETAIL: [
        ("q", Action.CLOSE_OVERLAY, "close details"),
        ("r", Action.REFRESH, "refresh device"),
        ("c", Action.VIEW_CONFIG, "view configuration"),
        *_SCROLL,
    ],
    OverlayId.JSON_VIEWER: [
        ("q", Action.CLOSE_OVERLAY, "close viewer"),
        *_SCROLL,
    ],
}

MODAL_BINDINGS: list[Binding] = [
    ("enter", Action.CONFIRM, "confirm"),
    ("y", Action.CONFIRM, "confirm"),
    ("esc", Action.CANCEL, "cancel"),
    ("n", Action.CANCEL, "cancel"),
]


def _lookup(bindings: list[Binding], key: str) -> Action | None:
    for bound_key, action, _ in bindings:
        if bound_key == key:
            return action
    return None


class ContextMap:
    """Pure lookup from ``(context, key)`` to an :class:`Action`.

    Precedence: ``ctrl+c`` always force-quits; input mode passes every other
    key through raw; modal mode only knows confirm and cancel; overlays close
    on ``esc`` and otherwise use their own bindings; normal mode tries the
    active panel before the global bindings.
    """

    def __init__(
        self,
        global_bindings: list[Binding] | None = None,
        panel_bindings: dict[Panel, list[Binding]] | None = None,
        overlay_bindings: dict[OverlayId, list[Binding]] | None = None,
    ) -> None:
        self.global_bindings = global_bindings if global_bindings is not None else GLOBAL_BINDINGS
        self.panel_bindings = panel_bindings if panel_bindings is not None else PANEL_BINDINGS
        self.overlay_bindings = (
            overlay_bindings if overlay_bindings is not None else OVERLAY_BINDINGS
        )

    def match(self, context: KeyContext, key: str) -> Action | None:
        if key == FORCE_QUIT_KEY:
            return Action.FORCE_QUIT
        if context.mode is Mode.INPUT:
            return None
        if context.mode is Mode.MODAL:
            return _lookup(MODAL_BINDINGS, key)
        if context.mode is Mode.OVERLAY:
            if key == "esc":
                return Action.CLOSE_OVERLAY
            if context.overlay is None:
                return None
            return _lookup(self.overlay_bindings.get(context.overlay, []), key)
        action = _lookup(self.panel_bindings.get(context.panel, []), key)
        if action is not None:
            return action
        return _lookup(self.global_bindings, key)

    def bindings(self, context: KeyContext) -> list[Binding]:
        """Rows for the help overlay, most specific first, without shadowed keys."""
        if context.mode is Mode.INPUT:
            rows: list[Binding] = [
                ("enter", Action.CONFIRM, "submit"),
                ("esc", Action.CANCEL, "cancel"),
            ]
        elif context.mode is Mode.MODAL:
            rows = list(MODAL_BINDINGS)
        elif context.mode is Mode.OVERLAY:
            rows = [("esc", Action.CLOSE_OVERLAY, "close")]
            if context.overlay is not None:
                rows.extend(self.overlay_bindings.get(context.overlay, []))
        else:
            rows = [*self.panel_bindings.get(context.panel, []), *self.global_bindings]
        rows.append((FORCE_QUIT_KEY, Action.FORCE_QUIT, "force quit"))

        seen: set[str] = set()
        unique: list[Binding] = []
        for row in rows:
            if row[0] in seen:
                continue
            seen.add(row[0])
            unique.append(row)
        return unique
