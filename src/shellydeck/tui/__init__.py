"""Keyboard-driven console: focus model, key routing and orchestration."""

from __future__ import annotations

from .app import App
from .focus import FocusState, Mode, OverlayId, Panel, Tab
from .keys import Action, ContextMap, KeyContext, key_context

__all__ = [
    "Action",
    "App",
    "ContextMap",
    "FocusState",
    "KeyContext",
    "Mode",
    "OverlayId",
    "Panel",
    "Tab",
    "key_context",
]
