from __future__ import annotations

import pytest

from shellydeck.tui import FocusState, Mode, OverlayId, Panel, Tab


def test_initial_state():
    focus = FocusState()

    assert focus.active_tab is Tab.DASHBOARD
    assert focus.active_panel is Panel.DEVICES
    assert focus.mode is Mode.NORMAL
    assert focus.top_overlay is None
    assert focus.is_panel_focused(Panel.DEVICES)


def test_overlay_stack_drives_mode():
    focus = FocusState()

    assert focus.push_overlay(OverlayId.DEVICE_DETAIL)
    assert focus.mode is Mode.OVERLAY
    assert not focus.is_panel_focused(Panel.DEVICES)

    assert focus.push_overlay(OverlayId.CONFIRM)
    assert focus.mode is Mode.MODAL
    assert focus.depth == 2
    assert focus.overlays() == [OverlayId.DEVICE_DETAIL, OverlayId.CONFIRM]

    assert focus.pop_overlay() is OverlayId.CONFIRM
    assert focus.mode is Mode.OVERLAY
    assert focus.pop_overlay() is OverlayId.DEVICE_DETAIL
    assert focus.mode is Mode.NORMAL


def test_pop_on_empty_stack_is_a_noop(caplog):
    focus = FocusState()

    assert focus.pop_overlay() is None
    assert focus.mode is Mode.NORMAL
    assert "no open overlay" in caplog.text


def test_duplicate_overlay_is_rejected():
    focus = FocusState()
    focus.push_overlay(OverlayId.HELP)

    assert focus.push_overlay(OverlayId.HELP) is False
    assert focus.depth == 1


def test_normal_mode_overlay_is_rejected():
    focus = FocusState()
    with pytest.raises(ValueError):
        focus.push_overlay(OverlayId.HELP, Mode.NORMAL)
    assert focus.depth == 0


def test_close_overlay_only_closes_top():
    focus = FocusState()
    focus.push_overlay(OverlayId.DEVICE_DETAIL)
    focus.push_overlay(OverlayId.HELP)

    assert focus.close_overlay(OverlayId.DEVICE_DETAIL) is False
    assert focus.close_overlay(OverlayId.HELP) is True
    assert focus.top_overlay is OverlayId.DEVICE_DETAIL
    assert focus.clear_overlays() == 1
    assert not focus.has_overlay()


def test_panel_cycling_wraps():
    focus = FocusState()

    assert focus.next_panel() is Panel.INFO
    assert focus.next_panel() is Panel.EVENTS
    assert focus.next_panel() is Panel.ENERGY
    assert focus.next_panel() is Panel.DEVICES
    assert focus.prev_panel() is Panel.ENERGY

    assert focus.set_panel(Panel.EVENTS) is True
    assert focus.set_panel(Panel.MONITOR) is False
    assert focus.active_panel is Panel.EVENTS


def test_tab_switch_closes_tab_scoped_overlays():
    focus = FocusState()
    focus.push_overlay(OverlayId.HELP)
    focus.push_overlay(OverlayId.DEVICE_DETAIL)
    focus.push_overlay(OverlayId.JSON_VIEWER)

    removed = focus.set_active_tab(Tab.MONITOR)

    assert removed == [OverlayId.DEVICE_DETAIL, OverlayId.JSON_VIEWER]
    assert focus.overlays() == [OverlayId.HELP]
    assert focus.active_tab is Tab.MONITOR
    assert focus.active_panel is Panel.MONITOR
    assert focus.has_overlay(OverlayId.HELP)
