from __future__ import annotations

import asyncio

from shellydeck.core import ConnectionFailed
from shellydeck.models import Device
from shellydeck.tui import App, Mode, OverlayId, Panel, Tab
from shellydeck.tui.messages import (
    ActionFinished,
    AllDevicesLoaded,
    ConfigLoaded,
    DevicesRefreshed,
    DeviceUpdated,
    FocusSettled,
    KeyPressed,
    QuitRequested,
    Tick,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


DEVICES = [
    Device(name="attic", address="10.0.0.1", generation=2),
    Device(name="boiler", address="10.0.0.2", generation=2),
    Device(name="cellar", address="10.0.0.3", generation=1),
]


def _app(transport, clock=None, renderer=None) -> App:
    app = App(DEVICES, transport, clock=clock or FakeClock(), renderer=renderer)
    app.running = True
    return app


def _type(app: App, text: str) -> list:
    effects = []
    for char in text:
        effects.extend(app.handle_key("space" if char == " " else char))
    return effects


def test_q_quits_in_normal_mode(transport):
    app = _app(transport)

    app.handle_key("q")

    assert app.running is False


def test_q_is_text_while_searching(transport):
    app = _app(transport)

    app.handle_key("/")
    assert app.focus.mode is Mode.INPUT
    app.handle_key("q")

    assert app.running is True
    assert app.device_list.filter == "q"
    assert app.visible_devices() == []

    effects = app.handle_key("esc")

    assert app.focus.mode is Mode.NORMAL
    assert app.device_list.filter == ""
    assert len(effects) == 1


def test_search_filters_device_list(transport):
    app = _app(transport)

    app.handle_key("/")
    _type(app, "boi")
    app.handle_key("enter")

    assert app.focus.top_overlay is None
    assert app.visible_devices() == ["boiler"]
    assert app.selected_device() == "boiler"
    assert app.cache.focused == "boiler"

    app.handle_key("esc")
    assert app.visible_devices() == ["attic", "boiler", "cellar"]


def test_help_overlay_swallows_q(transport):
    app = _app(transport)

    app.handle_key("?")
    assert app.focus.top_overlay is OverlayId.HELP
    app.handle_key("q")

    assert app.focus.top_overlay is None
    assert app.running is True


def test_ctrl_c_quits_from_modal(transport):
    app = _app(transport)
    app.handle_key("R")
    assert app.focus.mode is Mode.MODAL

    app.handle_key("ctrl+c")

    assert app.running is False
    assert app.focus.depth == 0
    assert app.pending_confirm is None


def test_reboot_requires_confirmation(transport):
    app = _app(transport)

    assert app.handle_key("R") == []
    assert app.pending_confirm.device == "attic"
    assert app.handle_key("t") == []
    assert app.handle_key("n") == []
    assert app.focus.depth == 0
    assert transport.calls == []

    app.handle_key("R")
    (effect,) = app.handle_key("y")
    result = asyncio.run(effect())

    assert result == ActionFinished("attic", "reboot")
    assert transport.calls == [("10.0.0.1", 2, "reboot", "", 0)]
    assert app.handle_message(result) == []
    assert app.toast.message == "reboot sent to attic"
    assert app.event_log.entries()[0].description == "reboot sent"


def test_toggle_sends_call_and_refreshes(transport, switch_status):
    transport.statuses["10.0.0.1"] = switch_status
    app = _app(transport)
    asyncio.run(app.cache.fetch_one("attic"))

    (effect,) = app.handle_key("t")
    result = asyncio.run(effect())

    assert transport.calls == [("10.0.0.1", 2, "toggle", "switch", 0)]
    (refresh,) = app.handle_message(result)
    assert asyncio.run(refresh()) == DeviceUpdated("attic")


def test_failed_action_is_reported(transport, switch_status):
    transport.statuses["10.0.0.1"] = switch_status
    transport.call_error = ConnectionFailed("connection refused")
    app = _app(transport)
    asyncio.run(app.cache.fetch_one("attic"))

    (effect,) = app.handle_key("f")
    result = asyncio.run(effect())

    assert result == ActionFinished("attic", "off", "connection refused")
    assert app.handle_message(result) == []
    assert app.toast.level == "error"
    entry = app.event_log.entries()[0]
    assert (entry.kind, entry.description) == ("error", "off failed: connection refused")


def test_control_without_outputs_warns(transport):
    app = _app(transport)

    assert app.handle_key("o") == []
    assert app.toast.level == "warning"
    assert "has no switch or light" in app.toast.message


def test_cursor_moves_and_stale_focus_is_ignored(transport):
    app = _app(transport)

    (first,) = app.handle_key("j")
    (second,) = app.handle_key("j")

    assert app.selected_device() == "cellar"
    assert app.handle_message(FocusSettled("boiler", 1)) == []
    assert len(app.handle_message(FocusSettled("cellar", 2))) == 1
    assert app.handle_key("j") == []


def test_focus_settles_after_debounce(transport):
    app = _app(transport)

    (settle,) = app.handle_key("G")
    message = asyncio.run(settle())

    assert message == FocusSettled("cellar", 1)


def test_command_line_switches_tab(transport):
    app = _app(transport)

    app.handle_key(":")
    _type(app, "tab monitor")
    app.handle_key("enter")

    assert app.focus.active_tab is Tab.MONITOR
    assert app.focus.active_panel is Panel.MONITOR
    assert app.running is True


def test_command_line_errors_show_toast(transport):
    app = _app(transport)

    app.handle_key(":")
    _type(app, "launch")
    app.handle_key("enter")

    assert app.toast.level == "error"
    assert app.toast.message == "Unknown command: launch"
    assert app.execute_command("on ghost") == []
    assert app.toast.message == "Unknown device: ghost"
    assert len(app.execute_command("refresh")) == 1
    assert len(app.execute_command("refresh boiler")) == 1

    app.execute_command("reboot boiler")
    assert app.focus.top_overlay is OverlayId.CONFIRM
    assert app.pending_confirm.device == "boiler"


def test_config_viewer_and_tab_switch(transport):
    app = _app(transport)
    transport.configs["10.0.0.1"] = {"sys": {"device": {"name": "Attic"}}}

    app.handle_key("enter")
    assert app.focus.top_overlay is OverlayId.DEVICE_DETAIL
    (effect,) = app.handle_key("c")
    message = asyncio.run(effect())
    assert message == ConfigLoaded("attic", payload={"sys": {"device": {"name": "Attic"}}})

    app.handle_message(message)
    assert app.focus.top_overlay is OverlayId.JSON_VIEWER
    assert app.document.title == "attic configuration"

    app.handle_key("j")
    assert app.document.scroll.offset == 1

    app.execute_command("tab monitor")
    assert app.focus.depth == 0
    assert app.document is None
    assert app.detail_device is None


def test_events_panel_keys(transport):
    app = _app(transport)
    app.event_log.log("attic", "info", "hello")

    app.handle_key("tab")
    app.handle_key("tab")
    assert app.focus.active_panel is Panel.EVENTS

    app.handle_key("space")
    assert app.event_log.paused is True
    assert app.toast.message == "Event log paused"

    app.handle_key("x")
    assert len(app.event_log) == 0


def test_tick_schedules_due_refreshes_and_expires_toast(transport, switch_status):
    clock = FakeClock()
    transport.statuses["10.0.0.1"] = switch_status
    app = _app(transport, clock=clock)
    asyncio.run(app.cache.fetch_one("attic"))

    app.handle_message(DevicesRefreshed(3))
    assert app.toast.message == "Refreshed 3 devices"

    assert app.handle_message(Tick(1.0)) == []
    assert app.toast is not None

    effects = app.handle_message(Tick(10.0))
    assert len(effects) == 1
    assert app.toast is None


def test_subscriptions_start_once_after_loading(transport):
    for device in DEVICES:
        transport.hold_open.add(device.address)

    async def run():
        app = _app(transport)
        app.handle_message(AllDevicesLoaded())
        app.handle_message(AllDevicesLoaded())
        await asyncio.sleep(0.01)
        active = app.subscriptions.active_names()
        await app.shutdown()
        await app.shutdown()
        return active

    active = asyncio.run(run())

    assert active == ["attic", "boiler"]
    assert transport.opened == 2
    assert transport.closed is True


def test_render_only_when_something_changed(transport, switch_status):
    transport.statuses["10.0.0.1"] = switch_status
    frames: list[int] = []
    app = _app(transport, renderer=lambda current: frames.append(current.cache.version()))

    assert app.render_if_needed() is True
    assert app.render_if_needed() is False

    asyncio.run(app.cache.fetch_one("attic"))
    assert app.render_if_needed() is True

    app.handle_key("j")
    assert app.render_if_needed() is True
    assert frames == [0, 1, 1]


def test_run_until_quit(transport):
    frames: list[int] = []

    async def run():
        app = App(DEVICES, transport, renderer=lambda current: frames.append(1))
        app.post(KeyPressed("q"))
        await app.run()
        return app

    app = asyncio.run(run())

    assert app.running is False
    assert transport.closed is True
    assert frames


def test_device_updates_feed_energy_history(transport, switch_status):
    transport.statuses["10.0.0.1"] = switch_status
    clock = FakeClock()
    app = _app(transport, clock=clock)
    asyncio.run(app.cache.fetch_one("attic"))

    app.handle_message(DeviceUpdated("attic"))
    app.handle_message(DeviceUpdated("attic"))
    clock.now = 5.0
    app.handle_message(DeviceUpdated("attic"))

    assert app.energy_history.points("attic") == [150.0, 150.0]
    assert app.energy_history.points("boiler") == []


def test_quit_requested_stops_the_loop(transport):
    app = _app(transport)

    assert app.handle_message(QuitRequested()) == []
    assert app.running is False
