from __future__ import annotations

from shellydeck.core.events import (
    DeviceEvent,
    FullStatus,
    Offline,
    Online,
    StatusChange,
    describe,
    kind,
    parse_notification,
)


def test_notify_status_yields_one_change_per_component():
    frame = {
        "src": "shellyplus1pm-a8032ab12345",
        "method": "NotifyStatus",
        "params": {
            "ts": 1700000000.5,
            "switch:0": {"id": 0, "apower": 42.0},
            "sys": {"uptime": 100},
        },
    }

    events = parse_notification(frame)

    assert [e.component for e in events] == ["switch:0", "sys"]
    assert all(isinstance(e, StatusChange) for e in events)
    assert events[0].payload == {"id": 0, "apower": 42.0}
    assert events[0].timestamp.timestamp() == 1700000000.5


def test_notify_full_status_strips_timestamp():
    frame = {
        "method": "NotifyFullStatus",
        "params": {"ts": 1.0, "switch:0": {"output": True}},
    }

    (event,) = parse_notification(frame)

    assert isinstance(event, FullStatus)
    assert event.payload == {"switch:0": {"output": True}}


def test_notify_event_yields_device_events():
    frame = {
        "method": "NotifyEvent",
        "params": {
            "ts": 2.0,
            "events": [{"component": "input:0", "id": 0, "event": "single_push"}],
        },
    }

    (event,) = parse_notification(frame)

    assert isinstance(event, DeviceEvent)
    assert event.component == "input:0"
    assert event.event == "single_push"


def test_responses_and_unknown_methods_are_ignored():
    assert parse_notification({"id": 1, "result": {"switch:0": {}}}) == []
    assert parse_notification({"method": "NotifySomethingElse", "params": {}}) == []


def test_describe_and_kind():
    change = StatusChange(component="switch:0", payload={"output": False})
    assert describe(change) == "switch:0: output=False"
    assert kind(change) == "status"
    assert describe(Offline(reason="reset by peer")) == "offline: reset by peer"
    assert kind(Online()) == "online"
    assert kind(DeviceEvent(component="input:0", event="long_push")) == "event"


def test_notify_event_without_event_list_is_ignored():
    assert parse_notification({"method": "NotifyEvent", "params": {"events": 5}}) == []
    assert parse_notification({"method": "NotifyEvent", "params": {"ts": 1.0}}) == []
