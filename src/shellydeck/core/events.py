"""Push events delivered by device subscriptions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

logger = logging.getLogger(__name__)

# Keys of a NotifyStatus params object that are not components.
_NON_COMPONENT_KEYS = frozenset({"ts"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class StatusChange:
    """Partial status for one component; only the carried fields change."""

    component: str
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class FullStatus:
    """Complete device status; replaces all telemetry."""

    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class Online:
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class Offline:
    reason: str = ""
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class DeviceEvent:
    """Momentary device event such as a button press. Not state."""

    component: str
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)


PushEvent = Union[StatusChange, FullStatus, Online, Offline, DeviceEvent]


def _timestamp(params: dict[str, Any]) -> datetime:
    ts = params.get("ts")
    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    return _now()


def parse_notification(frame: dict[str, Any]) -> list[PushEvent]:
    """Translate one RPC notification frame into push events.

    Frames that are not notifications (responses carry an ``id``) yield nothing.
    """
    method = frame.get("method")
    params = frame.get("params")
    if not isinstance(method, str) or not isinstance(params, dict):
        return []

    timestamp = _timestamp(params)

    if method == "NotifyFullStatus":
        payload = {k: v for k, v in params.items() if k not in _NON_COMPONENT_KEYS}
        return [FullStatus(payload=payload, timestamp=timestamp)]

    if method == "NotifyStatus":
        return [
            StatusChange(component=key, payload=value, timestamp=timestamp)
            for key, value in params.items()
            if key not in _NON_COMPONENT_KEYS and isinstance(value, dict)
        ]

    if method == "NotifyEvent":
        items = params.get("events")
        if not isinstance(items, list):
            return []
        events: list[PushEvent] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            events.append(
                DeviceEvent(
                    component=str(item.get("component", "")),
                    event=str(item.get("event", "")),
                    data=item,
                    timestamp=timestamp,
                )
            )
        return events

    logger.debug("Ignoring notification %s", method)
    return []


def describe(event: PushEvent) -> str:
    if isinstance(event, StatusChange):
        fields = ", ".join(f"{k}={v}" for k, v in sorted(event.payload.items()))
        return f"{event.component}: {fields}" if fields else event.component
    if isinstance(event, FullStatus):
        return f"full status ({len(event.payload)} components)"
    if isinstance(event, Online):
        return "online"
    if isinstance(event, Offline):
        return f"offline: {event.reason}" if event.reason else "offline"
    return f"{event.component}: {event.event}"


def kind(event: PushEvent) -> str:
    if isinstance(event, StatusChange):
        return "status"
    if isinstance(event, FullStatus):
        return "full_status"
    if isinstance(event, Online):
        return "online"
    if isinstance(event, Offline):
        return "offline"
    return "event"
