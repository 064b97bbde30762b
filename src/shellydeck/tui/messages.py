"""Messages consumed by the orchestrator inbox.

Background work never touches UI state; it finishes by returning one of these
messages, which the orchestrator applies on the event loop.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class KeyPressed:
    key: str


@dataclass(frozen=True, slots=True)
class Tick:
    now: float


@dataclass(frozen=True, slots=True)
class DeviceUpdated:
    name: str


@dataclass(frozen=True, slots=True)
class DevicesRefreshed:
    count: int


@dataclass(frozen=True, slots=True)
class WaveLoaded:
    index: int
    total: int


@dataclass(frozen=True, slots=True)
class AllDevicesLoaded:
    pass


@dataclass(frozen=True, slots=True)
class FocusSettled:
    name: str
    sequence: int


@dataclass(frozen=True, slots=True)
class ActionFinished:
    device: str
    command: str
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigLoaded:
    device: str
    payload: dict[str, Any] | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class TaskFailed:
    description: str
    error: str


@dataclass(frozen=True, slots=True)
class QuitRequested:
    pass


Message = Union[
    KeyPressed,
    Tick,
    DeviceUpdated,
    DevicesRefreshed,
    WaveLoaded,
    AllDevicesLoaded,
    FocusSettled,
    ActionFinished,
    ConfigLoaded,
    TaskFailed,
    QuitRequested,
]

Effect = Callable[[], Awaitable[Union[Message, None]]]
