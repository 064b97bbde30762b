"""Runtime device state.

``DeviceState`` instances are owned by :class:`shellydeck.core.cache.DeviceCache`.
Everything handed out of the cache is a deep copy made with :meth:`DeviceState.copy`.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .device import Device


@dataclass(slots=True)
class SwitchState:
    id: int
    on: bool = False
    power: float | None = None
    source: str = ""


@dataclass(slots=True)
class LightState:
    id: int
    on: bool = False
    brightness: int | None = None


@dataclass(slots=True)
class CoverState:
    id: int
    state: str = "unknown"
    position: int | None = None


@dataclass(slots=True)
class SensorReading:
    key: str
    value: float
    unit: str = ""


@dataclass(slots=True)
class DeviceInfo:
    model: str = ""
    mac_address: str = ""
    firmware: str = ""
    generation: int = 0
    app: str = ""


@dataclass(slots=True)
class DeviceState:
    device: Device
    online: bool = False
    fetched: bool = False
    stale: bool = False
    error: str | None = None

    power: float = 0.0
    voltage: float = 0.0
    current: float = 0.0
    total_energy: float = 0.0
    temperature: float | None = None

    switches: dict[int, SwitchState] = field(default_factory=dict)
    lights: dict[int, LightState] = field(default_factory=dict)
    covers: dict[int, CoverState] = field(default_factory=dict)
    sensors: dict[str, SensorReading] = field(default_factory=dict)

    info: DeviceInfo | None = None
    raw_status: dict[str, Any] | None = None
    updated_at: datetime | None = None
    request_id: int = 0

    @property
    def name(self) -> str:
        return self.device.name

    @property
    def generation(self) -> int:
        if self.device.generation:
            return self.device.generation
        if self.info is not None:
            return self.info.generation
        return 0

    @property
    def has_telemetry(self) -> bool:
        return self.raw_status is not None

    def reset_telemetry(self) -> None:
        self.power = 0.0
        self.voltage = 0.0
        self.current = 0.0
        self.total_energy = 0.0
        self.temperature = None
        self.switches = {}
        self.lights = {}
        self.covers = {}
        self.sensors = {}

    def adopt_telemetry(self, other: DeviceState) -> None:
        """Take over the telemetry parsed into ``other``."""
        self.power = other.power
        self.voltage = other.voltage
        self.current = other.current
        self.total_energy = other.total_energy
        self.temperature = other.temperature
        self.switches = other.switches
        self.lights = other.lights
        self.covers = other.covers
        self.sensors = other.sensors
        self.raw_status = other.raw_status

    def copy(self) -> DeviceState:
        return copy.deepcopy(self)
