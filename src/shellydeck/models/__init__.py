"""Data models for shellydeck."""

from __future__ import annotations

from .device import Device, DeviceRegistry, DiscoveredDevice
from .state import (
    CoverState,
    DeviceInfo,
    DeviceState,
    LightState,
    SensorReading,
    SwitchState,
)

__all__ = [
    "CoverState",
    "Device",
    "DeviceInfo",
    "DeviceRegistry",
    "DeviceState",
    "DiscoveredDevice",
    "LightState",
    "SensorReading",
    "SwitchState",
]
