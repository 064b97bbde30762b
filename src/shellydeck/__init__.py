"""shellydeck - monitor and control a fleet of Shelly relays and energy meters."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .models import Device, DeviceRegistry, DeviceState
from .storage import Database

__all__ = [
    "Database",
    "Device",
    "DeviceRegistry",
    "DeviceState",
    "Settings",
    "__version__",
    "get_settings",
]

__version__ = version("shellydeck")
