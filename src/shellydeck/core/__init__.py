"""Device-state synchronization engine."""

from __future__ import annotations

from .breaker import BreakerRegistry, BreakerState, CircuitBreaker, CircuitOpenError
from .cache import DeviceCache
from .events import DeviceEvent, FullStatus, Offline, Online, PushEvent, StatusChange
from .subscriptions import EventLog, EventLogEntry, Subscription, SubscriptionManager
from .transport import (
    ConnectionFailed,
    HttpTransport,
    ProtocolError,
    Transport,
    TransportError,
    TransportTimeout,
    is_connectivity_failure,
)
from .waves import WaveLoader, plan_waves

__all__ = [
    "BreakerRegistry",
    "BreakerState",
    "CircuitBreaker",
    "CircuitOpenError",
    "ConnectionFailed",
    "DeviceCache",
    "DeviceEvent",
    "EventLog",
    "EventLogEntry",
    "FullStatus",
    "HttpTransport",
    "Offline",
    "Online",
    "ProtocolError",
    "PushEvent",
    "StatusChange",
    "Subscription",
    "SubscriptionManager",
    "Transport",
    "TransportError",
    "TransportTimeout",
    "WaveLoader",
    "is_connectivity_failure",
    "plan_waves",
]
