"""Push subscriptions and the bounded event log."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .cache import DeviceCache
from .events import FullStatus, Offline, Online, PushEvent, describe, kind
from .transport import Transport, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventLogEntry:
    device: str
    kind: str
    description: str
    component: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventLog:
    """Newest-first ring buffer. Writes are dropped while paused."""

    def __init__(self, max_items: int = 100) -> None:
        self._lock = threading.Lock()
        self._entries: deque[EventLogEntry] = deque(maxlen=max_items)
        self.paused = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: EventLogEntry) -> bool:
        if self.paused:
            return False
        with self._lock:
            self._entries.appendleft(entry)
        return True

    def log(self, device: str, kind: str, description: str, component: str = "") -> bool:
        return self.append(
            EventLogEntry(device=device, kind=kind, description=description, component=component)
        )

    def entries(self) -> list[EventLogEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def toggle_pause(self) -> bool:
        self.paused = not self.paused
        return self.paused


@dataclass(eq=False)
class Subscription:
    name: str
    task: asyncio.Task[None]

    @property
    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> None:
        self.task.cancel()


class SubscriptionManager:
    def __init__(
        self,
        cache: DeviceCache,
        transport: Transport,
        event_log: EventLog,
        on_change: Callable[[str], None] | None = None,
    ) -> None:
        self._cache = cache
        self._transport = transport
        self._event_log = event_log
        self._on_change = on_change
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(self, name: str) -> Subscription | None:
        """Start a subscription for ``name``, replacing any existing one.

        Must be called from the running event loop. Devices without push
        support return ``None``.
        """
        state = self._cache.get(name)
        if state is None:
            logger.warning("Cannot subscribe to unknown device %s", name)
            return None
        if not state.device.supports_push:
            return None

        existing = self._subscriptions.pop(name, None)
        if existing is not None and not existing.done:
            logger.debug("Replacing live subscription for %s", name)
            existing.cancel()

        task = asyncio.create_task(
            self._run(name, state.device.address), name=f"subscription:{name}"
        )
        subscription = Subscription(name=name, task=task)
        task.add_done_callback(functools.partial(self._on_done, name))
        self._subscriptions[name] = subscription
        return subscription

    def cancel(self, name: str) -> bool:
        subscription = self._subscriptions.pop(name, None)
        if subscription is None:
            return False
        subscription.cancel()
        self._cache.set_push_connected(name, False)
        return True

    def is_active(self, name: str) -> bool:
        subscription = self._subscriptions.get(name)
        return subscription is not None and not subscription.done

    def active_names(self) -> list[str]:
        return sorted(name for name, sub in self._subscriptions.items() if not sub.done)

    async def stop_all(self) -> None:
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.cancel()
        if subscriptions:
            await asyncio.gather(*(sub.task for sub in subscriptions), return_exceptions=True)
            logger.debug("Stopped %d subscriptions", len(subscriptions))

    def _is_current(self, name: str) -> bool:
        subscription = self._subscriptions.get(name)
        return subscription is not None and subscription.task is asyncio.current_task()

    async def _run(self, name: str, address: str) -> None:
        reason = "connection closed"
        ended_offline = False
        try:
            async with contextlib.aclosing(self._transport.subscribe(address)) as events:
                async for event in events:
                    self._handle(name, event)
                    ended_offline = isinstance(event, Offline)
        except TransportError as exc:
            reason = str(exc)
            ended_offline = False
            logger.debug("Subscription to %s failed: %s", name, exc)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            ended_offline = False
            logger.warning("Subscription to %s crashed: %r", name, exc)

        if not self._is_current(name):
            return
        self._cache.set_push_connected(name, False)
        if not ended_offline:
            self._handle(name, Offline(reason=reason))
        self._event_log.log(name, "error", f"subscription ended: {reason}")

    def _handle(self, name: str, event: PushEvent) -> None:
        if isinstance(event, Online):
            self._cache.set_push_connected(name, True)
        elif isinstance(event, Offline):
            self._cache.set_push_connected(name, False)

        changed = self._cache.apply_push_event(name, event)
        if not isinstance(event, FullStatus):
            component = getattr(event, "component", "")
            self._event_log.log(name, kind(event), describe(event), component=component)
        if self._on_change is not None:
            self._on_change(name)
        if not changed:
            logger.debug("Push event for %s did not change state", name)

    def _on_done(self, name: str, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Subscription to %s crashed: %s", name, exc)
            self._cache.set_push_connected(name, False)
