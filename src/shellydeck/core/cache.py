"""Device cache: the single owner of runtime device state.

All mutation happens under one lock and bumps a monotonically increasing
version, so renderers can skip work when nothing changed. Network I/O always
runs outside the lock; only installing a finished result happens inside it.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import threading
import time
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from shellydeck.config import Settings
from shellydeck.models import Device, DeviceInfo, DeviceState

from .breaker import BreakerRegistry
from .events import FullStatus, Offline, Online, PushEvent, StatusChange
from .parser import apply_full_status, apply_status_change
from .transport import ProtocolError, Transport, TransportError

logger = logging.getLogger(__name__)

TIMEOUT_ERROR = "timed out"

PARSE_ERRORS = (TypeError, ValueError, AttributeError)


def parse_device_info(data: dict[str, Any]) -> DeviceInfo:
    """Build :class:`DeviceInfo` from a ``/shelly`` response of any generation."""
    generation = data.get("gen")
    if not isinstance(generation, int):
        generation = 1
    return DeviceInfo(
        model=str(data.get("model") or data.get("type") or ""),
        mac_address=str(data.get("mac") or ""),
        firmware=str(data.get("ver") or data.get("fw") or ""),
        generation=generation,
        app=str(data.get("app") or ""),
    )


def parse_status(device: Device, status: dict[str, Any]) -> DeviceState:
    """Parse a complete status document into a fresh, detached state."""
    parsed = DeviceState(device=device)
    try:
        apply_full_status(parsed, status)
    except PARSE_ERRORS as exc:
        raise ProtocolError(f"Malformed status from {device.address}: {exc}") from exc
    return parsed


class DeviceCache:
    def __init__(
        self,
        devices: Iterable[Device],
        transport: Transport,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._transport = transport
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._states: dict[str, DeviceState] = {
            device.name: DeviceState(device=device) for device in devices
        }
        self._version = 0
        self._request_ids = itertools.count(1)
        self._info: dict[str, DeviceInfo] = {}
        self._next_poll: dict[str, float] = {}
        self._in_flight: set[str] = set()
        self._push_connected: set[str] = set()
        self._focused: str | None = None
        self.breakers = BreakerRegistry(self._settings.breaker, clock=clock)

    # Reads

    def version(self) -> int:
        with self._lock:
            return self._version

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._states)

    def devices(self) -> list[Device]:
        with self._lock:
            return [self._states[name].device for name in sorted(self._states)]

    def get(self, name: str) -> DeviceState | None:
        with self._lock:
            state = self._states.get(name)
            return state.copy() if state is not None else None

    def snapshot(self) -> dict[str, DeviceState]:
        with self._lock:
            return {name: state.copy() for name, state in self._states.items()}

    def online_count(self) -> int:
        with self._lock:
            return sum(1 for state in self._states.values() if state.online)

    def total_power(self) -> float:
        with self._lock:
            return sum(state.power for state in self._states.values() if state.online)

    def component_counts(self) -> dict[str, int]:
        counts = {"switches": 0, "lights": 0, "covers": 0, "sensors": 0}
        with self._lock:
            for state in self._states.values():
                counts["switches"] += len(state.switches)
                counts["lights"] += len(state.lights)
                counts["covers"] += len(state.covers)
                counts["sensors"] += len(state.sensors)
        return counts

    # Focus and polling

    @property
    def focused(self) -> str | None:
        return self._focused

    def set_focused(self, name: str | None) -> bool:
        with self._lock:
            if name is not None and name not in self._states:
                return False
            if name == self._focused:
                return False
            self._focused = name
            if name is not None and name in self._next_poll:
                self._next_poll[name] = min(
                    self._next_poll[name], self._clock() + self._settings.refresh.focused
                )
            return True

    def set_push_connected(self, name: str, connected: bool) -> None:
        with self._lock:
            if connected:
                self._push_connected.add(name)
            else:
                self._push_connected.discard(name)

    def is_push_connected(self, name: str) -> bool:
        with self._lock:
            return name in self._push_connected

    def due_for_refresh(self, now: float | None = None) -> list[str]:
        """Names of polled devices whose next refresh time has passed.

        Devices that were never fetched, are being fetched, or have a live
        push subscription are not due.
        """
        now = self._clock() if now is None else now
        with self._lock:
            return sorted(
                name
                for name, due_at in self._next_poll.items()
                if due_at <= now
                and name not in self._in_flight
                and name not in self._push_connected
            )

    def _poll_interval(self, state: DeviceState) -> float:
        refresh = self._settings.refresh
        if state.name == self._focused:
            base = refresh.focused
        elif state.generation == 1:
            base = refresh.gen1_online if state.online else refresh.gen1_offline
        else:
            base = refresh.gen2_online if state.online else refresh.gen2_offline
        return base * (1 + self._rng.uniform(0, 0.5))

    # Fetching

    async def fetch_one(self, name: str) -> DeviceState:
        with self._lock:
            state = self._states.get(name)
            if state is None:
                raise KeyError(name)
            device = state.device
            info = self._info.get(name)
            request_id = next(self._request_ids)
            self._in_flight.add(name)

        try:
            try:
                self.breakers.check(name)
                info, status = await asyncio.wait_for(
                    self._load(device, info),
                    timeout=self._settings.fetch.device_timeout,
                )
                parsed = parse_status(device, status)
            except asyncio.TimeoutError as exc:
                self.breakers.record(name, exc)
                return self._install_failure(name, request_id, TIMEOUT_ERROR)
            except TransportError as exc:
                self.breakers.record(name, exc)
                logger.debug("Fetch of %s failed: %s", name, exc)
                return self._install_failure(name, request_id, str(exc))
            self.breakers.record(name, None)
            return self._install_status(name, request_id, info, parsed)
        finally:
            with self._lock:
                self._in_flight.discard(name)

    async def _load(
        self, device: Device, info: DeviceInfo | None
    ) -> tuple[DeviceInfo, dict[str, Any]]:
        if info is None:
            info = parse_device_info(await self._transport.fetch_info(device.address))
        generation = device.generation or info.generation
        status = await self._transport.fetch_status(device.address, generation)
        return info, status

    def _install_status(
        self, name: str, request_id: int, info: DeviceInfo, parsed: DeviceState
    ) -> DeviceState:
        with self._lock:
            state = self._require(name)
            self._info[name] = info
            if request_id < state.request_id:
                logger.debug("Discarding stale response %d for %s", request_id, name)
                return state.copy()
            state.adopt_telemetry(parsed)
            state.info = info
            state.request_id = request_id
            state.online = True
            state.fetched = True
            state.stale = False
            state.error = None
            state.updated_at = datetime.now(timezone.utc)
            self._version += 1
            self._next_poll[name] = self._clock() + self._poll_interval(state)
            return state.copy()

    def _install_failure(self, name: str, request_id: int, error: str) -> DeviceState:
        with self._lock:
            state = self._require(name)
            if request_id < state.request_id:
                logger.debug("Discarding stale failure %d for %s", request_id, name)
                return state.copy()
            state.request_id = request_id
            state.online = False
            state.fetched = True
            state.stale = state.has_telemetry
            state.error = error
            self._version += 1
            self._next_poll[name] = self._clock() + self._poll_interval(state)
            return state.copy()

    def _require(self, name: str) -> DeviceState:
        state = self._states.get(name)
        if state is None:
            raise KeyError(name)
        return state

    async def fetch_all(self, names: Iterable[str] | None = None) -> AsyncIterator[DeviceState]:
        """Fetch devices concurrently and yield each result as it lands.

        Devices still pending at the overall deadline are cancelled and
        reported as timed out, so every requested device yields exactly once.
        """
        with self._lock:
            wanted = sorted(self._states) if names is None else [
                name for name in names if name in self._states
            ]
        if not wanted:
            return

        fetch = self._settings.fetch
        semaphore = asyncio.Semaphore(fetch.max_concurrent)

        async def limited(name: str) -> DeviceState:
            async with semaphore:
                return await self.fetch_one(name)

        tasks = {asyncio.create_task(limited(name)): name for name in wanted}
        pending = set(tasks)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + fetch.overall_timeout
        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    try:
                        yield task.result()
                    except KeyError:
                        logger.debug("Device %s removed during fetch", tasks[task])

            if pending:
                logger.debug("Fetch deadline reached with %d devices pending", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                for task in sorted(pending, key=lambda t: tasks[t]):
                    name = tasks[task]
                    if not task.cancelled() and task.exception() is None:
                        yield task.result()
                        continue
                    try:
                        yield self._install_failure(name, next(self._request_ids), TIMEOUT_ERROR)
                    except KeyError:
                        continue
                pending = set()
        finally:
            for task in pending:
                task.cancel()

    # Push

    def apply_push_event(self, name: str, event: PushEvent) -> bool:
        with self._lock:
            state = self._states.get(name)
            if state is None:
                logger.debug("Ignoring push event for unknown device %s", name)
                return False

            if isinstance(event, (StatusChange, FullStatus)):
                try:
                    parsed = _parse_push(state, event)
                except PARSE_ERRORS as exc:
                    logger.warning("Malformed push event from %s: %s", name, exc)
                    state.error = f"malformed push event: {exc}"
                    self._version += 1
                    return True
                state.adopt_telemetry(parsed)

            if isinstance(event, StatusChange):
                state.online = True
                state.stale = False
            elif isinstance(event, FullStatus):
                state.online = True
                state.fetched = True
                state.stale = False
                state.error = None
            elif isinstance(event, Online):
                state.online = True
                state.error = None
            elif isinstance(event, Offline):
                state.online = False
                state.stale = state.has_telemetry
                state.error = event.reason or "disconnected"
            else:
                # DeviceEvent carries no state.
                return False

            state.updated_at = event.timestamp
            self._version += 1
            return True

    def remove(self, name: str) -> bool:
        with self._lock:
            if self._states.pop(name, None) is None:
                return False
            self._info.pop(name, None)
            self._next_poll.pop(name, None)
            self._push_connected.discard(name)
            if self._focused == name:
                self._focused = None
            self._version += 1
        self.breakers.forget(name)
        return True


def _parse_push(state: DeviceState, event: StatusChange | FullStatus) -> DeviceState:
    if isinstance(event, FullStatus):
        parsed = DeviceState(device=state.device)
        apply_full_status(parsed, event.payload)
        return parsed
    parsed = state.copy()
    apply_status_change(parsed, event.component, event.payload)
    return parsed
