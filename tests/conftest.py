from __future__ import annotations

import asyncio
import copy
from collections import defaultdict, deque
from typing import Any

import pytest

from shellydeck.config import get_settings
from shellydeck.core.events import PushEvent

GEN2_INFO = {"gen": 2, "model": "SNSW-001P16EU", "mac": "A8032AB12345", "ver": "1.4.4", "app": "Plus1PM"}

SWITCH_STATUS: dict[str, Any] = {
    "switch:0": {
        "id": 0,
        "source": "init",
        "output": True,
        "apower": 150.0,
        "voltage": 230.1,
        "current": 0.65,
        "aenergy": {"total": 1234.5},
        "temperature": {"tC": 41.2},
    },
    "sys": {"uptime": 1200},
}


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("SHELLYDECK_CONFIG", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeTransport:
    """In-memory transport that records what was asked of it."""

    def __init__(self) -> None:
        self.info: dict[str, dict[str, Any]] = {}
        self.statuses: dict[str, Any] = {}
        self.queued: dict[str, deque[tuple[float, Any]]] = defaultdict(deque)
        self.delays: dict[str, float] = {}
        self.configs: dict[str, Any] = {}
        self.streams: dict[str, list[PushEvent]] = {}
        self.hold_open: set[str] = set()
        self.stream_error: dict[str, Exception] = {}
        self.call_error: Exception | None = None

        self.status_requests: list[str] = []
        self.calls: list[tuple[str, int, str, str, int]] = []
        self.opened = 0
        self.closed_streams = 0
        self.closed = False

    async def fetch_info(self, address: str) -> dict[str, Any]:
        return copy.deepcopy(self.info.get(address, GEN2_INFO))

    async def fetch_status(self, address: str, generation: int) -> dict[str, Any]:
        self.status_requests.append(address)
        if self.queued[address]:
            delay, result = self.queued[address].popleft()
        else:
            delay, result = self.delays.get(address, 0.0), self.statuses.get(address, {})
        if delay:
            await asyncio.sleep(delay)
        if isinstance(result, Exception):
            raise result
        return copy.deepcopy(result)

    async def fetch_config(self, address: str, generation: int) -> dict[str, Any]:
        result = self.configs.get(address, {"sys": {"device": {"name": address}}})
        if isinstance(result, Exception):
            raise result
        return copy.deepcopy(result)

    async def subscribe(self, address: str):
        self.opened += 1
        try:
            for event in self.streams.get(address, []):
                await asyncio.sleep(0)
                yield event
            if address in self.stream_error:
                raise self.stream_error[address]
            if address in self.hold_open:
                await asyncio.Event().wait()
        finally:
            self.closed_streams += 1

    async def call(
        self, address: str, generation: int, command: str, component: str, component_id: int
    ) -> None:
        self.calls.append((address, generation, command, component, component_id))
        if self.call_error is not None:
            raise self.call_error

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def switch_status() -> dict[str, Any]:
    return copy.deepcopy(SWITCH_STATUS)
