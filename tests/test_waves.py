from __future__ import annotations

import asyncio

import pytest

from shellydeck.config import LoadingConfig
from shellydeck.core import ConnectionFailed, DeviceCache, WaveLoader, plan_waves
from shellydeck.models import Device


def _devices() -> list[Device]:
    return [
        Device(name="garage", address="10.0.0.1", generation=1),
        Device(name="attic", address="10.0.0.2", generation=1),
        Device(name="kitchen", address="10.0.0.3", generation=2),
        Device(name="boiler", address="10.0.0.4", generation=3),
        Device(name="unknown", address="10.0.0.5"),
    ]


def test_plan_waves_orders_gen2_first():
    waves = plan_waves(_devices(), wave_size=2)

    assert waves == [["boiler", "kitchen"], ["unknown", "attic"], ["garage"]]


def test_plan_waves_rejects_bad_size():
    with pytest.raises(ValueError):
        plan_waves(_devices(), wave_size=0)
    assert plan_waves([], wave_size=3) == []


def test_loader_fetches_every_device_and_completes_once(transport, switch_status):
    for device in _devices():
        transport.statuses[device.address] = switch_status
    cache = DeviceCache(_devices(), transport)
    waves_seen: list[int] = []
    completions: list[bool] = []
    loader = WaveLoader(
        cache,
        LoadingConfig(wave_size=2, wave_delay=0),
        on_wave=waves_seen.append,
        on_complete=lambda: completions.append(True),
    )

    asyncio.run(loader.run())

    assert waves_seen == [0, 1, 2]
    assert completions == [True]
    assert loader.completed
    assert sorted(transport.status_requests) == [f"10.0.0.{i}" for i in range(1, 6)]
    # Gen2+ devices are requested before Gen1 ones.
    assert transport.status_requests.index("10.0.0.4") < transport.status_requests.index("10.0.0.1")
    assert cache.online_count() == 5


def test_loader_with_no_devices_still_completes(transport):
    cache = DeviceCache([], transport)
    completions: list[bool] = []
    loader = WaveLoader(cache, on_complete=lambda: completions.append(True))

    asyncio.run(loader.run())
    asyncio.run(loader.run())

    assert loader.waves == []
    assert completions == [True]


def test_waves_settle_in_order_despite_failures(transport, switch_status):
    devices = [
        Device(name=name, address=f"10.0.1.{i}", generation=2)
        for i, name in enumerate(["alpha", "bravo", "charlie", "delta"], start=1)
    ]
    for device in devices:
        transport.statuses[device.address] = switch_status
    transport.queued["10.0.1.1"].append((0.0, ConnectionFailed("refused")))
    transport.queued["10.0.1.2"].append((0.05, switch_status))
    transport.queued["10.0.1.3"].append((0.0, {"relays": [], "meters": 5}))
    cache = DeviceCache(devices, transport)
    progress: list[tuple[int, int, bool]] = []
    completions: list[bool] = []

    def on_wave(index: int) -> None:
        progress.append((index, len(transport.status_requests), cache.get("bravo").fetched))

    loader = WaveLoader(
        cache,
        LoadingConfig(wave_size=2, wave_delay=0),
        on_wave=on_wave,
        on_complete=lambda: completions.append(True),
    )

    asyncio.run(loader.run())

    assert progress == [(0, 2, True), (1, 4, True)]
    assert completions == [True]
    assert sorted(transport.status_requests) == [d.address for d in devices]
    states = cache.snapshot()
    assert states["alpha"].error == "refused"
    assert states["charlie"].online is False
    assert states["charlie"].error.startswith("Malformed status")
    assert states["bravo"].online and states["delta"].online

    asyncio.run(loader.run())

    assert len(transport.status_requests) == 4
    assert completions == [True]
