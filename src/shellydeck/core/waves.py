"""Startup loading in waves.

Fetching a large fleet at once floods slow devices and the local network, so
devices are partitioned into small batches fetched one after another.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from shellydeck.config import LoadingConfig
from shellydeck.models import Device

from .cache import DeviceCache

logger = logging.getLogger(__name__)


def plan_waves(devices: Sequence[Device], wave_size: int) -> list[list[str]]:
    """Partition devices into batches: Gen2+ first, then Gen1, each by name.

    Devices of unknown generation are treated as Gen2+.
    """
    if wave_size < 1:
        raise ValueError("wave_size must be >= 1")
    ordered = sorted(devices, key=lambda device: (device.generation == 1, device.name))
    names = [device.name for device in ordered]
    return [names[i : i + wave_size] for i in range(0, len(names), wave_size)]


class WaveLoader:
    def __init__(
        self,
        cache: DeviceCache,
        config: LoadingConfig | None = None,
        on_wave: Callable[[int], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._cache = cache
        self._config = config or LoadingConfig()
        self._on_wave = on_wave
        self._on_complete = on_complete
        self._completed = False
        self.waves = plan_waves(cache.devices(), self._config.wave_size)

    @property
    def completed(self) -> bool:
        return self._completed

    async def run(self) -> None:
        if self._completed:
            logger.debug("Wave loading already completed")
            return
        total = len(self.waves)
        for index, wave in enumerate(self.waves):
            logger.debug("Loading wave %d/%d: %s", index + 1, total, ", ".join(wave))
            results = await asyncio.gather(
                *(self._cache.fetch_one(name) for name in wave), return_exceptions=True
            )
            for name, result in zip(wave, results):
                if isinstance(result, BaseException):
                    logger.warning("Loading %s failed: %s", name, result)
            if self._on_wave is not None:
                self._on_wave(index)
            if index < total - 1 and self._config.wave_delay > 0:
                await asyncio.sleep(self._config.wave_delay)
        self._complete()

    def _complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        logger.debug("All devices loaded")
        if self._on_complete is not None:
            self._on_complete()
