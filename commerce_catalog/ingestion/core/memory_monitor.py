"""Resident memory sampling with a best-effort garbage collection hint."""

import gc
import asyncio
import logging
from typing import Optional

import psutil

from configs.settings import Settings

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class MemoryMonitor:
    """
    Samples process RSS periodically and on demand.

    Crossing MEMORY_THRESHOLD_MB logs a warning and runs gc.collect(); the
    pipeline is never paused.
    """

    def __init__(self, settings: Settings, process: Optional[psutil.Process] = None):
        self.settings = settings
        self.threshold_mb = settings.MEMORY_THRESHOLD_MB
        self.interval = settings.MEMORY_CHECK_INTERVAL
        self.process = process or psutil.Process()

        self.peak_mb = 0.0
        self.last_mb = 0.0
        self.gc_triggers = 0
        self._task: Optional[asyncio.Task] = None

    def sample(self) -> float:
        """Take one sample; returns current RSS in MB"""
        try:
            rss_mb = self.process.memory_info().rss / BYTES_PER_MB
        except psutil.Error as e:
            logger.debug(f"Memory sample failed: {e}")
            return self.last_mb

        self.last_mb = rss_mb
        if rss_mb > self.peak_mb:
            self.peak_mb = rss_mb

        if rss_mb > self.threshold_mb:
            logger.warning(f"⚠️ High memory usage: {rss_mb:.1f}MB (threshold {self.threshold_mb}MB), collecting garbage")
            gc.collect()
            self.gc_triggers += 1

        return rss_mb

    async def _run(self) -> None:
        while True:
            self.sample()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.sample()
