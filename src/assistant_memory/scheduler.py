"""Periodic background maintenance (optimization and health checks)."""

import asyncio
import logging
from typing import Callable, Coroutine

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Coroutine]


class MaintenanceScheduler:
    """
    Runs named jobs on fixed intervals until stopped.

    A job that raises is logged and tried again on its next tick; the loop
    itself only ends on stop().
    """

    def __init__(self):
        self._jobs: dict[str, tuple[float, JobCallback]] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._stop = asyncio.Event()
        self.runs: dict[str, int] = {}
        self.failures: dict[str, int] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def add_job(self, name: str, interval_seconds: float, callback: JobCallback):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.running:
            raise RuntimeError("Cannot add jobs while the scheduler is running")
        self._jobs[name] = (interval_seconds, callback)
        self.runs[name] = 0
        self.failures[name] = 0

    def start(self):
        if self.running:
            return
        self._stop.clear()
        for name, (interval, callback) in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._loop(name, interval, callback))
        logger.info(f"Maintenance scheduler started with {len(self._jobs)} job(s)")

    async def stop(self):
        if not self.running:
            return
        self._stop.set()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()
        logger.info("Maintenance scheduler stopped")

    async def _loop(self, name: str, interval: float, callback: JobCallback):
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if self._stop.is_set():
                break

            try:
                await callback()
                self.runs[name] += 1
            except Exception as e:
                self.failures[name] += 1
                logger.error(f"Maintenance job '{name}' failed: {e}")
