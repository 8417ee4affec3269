"""Periodic background jobs owned by the application lifespan."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_STOP_TIMEOUT = 30.0


class PeriodicJob:
    """Runs a coroutine function on a fixed interval in one asyncio task.

    Runs never overlap: the next run starts ``interval`` seconds after the
    previous one started, or immediately if the previous run took longer.
    A failing run is logged and the job keeps going.

    Args:
        name: Name used in log lines.
        func: Coroutine function run on every tick.
        interval: Seconds between the starts of consecutive runs.
        startup_delay: Seconds to wait before the first run.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval: float,
        startup_delay: float = 0.0,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be > 0, got {interval}"
            raise ValueError(msg)
        if startup_delay < 0:
            msg = f"startup_delay must be >= 0, got {startup_delay}"
            raise ValueError(msg)
        self.name = name
        self._func = func
        self._interval = interval
        self._startup_delay = startup_delay
        self._task: asyncio.Task[None] | None = None
        self._stop_requested = asyncio.Event()
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        """Run the job once, logging instead of raising on failure."""
        logger.info("----- Running task: %s", self.name)
        self.runs += 1
        try:
            await self._func()
        except Exception:
            self.failures += 1
            logger.exception("Failed task: %s", self.name)
        else:
            logger.info("----- Done: %s", self.name)

    async def _wait(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns False if a stop was requested."""
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
        except TimeoutError:
            return True
        return False

    async def _loop(self) -> None:
        if not await self._wait(self._startup_delay):
            return
        while True:
            started = time.monotonic()
            await self.run_once()
            elapsed = time.monotonic() - started
            if not await self._wait(max(0.0, self._interval - elapsed)):
                return

    def start(self) -> None:
        """Start the job. Idempotent."""
        if self.is_running:
            return
        self._stop_requested = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(
            "Scheduled task %s every %.0fs (first run in %.0fs)",
            self.name,
            self._interval,
            self._startup_delay,
        )

    async def stop(self) -> None:
        """Stop issuing runs and wait for the job to finish.

        A run in progress is allowed to complete. It is only cancelled if it
        is still going after ``_STOP_TIMEOUT`` seconds.
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        self._stop_requested.set()
        try:
            await asyncio.wait_for(task, timeout=_STOP_TIMEOUT)
        except TimeoutError:
            logger.warning(
                "Task %s did not finish within %.1fs and was cancelled", self.name, _STOP_TIMEOUT
            )


class JobScheduler:
    """Owns the application's periodic jobs; started and stopped once per process."""

    def __init__(self) -> None:
        self._jobs: dict[str, PeriodicJob] = {}

    @property
    def jobs(self) -> list[PeriodicJob]:
        return list(self._jobs.values())

    def add(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval: float,
        startup_delay: float = 0.0,
    ) -> PeriodicJob:
        """Register a job. Raises ValueError if the name is taken."""
        if name in self._jobs:
            msg = f"Job {name!r} is already registered"
            raise ValueError(msg)
        job = PeriodicJob(name, func, interval, startup_delay)
        self._jobs[name] = job
        return job

    def start(self) -> None:
        for job in self._jobs.values():
            job.start()

    async def stop(self) -> None:
        for job in self._jobs.values():
            await job.stop()
