"""
AsyncioIntervalBackend — RuntimeScheduler running jobs as asyncio tasks.

Each job gets one task looping over sleep/run. A failing run is logged and
the loop carries on with the next interval.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from .base import RuntimeScheduler, ScheduledJob

logger = logging.getLogger(__name__)


class AsyncioIntervalBackend(RuntimeScheduler):
    """In-process scheduler backed by the running event loop."""

    def __init__(self) -> None:
        self._jobs: Dict[str, ScheduledJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def schedule(self, job: ScheduledJob) -> None:
        if not job.enabled:
            logger.info("Job '%s' is disabled, skipping", job.name)
            return
        if job.name in self._jobs:
            self.cancel(job.name)

        self._jobs[job.name] = job
        logger.info(
            "Scheduled interval job '%s' every %ds (first after %ds)",
            job.name,
            job.interval_seconds,
            job.first_delay_seconds,
        )
        if self._running:
            self._spawn(job)

    def cancel(self, name: str) -> bool:
        if name not in self._jobs:
            return False
        del self._jobs[name]
        task: Optional[asyncio.Task] = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()
        logger.info("Cancelled job '%s'", name)
        return True

    def list_jobs(self) -> List[str]:
        return list(self._jobs.keys())

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._spawn(job)
        logger.info("Scheduler started with %d job(s)", len(self._jobs))

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._jobs.clear()
        logger.info("All scheduled jobs cancelled")

    def _spawn(self, job: ScheduledJob) -> None:
        self._tasks[job.name] = asyncio.create_task(
            self._run_forever(job), name=f"scheduler:{job.name}"
        )

    async def _run_forever(self, job: ScheduledJob) -> None:
        await asyncio.sleep(job.first_delay_seconds)
        while True:
            try:
                await job.callback()
            except Exception:
                logger.exception("Scheduled job '%s' failed", job.name)
            await asyncio.sleep(job.interval_seconds)
