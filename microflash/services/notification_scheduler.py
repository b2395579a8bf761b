"""Registers the periodic notification jobs on a RuntimeScheduler."""

import logging
from typing import List, Optional

from ..core.config import get_settings
from .notification_orchestrator import NotificationOrchestrator
from .scheduler.base import RuntimeScheduler, ScheduledJob

logger = logging.getLogger(__name__)

SWEEP_JOB_NAME = "notification_sweep"
RECEIPTS_JOB_NAME = "push_receipts"


class NotificationJobs:
    """Wires NotificationOrchestrator into an injected scheduler backend."""

    def __init__(
        self,
        orchestrator: NotificationOrchestrator,
        scheduler: RuntimeScheduler,
        interval_minutes: Optional[int] = None,
        first_delay_seconds: Optional[int] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self._orchestrator = orchestrator
        self._scheduler = scheduler
        self.interval_seconds = (
            interval_minutes or settings.notification_sweep_interval_minutes
        ) * 60
        self.first_delay_seconds = (
            first_delay_seconds
            if first_delay_seconds is not None
            else settings.notification_sweep_first_delay_seconds
        )
        self.enabled = settings.notification_sweep_enabled if enabled is None else enabled

    async def run_sweep(self) -> None:
        result = await self._orchestrator.run_sweep()
        if result.skipped_in_progress:
            logger.info("Previous notification sweep still running")

    async def check_receipts(self) -> None:
        await self._orchestrator.process_receipts()

    def jobs(self) -> List[ScheduledJob]:
        return [
            ScheduledJob(
                name=SWEEP_JOB_NAME,
                callback=self.run_sweep,
                interval_seconds=self.interval_seconds,
                first_delay_seconds=self.first_delay_seconds,
                enabled=self.enabled,
            ),
            # Receipts lag the sends by half an interval
            ScheduledJob(
                name=RECEIPTS_JOB_NAME,
                callback=self.check_receipts,
                interval_seconds=self.interval_seconds,
                first_delay_seconds=self.first_delay_seconds + self.interval_seconds // 2,
                enabled=self.enabled,
            ),
        ]

    def register(self) -> List[str]:
        """Schedule both jobs; returns the names actually registered."""
        for job in self.jobs():
            self._scheduler.schedule(job)
        active = self._scheduler.list_jobs()
        registered = [name for name in (SWEEP_JOB_NAME, RECEIPTS_JOB_NAME) if name in active]
        logger.info("Notification jobs registered: %s", ", ".join(registered) or "none")
        return registered
