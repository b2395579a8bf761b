"""Tests for the scheduler abstraction and the notification job wiring."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from microflash.services.notification_orchestrator import SweepResult
from microflash.services.notification_scheduler import (
    RECEIPTS_JOB_NAME,
    SWEEP_JOB_NAME,
    NotificationJobs,
)
from microflash.services.scheduler import AsyncioIntervalBackend, RuntimeScheduler
from microflash.services.scheduler.base import ScheduledJob

# ------------------------------------------------------------------
# ScheduledJob validation
# ------------------------------------------------------------------


def test_interval_job_requires_positive_seconds():
    """Interval must be a positive number of seconds."""
    with pytest.raises(ValueError, match="interval_seconds"):
        ScheduledJob(name="test", callback=AsyncMock(), interval_seconds=0)


def test_first_delay_cannot_be_negative():
    with pytest.raises(ValueError, match="first_delay_seconds"):
        ScheduledJob(
            name="test", callback=AsyncMock(), interval_seconds=60, first_delay_seconds=-1
        )


def test_job_requires_name():
    with pytest.raises(ValueError, match="name"):
        ScheduledJob(name="", callback=AsyncMock(), interval_seconds=60)


def test_valid_interval_job():
    """Valid job creates without error."""
    job = ScheduledJob(name="test", callback=AsyncMock(), interval_seconds=300)
    assert job.interval_seconds == 300
    assert job.first_delay_seconds == 60
    assert job.enabled is True


# ------------------------------------------------------------------
# AsyncioIntervalBackend
# ------------------------------------------------------------------


def _job(name="tick", callback=None, interval=3600, first_delay=0, enabled=True):
    return ScheduledJob(
        name=name,
        callback=callback or AsyncMock(),
        interval_seconds=interval,
        first_delay_seconds=first_delay,
        enabled=enabled,
    )


def test_backend_is_a_runtime_scheduler():
    assert isinstance(AsyncioIntervalBackend(), RuntimeScheduler)


def test_schedule_and_list():
    backend = AsyncioIntervalBackend()
    backend.schedule(_job("a"))
    backend.schedule(_job("b"))
    assert backend.list_jobs() == ["a", "b"]


def test_disabled_job_is_skipped():
    backend = AsyncioIntervalBackend()
    backend.schedule(_job("off", enabled=False))
    assert backend.list_jobs() == []


def test_cancel():
    backend = AsyncioIntervalBackend()
    backend.schedule(_job("a"))
    assert backend.cancel("a") is True
    assert backend.cancel("a") is False
    assert backend.list_jobs() == []


async def test_start_runs_job_after_first_delay():
    ran = asyncio.Event()

    async def callback():
        ran.set()

    backend = AsyncioIntervalBackend()
    backend.schedule(_job(callback=callback))
    await backend.start()
    try:
        await asyncio.wait_for(ran.wait(), timeout=1)
        assert backend.running is True
    finally:
        await backend.stop()

    assert backend.running is False
    assert backend.list_jobs() == []


async def test_failing_run_does_not_stop_the_loop():
    calls = []
    second_run = asyncio.Event()

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")
        second_run.set()

    backend = AsyncioIntervalBackend()
    backend.schedule(_job(callback=flaky, interval=0.01))
    await backend.start()
    try:
        await asyncio.wait_for(second_run.wait(), timeout=1)
    finally:
        await backend.stop()

    assert len(calls) >= 2


async def test_scheduling_on_running_backend_starts_immediately():
    ran = asyncio.Event()

    async def callback():
        ran.set()

    backend = AsyncioIntervalBackend()
    await backend.start()
    try:
        backend.schedule(_job(callback=callback))
        await asyncio.wait_for(ran.wait(), timeout=1)
    finally:
        await backend.stop()


async def test_stop_cancels_pending_runs():
    callback = AsyncMock()
    backend = AsyncioIntervalBackend()
    backend.schedule(_job(callback=callback, first_delay=3600))
    await backend.start()
    await backend.stop()
    callback.assert_not_awaited()


# ------------------------------------------------------------------
# NotificationJobs
# ------------------------------------------------------------------


def test_register_schedules_sweep_and_receipts():
    orchestrator = MagicMock()
    backend = AsyncioIntervalBackend()
    jobs = NotificationJobs(
        orchestrator, backend, interval_minutes=10, first_delay_seconds=30, enabled=True
    )

    assert jobs.register() == [SWEEP_JOB_NAME, RECEIPTS_JOB_NAME]

    sweep, receipts = jobs.jobs()
    assert sweep.interval_seconds == 600
    assert sweep.first_delay_seconds == 30
    assert receipts.first_delay_seconds == 30 + 300


def test_disabled_jobs_register_nothing():
    backend = AsyncioIntervalBackend()
    jobs = NotificationJobs(MagicMock(), backend, enabled=False)
    assert jobs.register() == []
    assert backend.list_jobs() == []


def test_defaults_come_from_settings():
    jobs = NotificationJobs(MagicMock(), AsyncioIntervalBackend())
    assert jobs.interval_seconds == 15 * 60
    assert jobs.first_delay_seconds == 60
    # Disabled for the test run via NOTIFICATION_SWEEP_ENABLED
    assert jobs.enabled is False


async def test_job_callbacks_delegate_to_orchestrator():
    orchestrator = MagicMock()
    orchestrator.run_sweep = AsyncMock(return_value=SweepResult(skipped_in_progress=True))
    orchestrator.process_receipts = AsyncMock(return_value=0)
    jobs = NotificationJobs(orchestrator, AsyncioIntervalBackend(), enabled=True)

    await jobs.run_sweep()
    await jobs.check_receipts()

    orchestrator.run_sweep.assert_awaited_once_with()
    orchestrator.process_receipts.assert_awaited_once_with()
