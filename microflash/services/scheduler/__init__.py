from .asyncio_backend import AsyncioIntervalBackend
from .base import RuntimeScheduler, ScheduledJob

__all__ = ["AsyncioIntervalBackend", "RuntimeScheduler", "ScheduledJob"]
