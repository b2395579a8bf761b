"""
Scheduler base types and abstract interface.

ScheduledJob describes what to run and how often.
RuntimeScheduler is the ABC for in-process backends (e.g. AsyncioIntervalBackend).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, List


@dataclass
class ScheduledJob:
    """A coroutine to run every ``interval_seconds``.

    The first run happens ``first_delay_seconds`` after the backend starts
    (or after scheduling, if the backend is already running).
    """

    name: str
    callback: Callable[[], Coroutine[Any, Any, Any]]
    interval_seconds: int
    first_delay_seconds: int = 60
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name is required")
        if not self.interval_seconds or self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be a positive number of seconds")
        if self.first_delay_seconds < 0:
            raise ValueError("first_delay_seconds cannot be negative")


class RuntimeScheduler(ABC):
    """ABC for in-process job schedulers."""

    @abstractmethod
    def schedule(self, job: ScheduledJob) -> None:
        """Register a job for execution."""

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Cancel a scheduled job by name. Returns True if found."""

    @abstractmethod
    def list_jobs(self) -> List[str]:
        """Return names of all registered jobs."""

    @abstractmethod
    async def start(self) -> None:
        """Start running registered jobs."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the scheduler and cancel all jobs."""
