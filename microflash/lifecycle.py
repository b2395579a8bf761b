"""
Engine lifespan management.

Handles startup and shutdown of the engine's subsystems:
- Logging setup
- Database initialization
- Service wiring
- Notification sweep and receipt jobs
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .core.config import get_settings
from .core.database import close_database, get_session_factory, init_database
from .domain.ports.push_sender import PushSender
from .infrastructure.push.expo_push_sender import ExpoPushSender
from .services.card_service import CardService
from .services.home_summary_service import HomeSummaryService
from .services.notification_eligibility import NotificationEligibilityService
from .services.notification_orchestrator import NotificationOrchestrator
from .services.notification_preferences import NotificationPreferencesService
from .services.notification_scheduler import NotificationJobs
from .services.scheduler import AsyncioIntervalBackend, RuntimeScheduler
from .services.sprint_service import SprintService
from .services.srs.fsrs import FSRSScheduler
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class EngineServices:
    """Everything a caller (HTTP layer, worker, tests) needs."""

    sprints: SprintService
    cards: CardService
    eligibility: NotificationEligibilityService
    preferences: NotificationPreferencesService
    home: HomeSummaryService
    orchestrator: NotificationOrchestrator
    jobs: NotificationJobs
    scheduler: RuntimeScheduler


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    push_sender: Optional[PushSender] = None,
    scheduler: Optional[RuntimeScheduler] = None,
) -> EngineServices:
    """Wire all services around one session factory."""
    fsrs = FSRSScheduler()
    eligibility = NotificationEligibilityService(session_factory)
    sprints = SprintService(session_factory, scheduler=fsrs)
    orchestrator = NotificationOrchestrator(
        session_factory,
        sprint_service=sprints,
        push_sender=push_sender or ExpoPushSender(),
        eligibility=eligibility,
    )
    runtime_scheduler = scheduler or AsyncioIntervalBackend()
    return EngineServices(
        sprints=sprints,
        cards=CardService(session_factory, scheduler=fsrs),
        eligibility=eligibility,
        preferences=NotificationPreferencesService(session_factory),
        home=HomeSummaryService(session_factory),
        orchestrator=orchestrator,
        jobs=NotificationJobs(orchestrator, runtime_scheduler),
        scheduler=runtime_scheduler,
    )


@asynccontextmanager
async def engine_lifespan(
    push_sender: Optional[PushSender] = None,
    scheduler: Optional[RuntimeScheduler] = None,
) -> AsyncIterator[EngineServices]:
    """Start the engine, yield its services, and shut everything down on exit."""
    settings = get_settings()
    setup_logging(settings.log_level, log_to_file=settings.log_to_file)
    logger.info("MicroFlash engine starting up (environment=%s)", settings.environment)

    try:
        await init_database()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    services = build_services(await get_session_factory(), push_sender, scheduler)
    services.jobs.register()
    await services.scheduler.start()

    try:
        yield services
    finally:
        logger.info("MicroFlash engine shutting down")
        await services.scheduler.stop()
        await close_database()
