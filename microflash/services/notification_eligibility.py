"""
Notification eligibility.

Decides whether a user may receive a push right now and, if not, when the
earliest next attempt makes sense. Rules are evaluated in a fixed order and
the first failing rule wins:

1. notifications disabled
2. no push token
3. a resumable sprint exists      -> next = its resumable_until
4. inside quiet hours              -> next = end of quiet hours (user's timezone)
5. cooldown since last push        -> next = last push + cooldown
6. daily cap reached (UTC day)     -> next = start of the next UTC day

The rule evaluation itself is pure; NotificationEligibilityService wraps it
with the lookups it needs.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import UserNotFound
from ..infrastructure.repositories import (
    SqlAlchemySprintRepository,
    SqlAlchemyUserRepository,
)
from ..models.base import utcnow
from ..models.user import User
from ..models.value_objects import QuietHours

logger = logging.getLogger(__name__)


class IneligibilityReason(str, enum.Enum):
    NOTIFICATIONS_DISABLED = "NOTIFICATIONS_DISABLED"
    NO_PUSH_TOKEN = "NO_PUSH_TOKEN"
    RESUMABLE_SPRINT_EXISTS = "RESUMABLE_SPRINT_EXISTS"
    QUIET_HOURS_ACTIVE = "QUIET_HOURS_ACTIVE"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    MAX_PER_DAY_REACHED = "MAX_PER_DAY_REACHED"


@dataclass(frozen=True)
class NotificationProfile:
    """Plain-data view of the user fields the rules look at."""

    notifications_enabled: bool
    push_token: Optional[str]
    cooldown_minutes: int
    max_per_day: int
    count_today: int
    last_push_sent_at: Optional[datetime]
    quiet_hours: Optional[QuietHours]
    timezone: str = "UTC"

    @classmethod
    def from_user(cls, user: User) -> "NotificationProfile":
        return cls(
            notifications_enabled=bool(user.notifications_enabled),
            push_token=user.push_token,
            cooldown_minutes=user.notification_cooldown_minutes or 0,
            max_per_day=user.max_notifications_per_day or 0,
            count_today=user.notifications_count_today or 0,
            last_push_sent_at=user.last_push_sent_at,
            quiet_hours=user.quiet_hours,
            timezone=user.timezone or "UTC",
        )


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    next_eligible_at: Optional[datetime]
    reason: Optional[IneligibilityReason] = None

    @classmethod
    def ok(cls, now: datetime) -> "EligibilityResult":
        return cls(eligible=True, next_eligible_at=now)

    @classmethod
    def blocked(
        cls, reason: IneligibilityReason, next_eligible_at: Optional[datetime] = None
    ) -> "EligibilityResult":
        return cls(eligible=False, next_eligible_at=next_eligible_at, reason=reason)


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """ZoneInfo for an IANA name; UTC when the name is missing or unknown."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def start_of_next_utc_day(now: datetime) -> datetime:
    now_utc = now.astimezone(timezone.utc)
    return datetime(now_utc.year, now_utc.month, now_utc.day, tzinfo=timezone.utc) + timedelta(
        days=1
    )


def effective_count_today(profile: NotificationProfile, now: datetime) -> int:
    """Pushes sent today; the stored counter is stale unless the last push was today (UTC)."""
    if profile.last_push_sent_at is None:
        return 0
    last = profile.last_push_sent_at.astimezone(timezone.utc).date()
    if last != now.astimezone(timezone.utc).date():
        return 0
    return profile.count_today


def quiet_hours_end(profile: NotificationProfile, now: datetime) -> Optional[datetime]:
    """If now is inside the user's quiet hours, when they end (UTC); else None."""
    if profile.quiet_hours is None:
        return None
    local_now = now.astimezone(resolve_timezone(profile.timezone))
    if not profile.quiet_hours.contains(local_now.time()):
        return None
    return profile.quiet_hours.next_end_after(local_now).astimezone(timezone.utc)


def evaluate_eligibility(
    profile: NotificationProfile,
    now: datetime,
    resumable_until: Optional[datetime] = None,
) -> EligibilityResult:
    """Apply the eligibility rules in order; the first failure decides."""
    if not profile.notifications_enabled:
        return EligibilityResult.blocked(IneligibilityReason.NOTIFICATIONS_DISABLED)

    if not profile.push_token:
        return EligibilityResult.blocked(IneligibilityReason.NO_PUSH_TOKEN)

    if resumable_until is not None and resumable_until > now:
        return EligibilityResult.blocked(
            IneligibilityReason.RESUMABLE_SPRINT_EXISTS, resumable_until
        )

    quiet_end = quiet_hours_end(profile, now)
    if quiet_end is not None:
        return EligibilityResult.blocked(IneligibilityReason.QUIET_HOURS_ACTIVE, quiet_end)

    if profile.last_push_sent_at is not None:
        cooldown_ends = profile.last_push_sent_at + timedelta(minutes=profile.cooldown_minutes)
        if now < cooldown_ends:
            return EligibilityResult.blocked(IneligibilityReason.COOLDOWN_ACTIVE, cooldown_ends)

    if effective_count_today(profile, now) >= profile.max_per_day:
        return EligibilityResult.blocked(
            IneligibilityReason.MAX_PER_DAY_REACHED, start_of_next_utc_day(now)
        )

    return EligibilityResult.ok(now)


class NotificationEligibilityService:
    """Looks up the user's resumable sprint and applies the eligibility rules."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def check(self, user: User, now: Optional[datetime] = None) -> EligibilityResult:
        now = now or utcnow()
        profile = NotificationProfile.from_user(user)

        resumable_until = None
        # Cheap rules first; only hit the store when they pass
        if profile.notifications_enabled and profile.push_token:
            async with self._session_factory() as session:
                sprint = await SqlAlchemySprintRepository(session).find_resumable(user.id, now)
            if sprint is not None:
                resumable_until = sprint.resumable_until

        result = evaluate_eligibility(profile, now, resumable_until)
        if not result.eligible:
            logger.debug("User %s not eligible for push: %s", user.id, result.reason.value)
        return result

    async def next_eligible_push_time(
        self, user_id: str, now: Optional[datetime] = None
    ) -> Optional[str]:
        """ISO-8601 time of the earliest possible push, or None if never."""
        now = now or utcnow()
        async with self._session_factory() as session:
            user = await SqlAlchemyUserRepository(session).get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        result = await self.check(user, now)
        return result.next_eligible_at.isoformat() if result.next_eligible_at else None
