"""Home screen summary: what is due, what can be resumed, when the next nudge may come."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import UserNotFound
from ..infrastructure.repositories import (
    SqlAlchemyCardRepository,
    SqlAlchemySprintRepository,
    SqlAlchemyUserRepository,
)
from ..models.base import utcnow
from .card_selector import CardSelector
from .notification_eligibility import NotificationProfile, evaluate_eligibility

logger = logging.getLogger(__name__)

OVERDUE_AFTER = timedelta(hours=24)


@dataclass(frozen=True)
class HomeSummary:
    due_count: int
    overdue_count: int
    resumable_sprint: Optional[Dict[str, Any]]
    next_eligible_push_time: Optional[datetime]
    notifications_enabled: bool
    has_push_token: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dueCount": self.due_count,
            "overdueCount": self.overdue_count,
            "resumableSprint": self.resumable_sprint,
            "nextEligiblePushTime": self.next_eligible_push_time.isoformat()
            if self.next_eligible_push_time
            else None,
            "notificationsEnabled": self.notifications_enabled,
            "hasPushToken": self.has_push_token,
        }


class HomeSummaryService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def summary(self, user_id: str, now: Optional[datetime] = None) -> HomeSummary:
        now = now or utcnow()
        async with self._session_factory() as session:
            user = await SqlAlchemyUserRepository(session).get_by_id(user_id)
            if user is None:
                raise UserNotFound(user_id)

            selector = CardSelector(SqlAlchemyCardRepository(session))
            due_count = await selector.count_due(user_id, now)
            overdue_count = await selector.count_due(
                user_id, now, due_before=now - OVERDUE_AFTER
            )
            sprint = await SqlAlchemySprintRepository(session).find_resumable(user_id, now)

        resumable = None
        if sprint is not None:
            resumable = {
                "id": sprint.id,
                "resumableUntil": sprint.resumable_until.isoformat()
                if sprint.resumable_until
                else None,
                "progress": sprint.progress(),
                "deckTitle": sprint.deck.title if sprint.deck is not None else None,
            }

        eligibility = evaluate_eligibility(
            NotificationProfile.from_user(user),
            now,
            sprint.resumable_until if sprint is not None else None,
        )

        return HomeSummary(
            due_count=due_count,
            overdue_count=overdue_count,
            resumable_sprint=resumable,
            next_eligible_push_time=eligibility.next_eligible_at,
            notifications_enabled=user.notifications_enabled,
            has_push_token=user.has_push_token,
        )
