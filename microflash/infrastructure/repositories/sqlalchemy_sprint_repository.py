"""SQLAlchemy implementation of SprintRepository."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from microflash.models.enums import SprintCardResult, SprintStatus
from microflash.models.sprint import Sprint, SprintCard

logger = logging.getLogger(__name__)


class SqlAlchemySprintRepository:
    """Concrete SprintRepository backed by SQLAlchemy async sessions.

    Every state change is a single UPDATE guarded by the expected current
    state; the returned bool tells the caller whether it won.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def _select_with_cards(self):
        return (
            select(Sprint)
            .options(
                selectinload(Sprint.sprint_cards).selectinload(SprintCard.card),
                selectinload(Sprint.deck),
            )
            .execution_options(populate_existing=True)
        )

    async def add(self, sprint: Sprint) -> Sprint:
        """Persist a new sprint (and its cards) and return it reloaded."""
        self._session.add(sprint)
        await self._session.flush()
        return await self.get(sprint.id)

    async def get(self, sprint_id: str) -> Optional[Sprint]:
        result = await self._session.execute(
            self._select_with_cards().where(Sprint.id == sprint_id)
        )
        return result.scalar_one_or_none()

    async def find_resumable(self, user_id: str, now: datetime) -> Optional[Sprint]:
        result = await self._session.execute(
            self._select_with_cards()
            .where(
                Sprint.user_id == user_id,
                Sprint.status == SprintStatus.ACTIVE,
                Sprint.resumable_until > now,
            )
            .order_by(Sprint.started_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_expired(self, user_id: str, now: datetime) -> List[Sprint]:
        """ACTIVE sprints of the user whose resume window has passed."""
        result = await self._session.execute(
            self._select_with_cards().where(
                Sprint.user_id == user_id,
                Sprint.status == SprintStatus.ACTIVE,
                Sprint.resumable_until <= now,
            )
        )
        return list(result.scalars().all())

    async def transition(
        self,
        sprint_id: str,
        from_status: SprintStatus,
        to_status: SprintStatus,
        **values,
    ) -> bool:
        result = await self._session.execute(
            update(Sprint)
            .where(Sprint.id == sprint_id, Sprint.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1  # type: ignore[attr-defined]
        if not changed:
            logger.debug(
                "Sprint %s was not %s; transition to %s skipped",
                sprint_id,
                from_status.value,
                to_status.value,
            )
        return changed

    async def extend_resume_window(
        self, sprint_id: str, resumable_until: datetime
    ) -> bool:
        result = await self._session.execute(
            update(Sprint)
            .where(Sprint.id == sprint_id, Sprint.status == SprintStatus.ACTIVE)
            .values(resumable_until=resumable_until)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def grade_card(
        self,
        sprint_id: str,
        card_id: str,
        result: SprintCardResult,
        reviewed_at: datetime,
    ) -> bool:
        outcome = await self._session.execute(
            update(SprintCard)
            .where(
                SprintCard.sprint_id == sprint_id,
                SprintCard.card_id == card_id,
                SprintCard.result.is_(None),
            )
            .values(result=result, reviewed_at=reviewed_at)
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount == 1  # type: ignore[attr-defined]

    async def delete_pending(self, sprint_id: str) -> bool:
        await self._session.execute(
            delete(SprintCard).where(
                SprintCard.sprint_id == sprint_id,
                SprintCard.sprint_id.in_(
                    select(Sprint.id).where(
                        Sprint.id == sprint_id, Sprint.status == SprintStatus.PENDING
                    )
                ),
            )
        )
        result = await self._session.execute(
            delete(Sprint)
            .where(Sprint.id == sprint_id, Sprint.status == SprintStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
