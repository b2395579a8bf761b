"""SQLAlchemy implementation of UserRepository."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from microflash.models.user import User

logger = logging.getLogger(__name__)


class SqlAlchemyUserRepository:
    """Concrete UserRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, user: User) -> User:
        self._session.add(user)
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Look up a user by ID."""
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def list_notification_candidates(self) -> List[User]:
        """Users with notifications enabled and a non-empty push token."""
        result = await self._session.execute(
            select(User)
            .where(
                User.notifications_enabled.is_(True),
                User.push_token.is_not(None),
                User.push_token != "",
            )
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def record_push_sent(
        self, user_id: str, sent_at: datetime, count_today: int
    ) -> None:
        await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_push_sent_at=sent_at, notifications_count_today=count_today)
            .execution_options(synchronize_session=False)
        )

    async def set_push_token(self, user_id: str, token: Optional[str]) -> bool:
        result = await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(push_token=token)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def clear_push_token(self, token: str) -> int:
        """Remove the token from every user holding it. Returns rows changed."""
        result = await self._session.execute(
            update(User)
            .where(User.push_token == token)
            .values(push_token=None)
            .execution_options(synchronize_session=False)
        )
        cleared = result.rowcount  # type: ignore[attr-defined]
        if cleared:
            logger.info("Cleared push token from %d user(s)", cleared)
        return cleared

    async def set_notifications_enabled(self, user_id: str, enabled: bool) -> bool:
        result = await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(notifications_enabled=enabled)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]
