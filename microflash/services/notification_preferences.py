"""User-facing notification settings: push token registration and opt-out."""

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import InvalidPushToken, UserNotFound
from ..infrastructure.repositories import SqlAlchemyUserRepository
from ..models.value_objects import PushToken

logger = logging.getLogger(__name__)


class NotificationPreferencesService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def register_push_token(self, user_id: str, token: str) -> None:
        """Store the device's Expo push token.

        Raises:
            InvalidPushToken: the token is not an Expo push token.
            UserNotFound: no such user.
        """
        if not PushToken.is_valid(token):
            raise InvalidPushToken(token)
        async with self._session_factory.begin() as session:
            if not await SqlAlchemyUserRepository(session).set_push_token(user_id, token):
                raise UserNotFound(user_id)
        logger.info("Registered push token for user %s", user_id)

    async def unregister_push_token(self, user_id: str) -> None:
        async with self._session_factory.begin() as session:
            if not await SqlAlchemyUserRepository(session).set_push_token(user_id, None):
                raise UserNotFound(user_id)

    async def set_notifications_enabled(self, user_id: str, enabled: bool) -> None:
        async with self._session_factory.begin() as session:
            repo = SqlAlchemyUserRepository(session)
            if not await repo.set_notifications_enabled(user_id, enabled):
                raise UserNotFound(user_id)
        logger.info(
            "Notifications %s for user %s", "enabled" if enabled else "disabled", user_id
        )

    async def get_preferences(self, user_id: str) -> Dict[str, Optional[object]]:
        async with self._session_factory() as session:
            user = await SqlAlchemyUserRepository(session).get_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return {
            "notificationsEnabled": user.notifications_enabled,
            "hasPushToken": user.has_push_token,
            "quietHoursStart": user.quiet_hours_start,
            "quietHoursEnd": user.quiet_hours_end,
            "timezone": user.timezone,
        }
