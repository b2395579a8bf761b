"""Card-level operations outside of sprints: creation and manual snoozing."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..domain.errors import CardNotFound, CardNotOwned, DeckNotFound
from ..infrastructure.repositories import SqlAlchemyCardRepository
from ..models.base import utcnow
from ..models.card import Card
from ..models.deck import Deck
from .srs.fsrs import FSRSScheduler

logger = logging.getLogger(__name__)

MIN_SNOOZE_MINUTES = 1
MAX_SNOOZE_MINUTES = 24 * 60


class CardService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: Optional[FSRSScheduler] = None,
    ) -> None:
        self._session_factory = session_factory
        self._scheduler = scheduler or FSRSScheduler()

    async def create_card(
        self,
        deck_id: str,
        front: str,
        back: str,
        priority: int = 50,
        now: Optional[datetime] = None,
    ) -> Card:
        """Create a NEW card that is due immediately."""
        if not 0 <= priority <= 100:
            raise ValueError(f"priority must be between 0 and 100, got {priority}")
        now = now or utcnow()

        async with self._session_factory.begin() as session:
            if await session.get(Deck, deck_id) is None:
                raise DeckNotFound(deck_id)
            card = Card(deck_id=deck_id, front=front, back=back, priority=priority, created_at=now)
            card.apply_memory_state(
                self._scheduler.initialize(), self._scheduler.initial_review_date(now)
            )
            card = await SqlAlchemyCardRepository(session).add(card)
        return card

    async def snooze(
        self,
        card_id: str,
        user_id: str,
        minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Card:
        """Hide a card from selection for ``minutes`` (1-1440, default 30)."""
        minutes = minutes if minutes is not None else get_settings().default_snooze_minutes
        if not MIN_SNOOZE_MINUTES <= minutes <= MAX_SNOOZE_MINUTES:
            raise ValueError(
                f"snooze minutes must be between {MIN_SNOOZE_MINUTES} and "
                f"{MAX_SNOOZE_MINUTES}, got {minutes}"
            )
        now = now or utcnow()
        until = now + timedelta(minutes=minutes)

        async with self._session_factory.begin() as session:
            card = await self._load_owned(session, card_id, user_id)
            card.snoozed_until = until

        logger.info("Snoozed card %s until %s", card_id, until.isoformat())
        return card

    async def unsnooze(self, card_id: str, user_id: str) -> Card:
        async with self._session_factory.begin() as session:
            card = await self._load_owned(session, card_id, user_id)
            card.snoozed_until = None
        return card

    @staticmethod
    async def _load_owned(session: AsyncSession, card_id: str, user_id: str) -> Card:
        found = await SqlAlchemyCardRepository(session).get_with_owner(card_id)
        if found is None:
            raise CardNotFound(card_id)
        card, owner_id = found
        if owner_id != user_id:
            raise CardNotOwned(card_id, user_id)
        return card
