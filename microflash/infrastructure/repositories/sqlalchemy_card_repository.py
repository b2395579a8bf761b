"""SQLAlchemy implementation of CardRepository."""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from microflash.models.card import Card
from microflash.models.deck import Deck
from microflash.models.enums import SprintStatus
from microflash.models.sprint import Sprint, SprintCard

logger = logging.getLogger(__name__)


class SqlAlchemyCardRepository:
    """Concrete CardRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, card: Card) -> Card:
        """Persist a new card and return it with ID populated."""
        self._session.add(card)
        await self._session.flush()
        await self._session.refresh(card)
        return card

    async def get_with_owner(self, card_id: str) -> Optional[Tuple[Card, str]]:
        """Return the card and the ID of the user owning its deck."""
        result = await self._session.execute(
            select(Card, Deck.user_id)
            .join(Deck, Card.deck_id == Deck.id)
            .where(Card.id == card_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1]

    def _due_filter(self, stmt: Select, user_id: str, now: datetime) -> Select:
        return stmt.where(
            Deck.user_id == user_id,
            Card.next_review_date <= now,
            or_(Card.snoozed_until.is_(None), Card.snoozed_until <= now),
        )

    async def select_due(
        self,
        user_id: str,
        now: datetime,
        limit: int,
        deck_id: Optional[str] = None,
        exclude_active_sprints: bool = True,
    ) -> List[Card]:
        """Due, unsnoozed cards in strict selection order, truncated to limit."""
        if limit <= 0:
            return []

        stmt = self._due_filter(
            select(Card).join(Deck, Card.deck_id == Deck.id), user_id, now
        )
        if deck_id is not None:
            stmt = stmt.where(Card.deck_id == deck_id)
        if exclude_active_sprints:
            in_active_sprint = (
                select(SprintCard.card_id)
                .join(Sprint, SprintCard.sprint_id == Sprint.id)
                .where(Sprint.user_id == user_id, Sprint.status == SprintStatus.ACTIVE)
            )
            stmt = stmt.where(Card.id.not_in(in_active_sprint))

        stmt = stmt.order_by(
            Card.next_review_date.asc(),
            Card.priority.desc(),
            Deck.priority.desc(),
            Card.created_at.asc(),
            Card.id.asc(),
        ).limit(limit)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def has_due(self, user_id: str, now: datetime) -> bool:
        stmt = self._due_filter(
            select(Card.id).join(Deck, Card.deck_id == Deck.id), user_id, now
        ).limit(1)
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def count_due(
        self, user_id: str, now: datetime, due_before: Optional[datetime] = None
    ) -> int:
        stmt = self._due_filter(
            select(func.count(Card.id)).join(Deck, Card.deck_id == Deck.id),
            user_id,
            now,
        )
        if due_before is not None:
            stmt = stmt.where(Card.next_review_date <= due_before)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def snooze(self, card_ids: Sequence[str], until: Optional[datetime]) -> int:
        """Set snoozed_until on the given cards. Returns count updated."""
        if not card_ids:
            return 0
        result = await self._session.execute(
            update(Card)
            .where(Card.id.in_(list(card_ids)))
            .values(snoozed_until=until)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def mark_notified(self, card_ids: Sequence[str], now: datetime) -> int:
        if not card_ids:
            return 0
        result = await self._session.execute(
            update(Card)
            .where(Card.id.in_(list(card_ids)))
            .values(last_notification_sent=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]
