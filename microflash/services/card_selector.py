"""
Due-card selection.

Chooses which cards go into a sprint. Read-only: it never writes, so any
number of selections can run side by side.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..domain.repositories import CardRepository
from ..models.card import Card

logger = logging.getLogger(__name__)


class CardSelector:
    """Applies the due-card predicate and ordering on top of a CardRepository.

    A card is eligible when its deck belongs to the user, it is due
    (next_review_date <= now), it is not snoozed past now, and it is not
    already part of one of the user's ACTIVE sprints.
    """

    def __init__(self, cards: CardRepository) -> None:
        self._cards = cards

    async def select_due(
        self,
        user_id: str,
        limit: int,
        now: datetime,
        deck_id: Optional[str] = None,
    ) -> List[Card]:
        """Return up to ``limit`` eligible cards in selection order.

        Ordering is next_review_date ASC (most overdue first), then card
        priority DESC, deck priority DESC, and card created_at ASC.
        When ``deck_id`` is given only that deck is considered; subdecks
        are not expanded.
        """
        if limit <= 0:
            return []
        cards = await self._cards.select_due(
            user_id, now, limit, deck_id=deck_id, exclude_active_sprints=True
        )
        logger.debug(
            "Selected %d due card(s) for user %s (limit=%d, deck=%s)",
            len(cards),
            user_id,
            limit,
            deck_id,
        )
        return cards

    async def has_due_cards(self, user_id: str, now: datetime) -> bool:
        """Whether anything is due, ignoring sprint membership."""
        return await self._cards.has_due(user_id, now)

    async def count_due(
        self, user_id: str, now: datetime, due_before: Optional[datetime] = None
    ) -> int:
        return await self._cards.count_due(user_id, now, due_before=due_before)
