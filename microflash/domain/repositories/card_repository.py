"""CardRepository protocol — defines due-card selection and card update contract."""

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable


@runtime_checkable
class CardRepository(Protocol):
    """Repository interface for Card entity access."""

    async def add(self, card: object) -> object:
        """Persist a new card and return it with its ID populated."""
        ...

    async def get_with_owner(self, card_id: str) -> Optional[Tuple[object, str]]:
        """Return (card, owning user ID), or None if the card does not exist."""
        ...

    async def select_due(
        self,
        user_id: str,
        now: datetime,
        limit: int,
        deck_id: Optional[str] = None,
        exclude_active_sprints: bool = True,
    ) -> List[object]:
        """Due, unsnoozed cards of the user in strict selection order.

        Args:
            user_id: Owner of the decks to select from.
            now: Reference time for the due and snooze checks.
            limit: Maximum number of cards to return.
            deck_id: Restrict to exactly this deck (no subdeck expansion).
            exclude_active_sprints: Skip cards already in an ACTIVE sprint.

        Returns:
            Cards ordered by next_review_date ASC, card priority DESC,
            deck priority DESC, created_at ASC.
        """
        ...

    async def has_due(self, user_id: str, now: datetime) -> bool:
        """True if at least one due, unsnoozed card exists for the user."""
        ...

    async def count_due(
        self, user_id: str, now: datetime, due_before: Optional[datetime] = None
    ) -> int:
        """Count due, unsnoozed cards, optionally only those due at or before a cutoff."""
        ...

    async def snooze(self, card_ids: Sequence[str], until: Optional[datetime]) -> int:
        """Set (or clear, with None) snoozed_until on the given cards."""
        ...

    async def mark_notified(self, card_ids: Sequence[str], now: datetime) -> int:
        """Stamp last_notification_sent on the given cards."""
        ...
