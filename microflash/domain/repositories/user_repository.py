"""UserRepository protocol — defines user lookup and notification bookkeeping."""

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class UserRepository(Protocol):
    """Repository interface for User entity access."""

    async def get_by_id(self, user_id: str) -> Optional[object]:
        """Look up a user by ID.

        Args:
            user_id: The user's primary key.

        Returns:
            The User object, or None if not found.
        """
        ...

    async def list_notification_candidates(self) -> List[object]:
        """Users with notifications enabled and a push token on file."""
        ...

    async def record_push_sent(self, user_id: str, sent_at: datetime, count_today: int) -> None:
        ...

    async def set_push_token(self, user_id: str, token: Optional[str]) -> bool:
        ...

    async def clear_push_token(self, token: str) -> int:
        """Remove a push token from every user holding it. Returns rows changed."""
        ...

    async def set_notifications_enabled(self, user_id: str, enabled: bool) -> bool:
        ...
