"""SprintRepository protocol — defines sprint persistence and transition contract."""

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class SprintRepository(Protocol):
    """Repository interface for Sprint and SprintCard access.

    Status changes and grading are conditional writes: each returns False
    when the row was no longer in the expected state, so concurrent callers
    never both succeed.
    """

    async def add(self, sprint: object) -> object:
        ...

    async def get(self, sprint_id: str) -> Optional[object]:
        """Load a sprint with its ordered cards, refreshed from the store."""
        ...

    async def find_resumable(self, user_id: str, now: datetime) -> Optional[object]:
        """The user's ACTIVE sprint whose resumable_until is after now, if any."""
        ...

    async def list_expired(self, user_id: str, now: datetime) -> List[object]:
        """ACTIVE sprints whose resume window has already passed."""
        ...

    async def transition(
        self, sprint_id: str, from_status: object, to_status: object, **values
    ) -> bool:
        """Move a sprint between statuses only if it is still in from_status."""
        ...

    async def extend_resume_window(
        self, sprint_id: str, resumable_until: datetime
    ) -> bool:
        ...

    async def grade_card(
        self, sprint_id: str, card_id: str, result: object, reviewed_at: datetime
    ) -> bool:
        """Record a result only if the card has not been graded yet."""
        ...

    async def delete_pending(self, sprint_id: str) -> bool:
        """Delete a sprint that is still PENDING."""
        ...
