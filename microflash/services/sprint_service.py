"""
Sprint lifecycle management.

A sprint is a short ordered review session. States:

    PENDING --first access--> ACTIVE --all graded + complete--> COMPLETED
       |                        |
       +------- abandon --------+--> ABANDONED  (also on resume-window expiry)

Every operation runs in a single transaction. Status changes and grading are
conditional UPDATEs, so two racing calls on the same sprint never both win.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..domain.errors import (
    CardAlreadyReviewed,
    CardNotInSprint,
    NoEligibleCards,
    SprintAbandoned,
    SprintExpired,
    SprintIncomplete,
    SprintNotActive,
    SprintNotFound,
    SprintNotOwned,
)
from ..infrastructure.repositories import (
    SqlAlchemyCardRepository,
    SqlAlchemySprintRepository,
    SqlAlchemyUserRepository,
)
from ..models.base import utcnow
from ..models.card import Card
from ..models.enums import Rating, SprintCardResult, SprintSource, SprintStatus
from ..models.sprint import Sprint, SprintCard
from .card_selector import CardSelector
from .srs.fsrs import FSRSScheduler, ReviewOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartSprintResult:
    sprint: Sprint
    resumed: bool


@dataclass(frozen=True)
class SprintReviewResult:
    sprint: Sprint
    card: Card
    outcome: ReviewOutcome


@dataclass(frozen=True)
class SprintStats:
    total_cards: int
    reviewed_cards: int
    pass_count: int
    fail_count: int
    duration_seconds: int

    @classmethod
    def from_sprint(cls, sprint: Sprint) -> "SprintStats":
        results = [sc.result for sc in sprint.sprint_cards]
        duration = 0
        if sprint.started_at is not None and sprint.completed_at is not None:
            duration = max(0, int((sprint.completed_at - sprint.started_at).total_seconds()))
        return cls(
            total_cards=len(results),
            reviewed_cards=sum(1 for r in results if r is not None),
            pass_count=sum(1 for r in results if r == SprintCardResult.PASS),
            fail_count=sum(1 for r in results if r == SprintCardResult.FAIL),
            duration_seconds=duration,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalCards": self.total_cards,
            "reviewedCards": self.reviewed_cards,
            "passCount": self.pass_count,
            "failCount": self.fail_count,
            "durationSeconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class SprintCompletion:
    sprint: Sprint
    stats: SprintStats
    already_completed: bool = False


@dataclass(frozen=True)
class SprintAbandonment:
    sprint: Sprint
    snoozed_card_count: int
    already_terminal: bool = False


@dataclass
class _Repos:
    sprints: SqlAlchemySprintRepository
    cards: SqlAlchemyCardRepository
    users: SqlAlchemyUserRepository
    selector: CardSelector = field(init=False)

    def __post_init__(self) -> None:
        self.selector = CardSelector(self.cards)

    @classmethod
    def bind(cls, session: AsyncSession) -> "_Repos":
        return cls(
            sprints=SqlAlchemySprintRepository(session),
            cards=SqlAlchemyCardRepository(session),
            users=SqlAlchemyUserRepository(session),
        )


class SprintService:
    """Start, resume, grade, complete and abandon sprints."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: Optional[FSRSScheduler] = None,
        resume_window_minutes: Optional[int] = None,
        abandon_snooze_minutes: Optional[int] = None,
        default_sprint_size: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._scheduler = scheduler or FSRSScheduler()
        self.resume_window = timedelta(
            minutes=resume_window_minutes
            if resume_window_minutes is not None
            else settings.resume_window_minutes
        )
        self.abandon_snooze = timedelta(
            minutes=abandon_snooze_minutes
            if abandon_snooze_minutes is not None
            else settings.abandon_snooze_minutes
        )
        self.default_sprint_size = default_sprint_size or settings.default_sprint_size

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def start(
        self,
        user_id: str,
        deck_id: Optional[str] = None,
        source: Optional[SprintSource] = None,
        now: Optional[datetime] = None,
    ) -> StartSprintResult:
        """Resume the user's open sprint, or create a new ACTIVE one.

        Raises:
            NoEligibleCards: nothing is due for the user (or the deck).
        """
        now = now or utcnow()
        source = source or (SprintSource.DECK if deck_id else SprintSource.HOME)

        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)

            resumable = await repos.sprints.find_resumable(user_id, now)
            if resumable is not None:
                logger.info("Resuming sprint %s for user %s", resumable.id, user_id)
                return StartSprintResult(sprint=resumable, resumed=True)

            # Stale ACTIVE sprints would otherwise hold their cards forever
            for stale in await repos.sprints.list_expired(user_id, now):
                await self._abandon(repos, stale, now, reason="expired")

            size = await self._sprint_size(repos, user_id)
            cards = await repos.selector.select_due(user_id, size, now, deck_id=deck_id)
            if not cards:
                raise NoEligibleCards(user_id)

            sprint = self._build_sprint(
                user_id,
                deck_id,
                source,
                cards,
                now,
                status=SprintStatus.ACTIVE,
                started_at=now,
                resumable_until=now + self.resume_window,
            )
            sprint = await repos.sprints.add(sprint)

        logger.info(
            "Started sprint %s for user %s with %d card(s) (source=%s)",
            sprint.id,
            user_id,
            len(cards),
            source.value,
        )
        return StartSprintResult(sprint=sprint, resumed=False)

    async def create_pending(
        self,
        user_id: str,
        sprint_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Sprint:
        """Create a PENDING push-sourced sprint; it activates on first access.

        Raises:
            NoEligibleCards: nothing is due for the user.
        """
        now = now or utcnow()
        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)
            size = sprint_size or await self._sprint_size(repos, user_id)
            cards = await repos.selector.select_due(user_id, size, now)
            if not cards:
                raise NoEligibleCards(user_id)

            sprint = self._build_sprint(
                user_id, None, SprintSource.PUSH, cards, now, status=SprintStatus.PENDING
            )
            sprint = await repos.sprints.add(sprint)

        logger.debug(
            "Created pending sprint %s for user %s with %d card(s)",
            sprint.id,
            user_id,
            len(cards),
        )
        return sprint

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    async def get(
        self, sprint_id: str, user_id: str, now: Optional[datetime] = None
    ) -> Sprint:
        """Fetch a sprint, activating PENDING ones and expiring stale ones."""
        now = now or utcnow()
        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)
            sprint = await self._load_owned(repos, sprint_id, user_id)

            if sprint.is_expired(now):
                await self._abandon(repos, sprint, now, reason="expired")
                sprint = await repos.sprints.get(sprint_id)
            elif sprint.status == SprintStatus.PENDING:
                # Opening a push sprint does not end a HOME/DECK sprint that is
                # already ACTIVE; both stay open and find_resumable prefers the
                # most recently started one.
                activated = await repos.sprints.transition(
                    sprint_id,
                    SprintStatus.PENDING,
                    SprintStatus.ACTIVE,
                    started_at=now,
                    resumable_until=now + self.resume_window,
                )
                if activated:
                    logger.info("Activated pending sprint %s", sprint_id)
                sprint = await repos.sprints.get(sprint_id)
            return sprint

    async def find_resumable(
        self, user_id: str, now: Optional[datetime] = None
    ) -> Optional[Sprint]:
        now = now or utcnow()
        async with self._session_factory() as session:
            return await SqlAlchemySprintRepository(session).find_resumable(user_id, now)

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    async def review(
        self,
        sprint_id: str,
        user_id: str,
        card_id: str,
        rating: Rating,
        now: Optional[datetime] = None,
    ) -> SprintReviewResult:
        """Grade one card of an ACTIVE sprint and reschedule it.

        Raises:
            SprintNotFound, SprintNotOwned: lookup failures.
            SprintExpired: the resume window passed; the sprint was abandoned.
            SprintNotActive: the sprint is PENDING, COMPLETED or ABANDONED.
            CardNotInSprint: the card is not part of this sprint.
            CardAlreadyReviewed: the card already has a result.
        """
        now = now or utcnow()
        rating = Rating(rating)

        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)
            sprint = await self._load_owned(repos, sprint_id, user_id)

            expired = sprint.is_expired(now)
            if expired:
                await self._abandon(repos, sprint, now, reason="expired")
            else:
                result = await self._grade(repos, session, sprint, card_id, rating, now)

        if expired:
            raise SprintExpired(sprint_id)

        logger.info(
            "Reviewed card %s in sprint %s: %s -> next review %s",
            card_id,
            sprint_id,
            rating.name,
            result.outcome.next_review_date.isoformat(),
        )
        return result

    async def _grade(
        self,
        repos: _Repos,
        session: AsyncSession,
        sprint: Sprint,
        card_id: str,
        rating: Rating,
        now: datetime,
    ) -> SprintReviewResult:
        if sprint.status != SprintStatus.ACTIVE:
            raise SprintNotActive(sprint.id, sprint.status.value)

        sprint_card = sprint.find_card(card_id)
        if sprint_card is None:
            raise CardNotInSprint(sprint.id, card_id)
        if sprint_card.is_graded:
            raise CardAlreadyReviewed(sprint.id, card_id)

        card = sprint_card.card
        outcome = self._scheduler.review(card.memory_state, rating, now)
        result = SprintCardResult.FAIL if rating == Rating.AGAIN else SprintCardResult.PASS

        if not await repos.sprints.grade_card(sprint.id, card_id, result, now):
            raise CardAlreadyReviewed(sprint.id, card_id)
        if not await repos.sprints.extend_resume_window(sprint.id, now + self.resume_window):
            current = await repos.sprints.get(sprint.id)
            raise SprintNotActive(sprint.id, current.status.value if current else "UNKNOWN")

        card.apply_memory_state(outcome.state, outcome.next_review_date)
        card.last_notification_sent = None
        await session.flush()

        refreshed = await repos.sprints.get(sprint.id)
        return SprintReviewResult(sprint=refreshed, card=card, outcome=outcome)

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    async def complete(
        self, sprint_id: str, user_id: str, now: Optional[datetime] = None
    ) -> SprintCompletion:
        """Mark a fully graded sprint COMPLETED. Idempotent once completed.

        Raises:
            SprintAbandoned: the sprint was abandoned.
            SprintNotActive: the sprint is still PENDING.
            SprintIncomplete: at least one card is ungraded.
        """
        now = now or utcnow()
        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)
            sprint = await self._load_owned(repos, sprint_id, user_id)

            if sprint.status == SprintStatus.COMPLETED:
                return SprintCompletion(
                    sprint=sprint, stats=SprintStats.from_sprint(sprint), already_completed=True
                )
            if sprint.status == SprintStatus.ABANDONED:
                raise SprintAbandoned(sprint_id)
            if sprint.status != SprintStatus.ACTIVE:
                raise SprintNotActive(sprint_id, sprint.status.value)

            remaining = len(sprint.ungraded_cards)
            if remaining:
                raise SprintIncomplete(sprint_id, remaining)

            won = await repos.sprints.transition(
                sprint_id, SprintStatus.ACTIVE, SprintStatus.COMPLETED, completed_at=now
            )
            sprint = await repos.sprints.get(sprint_id)
            if not won:
                if sprint.status == SprintStatus.ABANDONED:
                    raise SprintAbandoned(sprint_id)
                return SprintCompletion(
                    sprint=sprint, stats=SprintStats.from_sprint(sprint), already_completed=True
                )

        stats = SprintStats.from_sprint(sprint)
        logger.info(
            "Completed sprint %s: %d/%d passed in %ds",
            sprint_id,
            stats.pass_count,
            stats.total_cards,
            stats.duration_seconds,
        )
        return SprintCompletion(sprint=sprint, stats=stats)

    async def abandon(
        self, sprint_id: str, user_id: str, now: Optional[datetime] = None
    ) -> SprintAbandonment:
        """Abandon a sprint and snooze its ungraded cards. Idempotent when terminal."""
        now = now or utcnow()
        async with self._session_factory.begin() as session:
            repos = _Repos.bind(session)
            sprint = await self._load_owned(repos, sprint_id, user_id)

            if sprint.status.is_terminal:
                return SprintAbandonment(sprint=sprint, snoozed_card_count=0, already_terminal=True)

            snoozed = await self._abandon(repos, sprint, now, reason="user")
            sprint = await repos.sprints.get(sprint_id)
            if snoozed is None:
                return SprintAbandonment(sprint=sprint, snoozed_card_count=0, already_terminal=True)

        return SprintAbandonment(sprint=sprint, snoozed_card_count=snoozed)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _load_owned(repos: _Repos, sprint_id: str, user_id: str) -> Sprint:
        sprint = await repos.sprints.get(sprint_id)
        if sprint is None:
            raise SprintNotFound(sprint_id)
        if sprint.user_id != user_id:
            raise SprintNotOwned(sprint_id, user_id)
        return sprint

    async def _sprint_size(self, repos: _Repos, user_id: str) -> int:
        user = await repos.users.get_by_id(user_id)
        if user is not None and user.sprint_size and user.sprint_size > 0:
            return user.sprint_size
        return self.default_sprint_size

    async def _abandon(
        self, repos: _Repos, sprint: Sprint, now: datetime, reason: str
    ) -> Optional[int]:
        """Abandon and snooze ungraded cards; None if another caller got there first."""
        won = await repos.sprints.transition(
            sprint.id, sprint.status, SprintStatus.ABANDONED, abandoned_at=now
        )
        if not won:
            return None
        ungraded: List[str] = [sc.card_id for sc in sprint.ungraded_cards]
        snoozed = await repos.cards.snooze(ungraded, now + self.abandon_snooze)
        logger.info(
            "Abandoned sprint %s (%s); snoozed %d card(s) until %s",
            sprint.id,
            reason,
            snoozed,
            (now + self.abandon_snooze).isoformat(),
        )
        return snoozed

    @staticmethod
    def _build_sprint(
        user_id: str,
        deck_id: Optional[str],
        source: SprintSource,
        cards: List[Card],
        now: datetime,
        status: SprintStatus,
        started_at: Optional[datetime] = None,
        resumable_until: Optional[datetime] = None,
    ) -> Sprint:
        sprint = Sprint(
            user_id=user_id,
            deck_id=deck_id,
            status=status,
            source=source,
            created_at=now,
            started_at=started_at,
            resumable_until=resumable_until,
        )
        sprint.sprint_cards = [
            SprintCard(card_id=card.id, order=position)
            for position, card in enumerate(cards, start=1)
        ]
        return sprint
