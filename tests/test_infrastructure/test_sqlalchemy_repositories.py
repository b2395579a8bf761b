"""Tests for SQLAlchemy repository implementations.

Uses an in-memory SQLite database to verify that the concrete repositories
satisfy the domain protocols and that their guarded updates only win once.
"""

from datetime import timedelta

import pytest

from microflash.domain.repositories import CardRepository, SprintRepository, UserRepository
from microflash.infrastructure.repositories import (
    SqlAlchemyCardRepository,
    SqlAlchemySprintRepository,
    SqlAlchemyUserRepository,
)
from microflash.models import Card, Sprint, SprintCard, User
from microflash.models.enums import SprintCardResult, SprintSource, SprintStatus

from conftest import NOW


@pytest.fixture
async def seed_user(seed):
    return await seed.user(email="learner@example.com")


@pytest.fixture
async def seed_cards(seed, seed_user):
    deck = await seed.deck(seed_user, title="Kanji", priority=70)
    return await seed.cards(deck, 3)


@pytest.fixture
async def seed_sprint(session_factory, seed_user, seed_cards):
    """An ACTIVE sprint over the first two seeded cards."""
    sprint = Sprint(
        user_id=seed_user.id,
        status=SprintStatus.ACTIVE,
        source=SprintSource.HOME,
        created_at=NOW,
        started_at=NOW,
        resumable_until=NOW + timedelta(minutes=30),
    )
    sprint.sprint_cards = [
        SprintCard(card_id=card.id, order=i) for i, card in enumerate(seed_cards[:2], start=1)
    ]
    async with session_factory.begin() as session:
        sprint = await SqlAlchemySprintRepository(session).add(sprint)
    return sprint


class TestProtocolConformance:
    def test_card_repository(self, async_session):
        assert isinstance(SqlAlchemyCardRepository(async_session), CardRepository)

    def test_sprint_repository(self, async_session):
        assert isinstance(SqlAlchemySprintRepository(async_session), SprintRepository)

    def test_user_repository(self, async_session):
        assert isinstance(SqlAlchemyUserRepository(async_session), UserRepository)


class TestSqlAlchemyCardRepository:
    async def test_get_with_owner(self, async_session, seed_user, seed_cards):
        repo = SqlAlchemyCardRepository(async_session)
        card, owner_id = await repo.get_with_owner(seed_cards[0].id)
        assert card.id == seed_cards[0].id
        assert owner_id == seed_user.id

    async def test_get_with_owner_missing(self, async_session):
        assert await SqlAlchemyCardRepository(async_session).get_with_owner("nope") is None

    async def test_select_due_skips_active_sprint_cards(
        self, async_session, seed_user, seed_cards, seed_sprint
    ):
        repo = SqlAlchemyCardRepository(async_session)

        available = await repo.select_due(seed_user.id, NOW, 10)
        everything = await repo.select_due(
            seed_user.id, NOW, 10, exclude_active_sprints=False
        )

        assert [c.id for c in available] == [seed_cards[2].id]
        assert len(everything) == 3

    async def test_snooze_and_mark_notified(self, session_factory, seed, seed_cards):
        ids = [c.id for c in seed_cards[:2]]
        async with session_factory.begin() as session:
            repo = SqlAlchemyCardRepository(session)
            assert await repo.snooze(ids, NOW + timedelta(hours=2)) == 2
            assert await repo.mark_notified(ids, NOW) == 2
            assert await repo.snooze([], NOW) == 0

        stored = await seed.reload(Card, ids[0])
        assert stored.snoozed_until == NOW + timedelta(hours=2)
        assert stored.last_notification_sent == NOW
        untouched = await seed.reload(Card, seed_cards[2].id)
        assert untouched.snoozed_until is None

    async def test_add_card(self, session_factory, seed_cards):
        async with session_factory.begin() as session:
            card = await SqlAlchemyCardRepository(session).add(
                Card(deck_id=seed_cards[0].deck_id, front="猫", back="cat")
            )
        assert card.id is not None
        assert card.priority == 50


class TestSqlAlchemySprintRepository:
    async def test_add_loads_cards_in_order(self, seed_sprint, seed_cards):
        assert [sc.order for sc in seed_sprint.sprint_cards] == [1, 2]
        assert seed_sprint.sprint_cards[0].card.front == seed_cards[0].front

    async def test_find_resumable(self, async_session, seed_user, seed_sprint):
        repo = SqlAlchemySprintRepository(async_session)
        found = await repo.find_resumable(seed_user.id, NOW + timedelta(minutes=29))
        assert found.id == seed_sprint.id
        assert await repo.find_resumable(seed_user.id, NOW + timedelta(minutes=30)) is None

    async def test_list_expired(self, async_session, seed_user, seed_sprint):
        repo = SqlAlchemySprintRepository(async_session)
        assert await repo.list_expired(seed_user.id, NOW) == []
        expired = await repo.list_expired(seed_user.id, NOW + timedelta(minutes=30))
        assert [s.id for s in expired] == [seed_sprint.id]

    async def test_transition_only_wins_once(self, session_factory, seed, seed_sprint):
        async with session_factory.begin() as session:
            repo = SqlAlchemySprintRepository(session)
            first = await repo.transition(
                seed_sprint.id, SprintStatus.ACTIVE, SprintStatus.COMPLETED, completed_at=NOW
            )
            second = await repo.transition(
                seed_sprint.id, SprintStatus.ACTIVE, SprintStatus.ABANDONED, abandoned_at=NOW
            )

        assert (first, second) == (True, False)
        stored = await seed.reload(Sprint, seed_sprint.id)
        assert stored.status == SprintStatus.COMPLETED
        assert stored.abandoned_at is None

    async def test_grade_card_only_wins_once(self, session_factory, seed_sprint, seed_cards):
        card_id = seed_cards[0].id
        async with session_factory.begin() as session:
            repo = SqlAlchemySprintRepository(session)
            first = await repo.grade_card(seed_sprint.id, card_id, SprintCardResult.PASS, NOW)
            second = await repo.grade_card(seed_sprint.id, card_id, SprintCardResult.FAIL, NOW)
            sprint = await repo.get(seed_sprint.id)

        assert (first, second) == (True, False)
        assert sprint.find_card(card_id).result == SprintCardResult.PASS

    async def test_extend_resume_window_requires_active(self, session_factory, seed_sprint):
        later = NOW + timedelta(hours=1)
        async with session_factory.begin() as session:
            repo = SqlAlchemySprintRepository(session)
            assert await repo.extend_resume_window(seed_sprint.id, later) is True
            await repo.transition(seed_sprint.id, SprintStatus.ACTIVE, SprintStatus.ABANDONED)
            assert await repo.extend_resume_window(seed_sprint.id, later) is False

    async def test_delete_pending_ignores_active_sprints(self, session_factory, seed_sprint):
        async with session_factory.begin() as session:
            assert await SqlAlchemySprintRepository(session).delete_pending(seed_sprint.id) is False
        async with session_factory() as session:
            assert await SqlAlchemySprintRepository(session).get(seed_sprint.id) is not None

    async def test_delete_pending_removes_sprint_and_cards(
        self, session_factory, seed_user, seed_cards
    ):
        sprint = Sprint(user_id=seed_user.id, status=SprintStatus.PENDING, source=SprintSource.PUSH)
        sprint.sprint_cards = [SprintCard(card_id=seed_cards[0].id, order=1)]
        async with session_factory.begin() as session:
            sprint = await SqlAlchemySprintRepository(session).add(sprint)

        async with session_factory.begin() as session:
            assert await SqlAlchemySprintRepository(session).delete_pending(sprint.id) is True

        async with session_factory() as session:
            assert await SqlAlchemySprintRepository(session).get(sprint.id) is None
            assert await session.get(SprintCard, sprint.sprint_cards[0].id) is None


class TestSqlAlchemyUserRepository:
    async def test_list_notification_candidates(self, async_session, seed):
        enabled = await seed.user(email="a@example.com")
        await seed.user(email="b@example.com", notifications_enabled=False)
        await seed.user(email="c@example.com", push_token=None)
        await seed.user(email="d@example.com", push_token="")

        candidates = await SqlAlchemyUserRepository(async_session).list_notification_candidates()

        assert [u.id for u in candidates] == [enabled.id]

    async def test_record_push_sent(self, session_factory, seed, seed_user):
        async with session_factory.begin() as session:
            await SqlAlchemyUserRepository(session).record_push_sent(seed_user.id, NOW, 4)
        stored = await seed.reload(User, seed_user.id)
        assert stored.last_push_sent_at == NOW
        assert stored.notifications_count_today == 4

    async def test_clear_push_token_affects_every_holder(self, session_factory, seed):
        shared = "ExponentPushToken[shared]"
        first = await seed.user(email="x@example.com", push_token=shared)
        second = await seed.user(email="y@example.com", push_token=shared)
        other = await seed.user(email="z@example.com", push_token="ExponentPushToken[own]")

        async with session_factory.begin() as session:
            assert await SqlAlchemyUserRepository(session).clear_push_token(shared) == 2

        assert (await seed.reload(User, first.id)).push_token is None
        assert (await seed.reload(User, second.id)).push_token is None
        assert (await seed.reload(User, other.id)).push_token == "ExponentPushToken[own]"

    async def test_updates_report_missing_user(self, session_factory):
        async with session_factory.begin() as session:
            repo = SqlAlchemyUserRepository(session)
            assert await repo.set_push_token("ghost", "ExponentPushToken[x]") is False
            assert await repo.set_notifications_enabled("ghost", False) is False
