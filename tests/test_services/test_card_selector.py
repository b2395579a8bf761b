"""Tests for due-card selection."""

from datetime import timedelta

import pytest

from microflash.infrastructure.repositories import SqlAlchemyCardRepository
from microflash.services.card_selector import CardSelector
from microflash.services.sprint_service import SprintService

from conftest import NOW


async def _select(session_factory, user, limit=10, deck_id=None, now=NOW):
    async with session_factory() as session:
        selector = CardSelector(SqlAlchemyCardRepository(session))
        cards = await selector.select_due(user.id, limit, now, deck_id=deck_id)
    return [card.id for card in cards]


@pytest.fixture
async def user(seed):
    return await seed.user()


@pytest.fixture
async def deck(seed, user):
    return await seed.deck(user)


class TestSelectionOrder:
    async def test_priority_tie_breaks(self, seed, session_factory, user):
        """Equal due dates: card priority, then deck priority, then creation time."""
        low_deck = await seed.deck(user, title="Low", priority=30)
        high_deck = await seed.deck(user, title="High", priority=90)

        c1 = await seed.card(high_deck, priority=20)
        c2 = await seed.card(low_deck, priority=90)
        c3 = await seed.card(low_deck, priority=50)
        c4 = await seed.card(high_deck, priority=50)
        c5 = await seed.card(low_deck, priority=50)

        assert await _select(session_factory, user) == [c2.id, c4.id, c3.id, c5.id, c1.id]

    async def test_most_overdue_first(self, seed, session_factory, user, deck):
        recent = await seed.card(deck, priority=100, next_review_date=NOW - timedelta(minutes=5))
        old = await seed.card(deck, priority=0, next_review_date=NOW - timedelta(days=3))

        assert await _select(session_factory, user) == [old.id, recent.id]

    async def test_truncates_to_limit(self, seed, session_factory, user, deck):
        cards = await seed.cards(deck, 4)
        assert await _select(session_factory, user, limit=2) == [cards[0].id, cards[1].id]

    async def test_zero_limit_returns_nothing(self, seed, session_factory, user, deck):
        await seed.card(deck)
        assert await _select(session_factory, user, limit=0) == []


class TestEligibility:
    async def test_future_cards_are_excluded(self, seed, session_factory, user, deck):
        due_now = await seed.card(deck, next_review_date=NOW)
        await seed.card(deck, next_review_date=NOW + timedelta(minutes=1))

        assert await _select(session_factory, user) == [due_now.id]

    async def test_snoozed_cards_are_excluded_until_snooze_passes(
        self, seed, session_factory, user, deck
    ):
        snoozed = await seed.card(deck, snoozed_until=NOW + timedelta(minutes=30))
        elapsed = await seed.card(deck, snoozed_until=NOW)

        assert await _select(session_factory, user) == [elapsed.id]
        later = NOW + timedelta(minutes=31)
        assert await _select(session_factory, user, now=later) == [snoozed.id, elapsed.id]

    async def test_other_users_cards_are_excluded(self, seed, session_factory, user, deck):
        mine = await seed.card(deck)
        stranger = await seed.user(email="stranger@example.com")
        await seed.card(await seed.deck(stranger))

        assert await _select(session_factory, user) == [mine.id]

    async def test_deck_scope_does_not_include_subdecks(self, seed, session_factory, user, deck):
        child = await seed.deck(user, title="Child", parent_deck_id=deck.id)
        in_parent = await seed.card(deck)
        await seed.card(child)

        assert await _select(session_factory, user, deck_id=deck.id) == [in_parent.id]

    async def test_cards_in_active_sprint_are_excluded(self, seed, session_factory):
        user = await seed.user(sprint_size=2)
        cards = await seed.cards(await seed.deck(user), 3)

        result = await SprintService(session_factory).start(user.id, now=NOW)
        in_sprint = set(result.sprint.card_ids)

        remaining = await _select(session_factory, user)
        assert not in_sprint & set(remaining)
        assert set(remaining) | in_sprint == {c.id for c in cards}

    async def test_pending_sprint_does_not_reserve_cards(self, seed, session_factory, user, deck):
        cards = await seed.cards(deck, 2)
        service = SprintService(session_factory)
        await service.create_pending(user.id, now=NOW)

        assert await _select(session_factory, user) == [c.id for c in cards]


class TestCounts:
    async def test_has_due_cards(self, seed, session_factory, user, deck):
        async with session_factory() as session:
            selector = CardSelector(SqlAlchemyCardRepository(session))
            assert await selector.has_due_cards(user.id, NOW) is False

        await seed.card(deck)
        async with session_factory() as session:
            selector = CardSelector(SqlAlchemyCardRepository(session))
            assert await selector.has_due_cards(user.id, NOW) is True

    async def test_count_due_with_cutoff(self, seed, session_factory, user, deck):
        await seed.card(deck, next_review_date=NOW - timedelta(hours=1))
        await seed.card(deck, next_review_date=NOW - timedelta(days=2))
        await seed.card(deck, next_review_date=NOW - timedelta(days=3))
        await seed.card(deck, next_review_date=NOW + timedelta(days=1))

        async with session_factory() as session:
            selector = CardSelector(SqlAlchemyCardRepository(session))
            assert await selector.count_due(user.id, NOW) == 3
            cutoff = NOW - timedelta(days=1)
            assert await selector.count_due(user.id, NOW, due_before=cutoff) == 2
