"""Tests for the home screen summary."""

from datetime import timedelta

import pytest

from microflash.domain.errors import UserNotFound
from microflash.services.home_summary_service import HomeSummaryService
from microflash.services.sprint_service import SprintService

from conftest import NOW


@pytest.fixture
def service(session_factory):
    return HomeSummaryService(session_factory)


async def test_counts_due_and_overdue_cards(service, seed):
    user = await seed.user()
    deck = await seed.deck(user)
    await seed.card(deck, next_review_date=NOW - timedelta(hours=2))
    await seed.card(deck, next_review_date=NOW - timedelta(hours=24))
    await seed.card(deck, next_review_date=NOW - timedelta(days=3))
    await seed.card(deck, next_review_date=NOW - timedelta(days=3), snoozed_until=NOW + timedelta(hours=1))
    await seed.card(deck, next_review_date=NOW + timedelta(hours=2))

    summary = (await service.summary(user.id, now=NOW)).to_dict()

    assert summary == {
        "dueCount": 3,
        "overdueCount": 2,
        "resumableSprint": None,
        "nextEligiblePushTime": NOW.isoformat(),
        "notificationsEnabled": True,
        "hasPushToken": True,
    }


async def test_resumable_sprint_is_reported(service, seed, session_factory):
    user = await seed.user()
    deck = await seed.deck(user, title="Verbs")
    await seed.cards(deck, 2)
    started = await SprintService(session_factory).start(user.id, deck_id=deck.id, now=NOW)

    summary = await service.summary(user.id, now=NOW + timedelta(minutes=5))

    resumable_until = (NOW + timedelta(minutes=30)).isoformat()
    assert summary.resumable_sprint == {
        "id": started.sprint.id,
        "resumableUntil": resumable_until,
        "progress": {"total": 2, "reviewed": 0, "remaining": 2},
        "deckTitle": "Verbs",
    }
    assert summary.to_dict()["nextEligiblePushTime"] == resumable_until


async def test_disabled_notifications_have_no_next_push(service, seed):
    user = await seed.user(notifications_enabled=False, push_token=None)

    summary = await service.summary(user.id, now=NOW)

    assert summary.next_eligible_push_time is None
    assert summary.notifications_enabled is False
    assert summary.has_push_token is False
    assert summary.due_count == 0


async def test_unknown_user(service):
    with pytest.raises(UserNotFound):
        await service.summary("ghost", now=NOW)
