import logging
import os
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment variables before any settings are cached
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ["NOTIFICATION_SWEEP_ENABLED"] = "false"
os.environ.pop("EXPO_ACCESS_TOKEN", None)
os.environ.pop("DATABASE_URL", None)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from microflash.models import Base, Card, Deck, Sprint, User  # noqa: E402

# Fixed reference time for every time-dependent test
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
async def async_engine():
    """Create an in-memory async SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory):
    """Create an async session bound to the in-memory engine."""
    async with session_factory() as session:
        yield session


class Seeder:
    """Inserts users, decks and cards, each in its own committed transaction."""

    def __init__(self, factory: async_sessionmaker) -> None:
        self._factory = factory
        self._created = 0

    async def user(self, **kwargs) -> User:
        kwargs.setdefault("push_token", "ExponentPushToken[test-device]")
        user = User(**kwargs)
        async with self._factory.begin() as session:
            session.add(user)
        return user

    async def deck(self, user: User, **kwargs) -> Deck:
        kwargs.setdefault("title", "Deck")
        deck = Deck(user_id=user.id, **kwargs)
        async with self._factory.begin() as session:
            session.add(deck)
        return deck

    async def card(self, deck: Deck, **kwargs) -> Card:
        """Card due one hour before NOW unless told otherwise.

        created_at increases with every call so creation order is deterministic.
        """
        self._created += 1
        kwargs.setdefault("front", f"front {self._created}")
        kwargs.setdefault("back", f"back {self._created}")
        kwargs.setdefault("next_review_date", NOW - timedelta(hours=1))
        kwargs.setdefault("created_at", NOW - timedelta(days=30) + timedelta(seconds=self._created))
        card = Card(deck_id=deck.id, **kwargs)
        async with self._factory.begin() as session:
            session.add(card)
        return card

    async def cards(self, deck: Deck, count: int, **kwargs) -> list:
        return [await self.card(deck, **kwargs) for _ in range(count)]

    async def reload(self, model, ident):
        """Fresh copy of a row, read through a new session."""
        async with self._factory() as session:
            return await session.get(model, ident, populate_existing=True)

    async def sprints_of(self, user: User) -> list:
        from sqlalchemy import select

        async with self._factory() as session:
            result = await session.execute(
                select(Sprint).where(Sprint.user_id == user.id).order_by(Sprint.created_at)
            )
            return list(result.scalars().all())


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)
