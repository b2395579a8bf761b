from .base import Base, TimestampMixin, UTCDateTime
from .card import Card
from .deck import Deck
from .enums import CardState, Rating, SprintCardResult, SprintSource, SprintStatus
from .sprint import Sprint, SprintCard
from .user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "User",
    "Deck",
    "Card",
    "Sprint",
    "SprintCard",
    "CardState",
    "Rating",
    "SprintStatus",
    "SprintSource",
    "SprintCardResult",
]
