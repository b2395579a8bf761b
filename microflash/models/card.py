from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, new_id, utcnow
from .enums import CardState
from .value_objects import MemoryState

if TYPE_CHECKING:
    from .deck import Deck


class Card(Base, TimestampMixin):
    """A flashcard together with its FSRS memory state."""

    __tablename__ = "cards"
    __table_args__ = (
        CheckConstraint("priority >= 0 AND priority <= 100", name="ck_card_priority"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    deck_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("decks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=50, nullable=False)

    # Scheduling
    next_review_date: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False, index=True
    )
    snoozed_until: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_notification_sent: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # FSRS memory state
    stability: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    state: Mapped[CardState] = mapped_column(
        Enum(CardState), default=CardState.NEW, nullable=False
    )
    reps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lapses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_review: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    elapsed_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    scheduled_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    deck: Mapped["Deck"] = relationship("Deck", back_populates="cards")

    # --- Domain behavior ---

    @property
    def memory_state(self) -> MemoryState:
        return MemoryState(
            stability=self.stability or 0.0,
            difficulty=self.difficulty or 0.0,
            state=CardState(self.state if self.state is not None else CardState.NEW),
            reps=self.reps or 0,
            lapses=self.lapses or 0,
            last_review=self.last_review,
            elapsed_days=self.elapsed_days or 0,
            scheduled_days=self.scheduled_days or 0,
        )

    def apply_memory_state(
        self, memory: MemoryState, next_review_date: datetime
    ) -> None:
        """Copy a scheduler outcome onto the card's columns."""
        self.stability = memory.stability
        self.difficulty = memory.difficulty
        self.state = memory.state
        self.reps = memory.reps
        self.lapses = memory.lapses
        self.last_review = memory.last_review
        self.elapsed_days = memory.elapsed_days
        self.scheduled_days = memory.scheduled_days
        self.next_review_date = next_review_date

    def is_snoozed(self, now: datetime) -> bool:
        return self.snoozed_until is not None and self.snoozed_until > now

    def is_due(self, now: datetime) -> bool:
        return self.next_review_date <= now and not self.is_snoozed(now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deckId": self.deck_id,
            "front": self.front,
            "back": self.back,
            "priority": self.priority,
            "nextReviewDate": self.next_review_date.isoformat()
            if self.next_review_date
            else None,
            "snoozedUntil": self.snoozed_until.isoformat()
            if self.snoozed_until
            else None,
            "state": CardState(self.state).name if self.state is not None else None,
            "stability": self.stability,
            "difficulty": self.difficulty,
            "reps": self.reps,
            "lapses": self.lapses,
        }

    def __repr__(self) -> str:
        return (
            f"<Card(id={self.id}, deck_id={self.deck_id}, state={self.state}, "
            f"next_review_date={self.next_review_date})>"
        )
