"""
Sprint and SprintCard models.

Sprint: a short, ordered review session over a handful of due cards.
SprintCard: one card's slot in a sprint, graded exactly once.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional

from sqlalchemy import Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime, new_id, utcnow
from .enums import SprintCardResult, SprintSource, SprintStatus

if TYPE_CHECKING:
    from .card import Card
    from .deck import Deck
    from .user import User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Sprint(Base):
    __tablename__ = "sprints"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    deck_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("decks.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[SprintStatus] = mapped_column(
        Enum(SprintStatus), default=SprintStatus.PENDING, nullable=False, index=True
    )
    source: Mapped[SprintSource] = mapped_column(
        Enum(SprintSource), default=SprintSource.HOME, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    abandoned_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    resumable_until: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sprints")
    deck: Mapped[Optional["Deck"]] = relationship("Deck", lazy="selectin")
    sprint_cards: Mapped[List["SprintCard"]] = relationship(
        "SprintCard",
        back_populates="sprint",
        cascade="all, delete-orphan",
        order_by="SprintCard.order",
        lazy="selectin",
    )

    # --- Domain behavior ---

    def is_resumable(self, now: datetime) -> bool:
        """An ACTIVE sprint stays resumable while resumable_until lies in the future."""
        return (
            self.status == SprintStatus.ACTIVE
            and self.resumable_until is not None
            and self.resumable_until > now
        )

    def is_expired(self, now: datetime) -> bool:
        return (
            self.status == SprintStatus.ACTIVE
            and self.resumable_until is not None
            and self.resumable_until <= now
        )

    def find_card(self, card_id: str) -> Optional["SprintCard"]:
        for sprint_card in self.sprint_cards:
            if sprint_card.card_id == card_id:
                return sprint_card
        return None

    @property
    def card_ids(self) -> List[str]:
        return [sc.card_id for sc in self.sprint_cards]

    @property
    def ungraded_cards(self) -> List["SprintCard"]:
        return [sc for sc in self.sprint_cards if sc.result is None]

    def progress(self) -> Dict[str, int]:
        total = len(self.sprint_cards)
        reviewed = sum(1 for sc in self.sprint_cards if sc.result is not None)
        return {"total": total, "reviewed": reviewed, "remaining": total - reviewed}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "deckId": self.deck_id,
            "deckTitle": self.deck.title if self.deck is not None else None,
            "status": self.status.value,
            "source": self.source.value,
            "createdAt": _iso(self.created_at),
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "abandonedAt": _iso(self.abandoned_at),
            "resumableUntil": _iso(self.resumable_until),
            "progress": self.progress(),
            "cards": [sc.to_dict() for sc in self.sprint_cards],
        }

    def __repr__(self) -> str:
        return (
            f"<Sprint(id={self.id}, user_id={self.user_id}, status={self.status}, "
            f"source={self.source})>"
        )


class SprintCard(Base):
    __tablename__ = "sprint_cards"
    __table_args__ = (
        UniqueConstraint("sprint_id", "card_id", name="uq_sprint_card"),
        UniqueConstraint("sprint_id", "card_order", name="uq_sprint_card_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    sprint_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True
    )
    card_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order: Mapped[int] = mapped_column("card_order", Integer, nullable=False)  # 1-based
    result: Mapped[Optional[SprintCardResult]] = mapped_column(
        Enum(SprintCardResult), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    # Relationships
    sprint: Mapped["Sprint"] = relationship("Sprint", back_populates="sprint_cards")
    card: Mapped["Card"] = relationship("Card", lazy="selectin")

    @property
    def is_graded(self) -> bool:
        return self.result is not None

    def to_dict(self) -> dict:
        data = {
            "cardId": self.card_id,
            "order": self.order,
            "result": self.result.value if self.result else None,
            "reviewedAt": _iso(self.reviewed_at),
        }
        if self.card is not None:
            data["front"] = self.card.front
            data["back"] = self.card.back
        return data

    def __repr__(self) -> str:
        return (
            f"<SprintCard(sprint_id={self.sprint_id}, card_id={self.card_id}, "
            f"order={self.order}, result={self.result})>"
        )
