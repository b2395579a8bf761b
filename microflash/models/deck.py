from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, new_id

if TYPE_CHECKING:
    from .card import Card
    from .user import User

MAX_DECK_DEPTH = 2


class Deck(Base, TimestampMixin):
    """A user's deck. Decks nest at most two levels deep."""

    __tablename__ = "decks"
    __table_args__ = (
        CheckConstraint("priority >= 0 AND priority <= 100", name="ck_deck_priority"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    parent_deck_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("decks.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="decks")
    cards: Mapped[List["Card"]] = relationship(
        "Card", back_populates="deck", cascade="all, delete-orphan"
    )
    parent: Mapped[Optional["Deck"]] = relationship(
        "Deck", remote_side="Deck.id", back_populates="children"
    )
    children: Mapped[List["Deck"]] = relationship("Deck", back_populates="parent")

    def __repr__(self) -> str:
        return f"<Deck(id={self.id}, title={self.title!r}, priority={self.priority})>"
