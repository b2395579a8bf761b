from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, new_id
from .value_objects import QuietHours

if TYPE_CHECKING:
    from .deck import Deck
    from .sprint import Sprint


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True
    )

    # Notification profile
    notifications_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    push_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notification_cooldown_minutes: Mapped[int] = mapped_column(
        Integer, default=120, nullable=False
    )
    max_notifications_per_day: Mapped[int] = mapped_column(
        Integer, default=10, nullable=False
    )
    notifications_count_today: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    last_push_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    quiet_hours_start: Mapped[Optional[str]] = mapped_column(
        String(5), nullable=True
    )  # HH:MM
    quiet_hours_end: Mapped[Optional[str]] = mapped_column(
        String(5), nullable=True
    )  # HH:MM
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)

    sprint_size: Mapped[int] = mapped_column(Integer, default=5, nullable=False)

    # Relationships
    decks: Mapped[List["Deck"]] = relationship(
        "Deck", back_populates="user", cascade="all, delete-orphan"
    )
    sprints: Mapped[List["Sprint"]] = relationship(
        "Sprint", back_populates="user", cascade="all, delete-orphan"
    )

    # --- Domain behavior ---

    @property
    def has_push_token(self) -> bool:
        return bool(self.push_token)

    @property
    def quiet_hours(self) -> Optional[QuietHours]:
        """Configured quiet hours, or None when either bound is unset."""
        return QuietHours.from_optional(self.quiet_hours_start, self.quiet_hours_end)

    def pushed_on_utc_day(self, now: datetime) -> bool:
        """True if the last push was sent on the same UTC calendar day as now."""
        if self.last_push_sent_at is None:
            return False
        last = self.last_push_sent_at.astimezone(timezone.utc).date()
        return last == now.astimezone(timezone.utc).date()

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, notifications_enabled={self.notifications_enabled}, "
            f"has_push_token={self.has_push_token})>"
        )
