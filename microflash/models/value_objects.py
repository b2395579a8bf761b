"""Domain value objects — replace primitive obsession with validated types."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta
from typing import Optional

from .enums import CardState


@dataclass(frozen=True)
class MemoryState:
    """FSRS memory state of a single card.

    stability and difficulty are 0 for a card that was never reviewed;
    after the first review stability is > 0 and difficulty lies in [1, 10].
    """

    stability: float = 0.0
    difficulty: float = 0.0
    state: CardState = CardState.NEW
    reps: int = 0
    lapses: int = 0
    last_review: Optional[datetime] = None
    elapsed_days: int = 0
    scheduled_days: int = 0

    def evolve(self, **changes) -> MemoryState:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


class QuietHours:
    """Validated HH:MM window during which no push is sent.

    The window is half-open, [start, end). When start > end it wraps past
    midnight (e.g. 22:00-07:00). start == end is an empty window.
    """

    _HH_MM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

    __slots__ = ("_start", "_end")

    def __init__(self, start: str, end: str) -> None:
        for label, value in (("start", start), ("end", end)):
            if not isinstance(value, str) or not self._HH_MM_RE.match(value):
                raise ValueError(
                    f"Invalid quiet hours {label} {value!r}; must match HH:MM (00:00-23:59)"
                )
        object.__setattr__(self, "_start", start)
        object.__setattr__(self, "_end", end)

    @classmethod
    def from_optional(
        cls, start: Optional[str], end: Optional[str]
    ) -> Optional[QuietHours]:
        """Build from nullable profile columns; None unless both are set."""
        if not start or not end:
            return None
        return cls(start, end)

    @staticmethod
    def _parse(value: str) -> time:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))

    @property
    def start(self) -> str:
        return self._start

    @property
    def end(self) -> str:
        return self._end

    @property
    def start_time(self) -> time:
        return self._parse(self._start)

    @property
    def end_time(self) -> time:
        return self._parse(self._end)

    @property
    def wraps_midnight(self) -> bool:
        return self.start_time > self.end_time

    def contains(self, moment: time) -> bool:
        """True if the wall-clock time falls inside the window."""
        current = moment.replace(second=0, microsecond=0, tzinfo=None)
        start, end = self.start_time, self.end_time
        if start <= end:
            return start <= current < end
        return current >= start or current < end

    def next_end_after(self, local_now: datetime) -> datetime:
        """Next occurrence of the window's end, in local_now's timezone."""
        end = self.end_time
        candidate = local_now.replace(
            hour=end.hour, minute=end.minute, second=0, microsecond=0
        )
        if candidate <= local_now:
            candidate += timedelta(days=1)
        return candidate

    # --- Immutability ---

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    # --- Equality and hashing ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QuietHours):
            return NotImplemented
        return self._start == other._start and self._end == other._end

    def __hash__(self) -> int:
        return hash((self._start, self._end))

    def __str__(self) -> str:
        return f"{self._start}-{self._end}"

    def __repr__(self) -> str:
        return f"QuietHours({self._start!r}, {self._end!r})"


class PushToken:
    """Validated Expo push token.

    Accepts ExponentPushToken[...] and ExpoPushToken[...] forms.
    """

    _EXPO_TOKEN_RE = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[[^\]]+\]$")

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"push token must be a string, got {type(value).__name__}")
        if not self.is_valid(value):
            raise ValueError(f"Invalid Expo push token {value!r}")
        object.__setattr__(self, "_value", value)

    @classmethod
    def is_valid(cls, value: object) -> bool:
        return isinstance(value, str) and bool(cls._EXPO_TOKEN_RE.match(value))

    @property
    def value(self) -> str:
        return self._value

    # --- Immutability ---

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PushToken):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"PushToken({self._value!r})"
