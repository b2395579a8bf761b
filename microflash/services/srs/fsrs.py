"""
FSRS-4.5 scheduler.

Computes the next memory state and review date of a card from a rating.
Pure: no database, no clock, no shared mutable state, so one instance can be
used from any number of concurrent tasks.

Key quantities:
- Stability (S): days until recall probability decays to the target retention
- Difficulty (D): how hard the card is, clamped to [1, 10]
- Retrievability (R): probability of recall after t days,
  R = (1 + FACTOR * t / S) ** DECAY
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Sequence, Tuple

from ...models.enums import CardState, Rating
from ...models.value_objects import MemoryState

DEFAULT_WEIGHTS: Tuple[float, ...] = (
    0.4, 0.6, 2.4, 5.8, 4.93, 0.94, 0.86, 0.01, 1.49,
    0.14, 0.94, 2.18, 0.05, 0.34, 1.26, 0.29, 2.61,
)
DEFAULT_REQUEST_RETENTION = 0.9
DEFAULT_MAXIMUM_INTERVAL = 36500

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1  # 19/81

D_MIN = 1.0
D_MAX = 10.0
S_MIN = 0.01


@dataclass(frozen=True)
class FSRSParameters:
    weights: Tuple[float, ...] = DEFAULT_WEIGHTS
    request_retention: float = DEFAULT_REQUEST_RETENTION
    maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL

    def __post_init__(self) -> None:
        if len(self.weights) != 17:
            raise ValueError(f"FSRS-4.5 needs 17 weights, got {len(self.weights)}")
        if not 0 < self.request_retention < 1:
            raise ValueError("request_retention must be between 0 and 1 (exclusive)")
        if self.maximum_interval < 1:
            raise ValueError("maximum_interval must be at least 1 day")


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of grading a card once."""

    state: MemoryState
    next_review_date: datetime
    interval_days: int = field(default=0)


class FSRSScheduler:
    """FSRS-4.5 memory model with day-granular long-term scheduling."""

    def __init__(self, parameters: FSRSParameters | None = None) -> None:
        self.parameters = parameters or FSRSParameters()

    @property
    def _w(self) -> Sequence[float]:
        return self.parameters.weights

    # --- Public API ---

    def initialize(self) -> MemoryState:
        """Memory state for a card that was never reviewed."""
        return MemoryState()

    def initial_review_date(self, now: datetime) -> datetime:
        """New cards are due immediately."""
        return now

    def retrievability(self, memory: MemoryState, now: datetime) -> float:
        """Current recall probability; 0.0 for a card with no memory yet."""
        if memory.state == CardState.NEW or memory.stability <= 0:
            return 0.0
        return self._forgetting_curve(self._elapsed_days(memory, now), memory.stability)

    def review(self, memory: MemoryState, rating: Rating, now: datetime) -> ReviewOutcome:
        """Grade a card and return its new memory state and next review date."""
        rating = Rating(rating)
        return self.preview(memory, now)[rating]

    def preview(self, memory: MemoryState, now: datetime) -> Dict[Rating, ReviewOutcome]:
        """Outcomes for all four ratings, with intervals kept in rating order."""
        elapsed = self._elapsed_days(memory, now)
        first_review = memory.state == CardState.NEW or memory.stability <= 0

        stabilities: Dict[Rating, float] = {}
        difficulties: Dict[Rating, float] = {}
        if first_review:
            for rating in Rating:
                stabilities[rating] = self._init_stability(rating)
                difficulties[rating] = self._init_difficulty(rating)
        else:
            r = self._forgetting_curve(elapsed, memory.stability)
            for rating in Rating:
                difficulties[rating] = self._next_difficulty(memory.difficulty, rating)
                if rating == Rating.AGAIN:
                    stabilities[rating] = self._next_forget_stability(
                        memory.difficulty, memory.stability, r
                    )
                else:
                    stabilities[rating] = self._next_recall_stability(
                        memory.difficulty, memory.stability, r, rating
                    )

        intervals = self._ordered_intervals(
            {rating: self._next_interval(s) for rating, s in stabilities.items()}
        )

        outcomes: Dict[Rating, ReviewOutcome] = {}
        for rating in Rating:
            interval = intervals[rating]
            next_memory = MemoryState(
                stability=stabilities[rating],
                difficulty=difficulties[rating],
                state=self._next_state(memory.state, rating),
                reps=memory.reps + (0 if rating == Rating.AGAIN else 1),
                lapses=memory.lapses
                + (1 if rating == Rating.AGAIN and memory.state == CardState.REVIEW else 0),
                last_review=now,
                elapsed_days=elapsed,
                scheduled_days=interval,
            )
            outcomes[rating] = ReviewOutcome(
                state=next_memory,
                next_review_date=now + timedelta(days=interval),
                interval_days=interval,
            )
        return outcomes

    # --- State machine ---

    @staticmethod
    def _next_state(current: CardState, rating: Rating) -> CardState:
        recalled = rating in (Rating.GOOD, Rating.EASY)
        if current == CardState.NEW:
            return CardState.REVIEW if recalled else CardState.LEARNING
        if current == CardState.REVIEW:
            return CardState.RELEARNING if rating == Rating.AGAIN else CardState.REVIEW
        # LEARNING and RELEARNING graduate on GOOD/EASY only
        return CardState.REVIEW if recalled else current

    # --- Memory model ---

    @staticmethod
    def _elapsed_days(memory: MemoryState, now: datetime) -> int:
        if memory.last_review is None:
            return 0
        return max(0, (now - memory.last_review).days)

    @staticmethod
    def _forgetting_curve(elapsed_days: float, stability: float) -> float:
        return (1 + FACTOR * elapsed_days / stability) ** DECAY

    @staticmethod
    def _clamp_difficulty(difficulty: float) -> float:
        return min(max(difficulty, D_MIN), D_MAX)

    def _init_stability(self, rating: Rating) -> float:
        return max(self._w[rating - 1], S_MIN)

    def _init_difficulty(self, rating: Rating) -> float:
        return self._clamp_difficulty(self._w[4] - (rating - 3) * self._w[5])

    def _next_difficulty(self, difficulty: float, rating: Rating) -> float:
        next_d = difficulty - self._w[6] * (rating - 3)
        # Mean reversion toward the initial difficulty of a GOOD rating
        reverted = self._w[7] * self._init_difficulty(Rating.GOOD) + (1 - self._w[7]) * next_d
        return self._clamp_difficulty(reverted)

    def _next_recall_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        w = self._w
        hard_penalty = w[15] if rating == Rating.HARD else 1.0
        easy_bonus = w[16] if rating == Rating.EASY else 1.0
        growth = (
            math.exp(w[8])
            * (11 - difficulty)
            * stability ** (-w[9])
            * (math.exp(w[10] * (1 - retrievability)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return max(stability * (growth + 1), S_MIN)

    def _next_forget_stability(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        w = self._w
        post_lapse = (
            w[11]
            * difficulty ** (-w[12])
            * ((stability + 1) ** w[13] - 1)
            * math.exp(w[14] * (1 - retrievability))
        )
        return max(min(post_lapse, stability), S_MIN)

    # --- Intervals ---

    def _next_interval(self, stability: float) -> int:
        retention = self.parameters.request_retention
        raw = stability / FACTOR * (retention ** (1 / DECAY) - 1)
        rounded = math.floor(raw + 0.5)
        return min(max(rounded, 1), self.parameters.maximum_interval)

    def _ordered_intervals(self, intervals: Dict[Rating, int]) -> Dict[Rating, int]:
        """Force AGAIN <= HARD < GOOD < EASY, then re-apply the cap."""
        hard = min(intervals[Rating.HARD], intervals[Rating.GOOD])
        good = max(intervals[Rating.GOOD], hard + 1)
        easy = max(intervals[Rating.EASY], good + 1)
        again = min(intervals[Rating.AGAIN], hard)
        cap = self.parameters.maximum_interval
        return {
            Rating.AGAIN: min(again, cap),
            Rating.HARD: min(hard, cap),
            Rating.GOOD: min(good, cap),
            Rating.EASY: min(easy, cap),
        }
