"""Enumerations shared by the models and the scheduling services."""

import enum


class Rating(enum.IntEnum):
    """Self-assessed recall quality for a single review."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class CardState(enum.IntEnum):
    """FSRS learning phase of a card."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class SprintStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"

    @property
    def is_terminal(self) -> bool:
        return self in (SprintStatus.COMPLETED, SprintStatus.ABANDONED)


class SprintSource(str, enum.Enum):
    """Where a sprint was started from."""

    HOME = "HOME"
    DECK = "DECK"
    PUSH = "PUSH"


class SprintCardResult(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
