"""Spaced-repetition scheduling (FSRS-4.5)."""

from .fsrs import FSRSParameters, FSRSScheduler, ReviewOutcome

__all__ = ["FSRSParameters", "FSRSScheduler", "ReviewOutcome"]
