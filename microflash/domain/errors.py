"""
Typed domain errors for the MicroFlash engine.

Callers distinguish failure modes by class (or by the closed ``code`` enum
carried by sprint errors) and map each to an appropriate client response.
"""

import enum


class DomainError(Exception):
    """Base class for all domain-specific errors."""


# ---------------------------------------------------------------------------
# Sprint domain
# ---------------------------------------------------------------------------


class SprintErrorCode(str, enum.Enum):
    """Closed set of sprint failure kinds surfaced to callers."""

    SPRINT_NOT_FOUND = "SPRINT_NOT_FOUND"
    SPRINT_NOT_OWNED = "SPRINT_NOT_OWNED"
    NO_ELIGIBLE_CARDS = "NO_ELIGIBLE_CARDS"
    SPRINT_EXPIRED = "SPRINT_EXPIRED"
    SPRINT_NOT_ACTIVE = "SPRINT_NOT_ACTIVE"
    SPRINT_ABANDONED = "SPRINT_ABANDONED"
    SPRINT_INCOMPLETE = "SPRINT_INCOMPLETE"
    CARD_NOT_IN_SPRINT = "CARD_NOT_IN_SPRINT"
    CARD_ALREADY_REVIEWED = "CARD_ALREADY_REVIEWED"


class SprintError(DomainError):
    """Base class for sprint lifecycle failures."""

    code: SprintErrorCode

    def __init__(self, sprint_id: str, message: str) -> None:
        self.sprint_id = sprint_id
        super().__init__(message)


class SprintNotFound(SprintError):
    code = SprintErrorCode.SPRINT_NOT_FOUND

    def __init__(self, sprint_id: str) -> None:
        super().__init__(sprint_id, f"Sprint {sprint_id} not found")


class SprintNotOwned(SprintError):
    code = SprintErrorCode.SPRINT_NOT_OWNED

    def __init__(self, sprint_id: str, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(sprint_id, f"Sprint {sprint_id} does not belong to user {user_id}")


class NoEligibleCards(SprintError):
    """No due, unsnoozed card is available to build a sprint from."""

    code = SprintErrorCode.NO_ELIGIBLE_CARDS

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__("", f"No eligible cards for user {user_id}")


class SprintExpired(SprintError):
    """The sprint's resume window passed; it has been abandoned."""

    code = SprintErrorCode.SPRINT_EXPIRED

    def __init__(self, sprint_id: str) -> None:
        super().__init__(sprint_id, f"Sprint {sprint_id} has expired")


class SprintNotActive(SprintError):
    code = SprintErrorCode.SPRINT_NOT_ACTIVE

    def __init__(self, sprint_id: str, status: str) -> None:
        self.status = status
        super().__init__(sprint_id, f"Sprint {sprint_id} is not active (status {status})")


class SprintAbandoned(SprintError):
    code = SprintErrorCode.SPRINT_ABANDONED

    def __init__(self, sprint_id: str) -> None:
        super().__init__(sprint_id, f"Sprint {sprint_id} was abandoned")


class SprintIncomplete(SprintError):
    """Completion was requested while some cards are still ungraded."""

    code = SprintErrorCode.SPRINT_INCOMPLETE

    def __init__(self, sprint_id: str, remaining: int) -> None:
        self.remaining = remaining
        super().__init__(
            sprint_id, f"Sprint {sprint_id} still has {remaining} unreviewed card(s)"
        )


class CardNotInSprint(SprintError):
    code = SprintErrorCode.CARD_NOT_IN_SPRINT

    def __init__(self, sprint_id: str, card_id: str) -> None:
        self.card_id = card_id
        super().__init__(sprint_id, f"Card {card_id} is not part of sprint {sprint_id}")


class CardAlreadyReviewed(SprintError):
    code = SprintErrorCode.CARD_ALREADY_REVIEWED

    def __init__(self, sprint_id: str, card_id: str) -> None:
        self.card_id = card_id
        super().__init__(
            sprint_id, f"Card {card_id} was already reviewed in sprint {sprint_id}"
        )


# ---------------------------------------------------------------------------
# Card domain
# ---------------------------------------------------------------------------


class CardNotFound(DomainError):
    def __init__(self, card_id: str) -> None:
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class CardNotOwned(DomainError):
    def __init__(self, card_id: str, user_id: str) -> None:
        self.card_id = card_id
        self.user_id = user_id
        super().__init__(f"Card {card_id} does not belong to user {user_id}")


class DeckNotFound(DomainError):
    def __init__(self, deck_id: str) -> None:
        self.deck_id = deck_id
        super().__init__(f"Deck {deck_id} not found")


# ---------------------------------------------------------------------------
# Notification domain
# ---------------------------------------------------------------------------


class UserNotFound(DomainError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class InvalidPushToken(DomainError):
    """The token is not a well-formed Expo push token."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid Expo push token: {token!r}")
