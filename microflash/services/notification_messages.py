"""Push copy for sprint-ready notifications."""

from typing import Any, Dict

from ..core.config import get_settings
from ..domain.ports.push_sender import PushMessage

SPRINT_READY_CATEGORY = "sprint_ready"


def sprint_title(card_count: int) -> str:
    return "Time to review!" if card_count == 1 else "Cards ready for review!"


def sprint_body(card_count: int) -> str:
    if card_count == 1:
        return "1 card ready for review"
    return f"{card_count} cards ready for review"


def sprint_deep_link(sprint_id: str) -> str:
    return f"{get_settings().sprint_deep_link_prefix}{sprint_id}"


def build_sprint_message(push_token: str, sprint_id: str, card_count: int) -> PushMessage:
    """Message announcing a ready sprint; tapping it opens the sprint."""
    data: Dict[str, Any] = {
        "type": "sprint",
        "sprintId": sprint_id,
        "url": sprint_deep_link(sprint_id),
        "cardCount": card_count,
    }
    return PushMessage(
        to=push_token,
        title=sprint_title(card_count),
        body=sprint_body(card_count),
        data=data,
        category_id=SPRINT_READY_CATEGORY,
    )
