"""PushSender port -- abstracts delivering push notifications to devices."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class PushMessage:
    to: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sound: Optional[str] = "default"
    category_id: Optional[str] = None
    badge: Optional[int] = None


@dataclass(frozen=True)
class PushResult:
    """Per-message delivery outcome, in the same order as the request."""

    success: bool
    push_token: Optional[str] = None
    ticket_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ReceiptResult:
    ticket_id: str
    success: bool
    error: Optional[str] = None
    should_remove_token: bool = False


@runtime_checkable
class PushSender(Protocol):
    """Sends push messages in batch and reports per-message results."""

    async def send_batch(self, messages: List[PushMessage]) -> List[PushResult]:
        """Send all messages; return one result per message, index-aligned."""
        ...

    async def check_receipts(self, ticket_ids: List[str]) -> List[ReceiptResult]:
        """Look up delivery receipts for previously issued tickets."""
        ...
