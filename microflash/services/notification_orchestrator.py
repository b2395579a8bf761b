"""
Notification sweep orchestration.

One sweep:
1. loads candidate users (notifications on, push token present)
2. per user, with bounded concurrency: eligibility check, due-card check,
   PENDING sprint creation, message build
3. sends every message in one batch
4. reconciles each result: success updates the user's push bookkeeping and
   snoozes overflow cards; failure deletes the PENDING sprint and drops dead
   push tokens

Sweeps never overlap: a sweep started while another is running returns
immediately with ``skipped_in_progress`` set. Each phase waits for all of its
per-user work before an error propagates, so no task outlives the sweep; an
error during preparation removes the PENDING sprints already created.
"""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings
from ..domain.errors import NoEligibleCards
from ..domain.ports.push_sender import PushMessage, PushResult, PushSender
from ..infrastructure.repositories import (
    SqlAlchemyCardRepository,
    SqlAlchemySprintRepository,
    SqlAlchemyUserRepository,
)
from ..models.base import utcnow
from ..models.sprint import Sprint
from ..models.user import User
from ..utils.logging import bound_log_context, get_sweep_logger
from .card_selector import CardSelector
from .notification_eligibility import NotificationEligibilityService
from .notification_messages import build_sprint_message
from .sprint_service import SprintService

logger = logging.getLogger(__name__)

DEAD_TOKEN_MARKERS = ("DeviceNotRegistered", "Invalid")
OVERFLOW_SCAN_LIMIT = 1000
RECEIPT_RETENTION = timedelta(hours=24)


@dataclass
class SweepResult:
    users_checked: int = 0
    users_eligible: int = 0
    sprints_created: int = 0
    notifications_sent: int = 0
    succeeded: int = 0
    failed: int = 0
    tokens_removed: int = 0
    overflow_cards_snoozed: int = 0
    skipped_in_progress: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class _PreparedPush:
    user: User
    sprint: Sprint
    message: PushMessage


def is_dead_token_error(error: Optional[str]) -> bool:
    return bool(error) and any(marker in error for marker in DEAD_TOKEN_MARKERS)


async def _settle(coros: Iterable[Awaitable[Any]]) -> List[Any]:
    """Run every coroutine to completion; failures come back as exception values."""
    return await asyncio.gather(*coros, return_exceptions=True)


def _first_error(outcomes: List[Any]) -> Optional[BaseException]:
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            return outcome
    return None


class NotificationOrchestrator:
    """Runs notification sweeps; one instance per process."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sprint_service: SprintService,
        push_sender: PushSender,
        eligibility: Optional[NotificationEligibilityService] = None,
        concurrency: Optional[int] = None,
        overflow_snooze_minutes: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._sprints = sprint_service
        self._push_sender = push_sender
        self._eligibility = eligibility or NotificationEligibilityService(session_factory)
        self.concurrency = concurrency or settings.sweep_concurrency
        self.overflow_snooze = timedelta(
            minutes=overflow_snooze_minutes
            if overflow_snooze_minutes is not None
            else settings.overflow_snooze_minutes
        )
        self._lock = asyncio.Lock()
        # ticket id -> (push token, sent at), awaiting a delivery receipt
        self._pending_receipts: Dict[str, Tuple[str, datetime]] = {}

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def pending_receipt_count(self) -> int:
        return len(self._pending_receipts)

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Run one sweep, or skip if one is already in flight."""
        if self._lock.locked():
            logger.info("Notification sweep already in progress, skipping")
            return SweepResult(skipped_in_progress=True)

        async with self._lock:
            now = now or utcnow()
            with bound_log_context(sweep_id=uuid.uuid4().hex[:12]):
                try:
                    result = await self._sweep(now)
                except Exception:
                    logger.exception("Notification sweep failed")
                    raise
                get_sweep_logger().info("notification_sweep_completed", **result.to_dict())
            return result

    async def _sweep(self, now: datetime) -> SweepResult:
        result = SweepResult()

        async with self._session_factory() as session:
            candidates = await SqlAlchemyUserRepository(session).list_notification_candidates()
        result.users_checked = len(candidates)
        if not candidates:
            return result

        semaphore = asyncio.Semaphore(self.concurrency)

        async def prepare(user: User) -> Optional[_PreparedPush]:
            async with semaphore:
                return await self._prepare_user(user, now, result)

        outcomes = await _settle(prepare(user) for user in candidates)
        prepared = [item for item in outcomes if isinstance(item, _PreparedPush)]
        error = _first_error(outcomes)
        if error is not None:
            # Nothing was sent, so none of this sweep's sprints can be opened
            for item in prepared:
                await self._discard_pending_sprint(item.sprint.id)
            raise error
        if not prepared:
            return result

        messages = [item.message for item in prepared]
        result.notifications_sent = len(messages)
        push_results = await self._push_sender.send_batch(messages)

        async def reconcile(item: _PreparedPush, push_result: PushResult) -> None:
            async with semaphore:
                await self._reconcile(item, push_result, now, result)

        outcomes = await _settle(
            reconcile(item, self._result_at(push_results, index))
            for index, item in enumerate(prepared)
        )
        error = _first_error(outcomes)
        if error is not None:
            raise error
        return result

    @staticmethod
    def _result_at(push_results: List[PushResult], index: int) -> PushResult:
        if index < len(push_results):
            return push_results[index]
        return PushResult(success=False, error="No result returned for message")

    async def _prepare_user(
        self, user: User, now: datetime, result: SweepResult
    ) -> Optional[_PreparedPush]:
        eligibility = await self._eligibility.check(user, now)
        if not eligibility.eligible:
            return None

        async with self._session_factory() as session:
            has_due = await CardSelector(SqlAlchemyCardRepository(session)).has_due_cards(
                user.id, now
            )
        if not has_due:
            return None
        result.users_eligible += 1

        try:
            sprint = await self._sprints.create_pending(user.id, user.sprint_size, now=now)
        except NoEligibleCards:
            logger.debug("User %s has due cards but none selectable, skipping", user.id)
            return None
        result.sprints_created += 1

        message = build_sprint_message(user.push_token, sprint.id, len(sprint.sprint_cards))
        return _PreparedPush(user=user, sprint=sprint, message=message)

    async def _reconcile(
        self, item: _PreparedPush, push_result: PushResult, now: datetime, result: SweepResult
    ) -> None:
        if push_result.success:
            result.succeeded += 1
            snoozed = await self._record_success(item, now)
            result.overflow_cards_snoozed += snoozed
            if push_result.ticket_id:
                self._pending_receipts[push_result.ticket_id] = (item.message.to, now)
            return

        result.failed += 1
        logger.warning(
            "Push to user %s failed: %s", item.user.id, push_result.error or "unknown error"
        )
        await self._discard_pending_sprint(item.sprint.id)

        if is_dead_token_error(push_result.error):
            async with self._session_factory.begin() as session:
                cleared = await SqlAlchemyUserRepository(session).clear_push_token(
                    item.message.to
                )
            if cleared:
                result.tokens_removed += 1
                logger.info("Removed dead push token for user %s", item.user.id)

    async def _record_success(self, item: _PreparedPush, now: datetime) -> int:
        """Update push bookkeeping and snooze overflow cards; returns overflow count."""
        user = item.user
        count_today = user.notifications_count_today + 1 if user.pushed_on_utc_day(now) else 1
        sprint_card_ids = set(item.sprint.card_ids)

        async with self._session_factory.begin() as session:
            users = SqlAlchemyUserRepository(session)
            cards = SqlAlchemyCardRepository(session)

            await users.record_push_sent(user.id, now, count_today)
            await cards.mark_notified(list(sprint_card_ids), now)

            due = await cards.select_due(user.id, now, OVERFLOW_SCAN_LIMIT)
            overflow_ids = [card.id for card in due if card.id not in sprint_card_ids]
            snoozed = await cards.snooze(overflow_ids, now + self.overflow_snooze)

        if snoozed:
            logger.debug("Snoozed %d overflow card(s) for user %s", snoozed, user.id)
        return snoozed

    async def _discard_pending_sprint(self, sprint_id: str) -> None:
        try:
            async with self._session_factory.begin() as session:
                deleted = await SqlAlchemySprintRepository(session).delete_pending(sprint_id)
            if not deleted:
                logger.info("Pending sprint %s was already activated or removed", sprint_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to delete pending sprint {sprint_id}: {e}")

    async def process_receipts(self, now: Optional[datetime] = None) -> int:
        """Check delivery receipts of earlier sends; returns tokens removed."""
        now = now or utcnow()
        for ticket_id, (_, sent_at) in list(self._pending_receipts.items()):
            if now - sent_at > RECEIPT_RETENTION:
                del self._pending_receipts[ticket_id]
        if not self._pending_receipts:
            return 0

        receipts = await self._push_sender.check_receipts(list(self._pending_receipts))
        removed = 0
        for receipt in receipts:
            entry = self._pending_receipts.pop(receipt.ticket_id, None)
            if entry is None or not receipt.should_remove_token:
                continue
            async with self._session_factory.begin() as session:
                removed += await SqlAlchemyUserRepository(session).clear_push_token(entry[0])
        if removed:
            logger.info("Removed %d push token(s) reported as unregistered", removed)
        return removed
