"""
Notification Manager.

Creates NotificationRecords, dispatches them to the transport and owns every
status transition:

    scheduled -> sent -> responded
                      -> expired

Dispatch is fire-and-forget: send_quiz_notification returns as soon as the
record is stored as ``sent``; the transport call runs as a background task and
a failure leaves the record in ``sent`` without retry.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import threading
from datetime import datetime, timedelta

from loguru import logger

from .exceptions import AlreadyRespondedError, InvalidResponseError, NotFoundError, TransportError
from .models import NotificationRecord, NotificationStatus, Quiz
from .state_store import InMemoryNotificationStore, NotificationStore
from .time_windows import Clock, utc_now
from .transports import NotificationPayload, Transport

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_notification_id(now: datetime) -> str:
    """notif-<unix ms>-<9 random base36 chars>"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"notif-{int(now.timestamp() * 1000)}-{suffix}"


class NotificationManager:
    """
    Tracks quiz notifications through their lifecycle.

    The record store is owned by this instance, so independent managers
    never share state.
    """

    def __init__(
        self,
        transport: Transport,
        store: NotificationStore | None = None,
        clock: Clock = utc_now,
        expiry_minutes: int = 60,
        title: str = "LockLearn Quiz",
    ):
        """
        Initialize the manager.

        Args:
            transport: Delivery capability
            store: Record store (in-memory if None)
            clock: Source of aware "now" datetimes
            expiry_minutes: Age after which an unanswered prompt expires
            title: Notification title
        """
        self.transport = transport
        self.store = store if store is not None else InMemoryNotificationStore()
        self.clock = clock
        self.expiry = timedelta(minutes=expiry_minutes)
        self.title = title

        # Guards every status transition (compare-and-set)
        self._lock = threading.Lock()
        self._dispatches: set[asyncio.Task] = set()

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_quiz_notification(self, quiz: Quiz, user_id: str) -> str:
        """
        Create a record for ``quiz`` and dispatch it.

        Returns:
            The new notification id; the record is queryable immediately
        """
        now = self.clock()
        notification_id = generate_notification_id(now)

        record = NotificationRecord(
            notification_id=notification_id,
            user_id=user_id,
            quiz=quiz,
            scheduled_time=now,
        )
        self.store.add(record)

        with self._lock:
            record.status = NotificationStatus.SENT
            record.sent_time = now
            self.store.update(record)

        payload = NotificationPayload.for_quiz(quiz, notification_id, user_id, title=self.title)
        task = asyncio.create_task(
            self._dispatch(payload, notification_id),
            name=f"dispatch-{notification_id}",
        )
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

        logger.info("Sent quiz notification {} to user {}", notification_id, user_id)
        return notification_id

    async def _dispatch(self, payload: NotificationPayload, notification_id: str) -> None:
        try:
            await self.transport.send(payload)
        except TransportError as e:
            # At most once per fire: the record stays "sent", no retry
            logger.warning("Dispatch failed for {}: {}", notification_id, e)
        except Exception:
            logger.exception("Transport crashed while dispatching {}", notification_id)

    async def drain(self) -> None:
        """Wait for in-flight dispatches to finish."""
        if self._dispatches:
            await asyncio.gather(*list(self._dispatches), return_exceptions=True)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_notification(self, notification_id: str) -> NotificationRecord | None:
        return self.store.get(notification_id)

    def require_notification(self, notification_id: str) -> NotificationRecord:
        record = self.store.get(notification_id)
        if record is None:
            raise NotFoundError("Notification", notification_id)
        return record

    def records_for_user(
        self,
        user_id: str,
        since: datetime | None = None,
    ) -> list[NotificationRecord]:
        return self.store.list_for_user(user_id, since)

    def count_sent_since(self, user_id: str, since: datetime) -> int:
        return self.store.count_sent_since(user_id, since)

    # =========================================================================
    # Transitions
    # =========================================================================

    def mark_responded(
        self,
        notification_id: str,
        answer: int,
        responded_time: datetime,
        is_correct: bool,
        latency_ms: int,
    ) -> NotificationRecord:
        """
        Move a record from ``sent`` to ``responded``. First caller wins.

        Raises:
            NotFoundError: Unknown id
            AlreadyRespondedError: Record already responded or expired
            InvalidResponseError: Record not dispatched yet
        """
        with self._lock:
            record = self.require_notification(notification_id)

            if record.status.is_final:
                raise AlreadyRespondedError(notification_id, record.status.value)
            if not record.can_transition(NotificationStatus.RESPONDED):
                raise InvalidResponseError(
                    f"Notification {notification_id} has not been sent yet"
                )

            record.status = NotificationStatus.RESPONDED
            record.responded_time = responded_time
            record.user_answer = answer
            record.is_correct = is_correct
            record.response_latency_ms = latency_ms
            self.store.update(record)
            return record

    def expire_stale(self, now: datetime | None = None) -> list[str]:
        """
        Mark ``sent`` records older than the expiry window as ``expired``.

        Returns:
            Ids that were expired by this sweep
        """
        now = now or self.clock()
        cutoff = now - self.expiry
        expired: list[str] = []

        with self._lock:
            for record in self.store.list_by_status(NotificationStatus.SENT):
                if record.sent_time is not None and record.sent_time <= cutoff:
                    record.status = NotificationStatus.EXPIRED
                    self.store.update(record)
                    expired.append(record.notification_id)

        if expired:
            logger.info("Expired {} unanswered notifications", len(expired))
        return expired
