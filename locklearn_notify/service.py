"""
Public API for notification learning.

NotificationLearningService wires the components together and owns the
per-user schedule table:

    QuizScheduler -> QuizSource -> NotificationManager -> Transport
                                          |
    respond_to_notification -> ResponseHandler -> WrongAnswerSink
                                          |
                    performance signal -> QuizSource.record_performance

Usage:
    async with NotificationLearningService(settings) as service:
        await service.start_learning("user-1", {"frequency": "high"})
        ...
"""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from .config import Settings, get_settings
from .content import QuizBank, QuizSource
from .exceptions import NotFoundError
from .locks import UserLocks
from .models import (
    FREQUENCIES,
    LearningSchedule,
    NotificationHistory,
    NotificationResponse,
    ResponseOutcome,
)
from .notifications import NotificationManager
from .responses import ResponseHandler
from .scheduler import QuizScheduler, Sleep
from .state_store import InMemoryNotificationStore, NotificationStore, SqliteNotificationStore
from .time_windows import Clock, utc_now
from .transports import Transport, create_transport
from .wrong_answers import WrongAnswerLog, WrongAnswerSink

FEEDBACK_ACTIONS = ("increase", "decrease", "pause")


class NotificationLearningService:
    """Starts, adjusts and stops notification learning per user."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: Transport | None = None,
        quiz_source: QuizSource | None = None,
        store: NotificationStore | None = None,
        wrong_answer_sink: WrongAnswerSink | None = None,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the service.

        Args:
            settings: Settings (cached environment settings if None)
            transport: Delivery capability (built from settings if None)
            quiz_source: Content capability (quiz bank from settings if None)
            store: Record store (SQLite when state_db_path is set, else in-memory)
            wrong_answer_sink: Sink for incorrect answers (bounded log if None)
            clock: Source of aware "now" datetimes
            sleep: Awaitable sleep used by triggers
        """
        self.settings = settings or get_settings()
        s = self.settings

        self.transport = transport or create_transport(s)
        if quiz_source is None:
            quiz_source = QuizBank.from_file(s.quiz_bank_path) if s.quiz_bank_path else QuizBank()
        self.quiz_source = quiz_source
        if store is None:
            store = (
                SqliteNotificationStore(s.state_db_path)
                if s.state_db_path
                else InMemoryNotificationStore()
            )
        self.wrong_answers = wrong_answer_sink or WrongAnswerLog(s.wrong_answer_log_size)

        self.manager = NotificationManager(
            self.transport,
            store=store,
            clock=clock,
            expiry_minutes=s.expiry_minutes,
            title=s.notification_title,
        )
        self.responses = ResponseHandler(
            self.manager,
            wrong_answer_sink=self.wrong_answers,
            clock=clock,
            base_delay_minutes=s.base_delay_minutes,
            minimum_delay_minutes=s.minimum_delay_minutes,
            adaptive=s.adaptive_scheduling,
        )
        self.scheduler = QuizScheduler(
            self.manager,
            self.quiz_source,
            quiet_hours=s.get_quiet_hours(),
            max_daily_questions=s.max_daily_questions,
            clock=clock,
            default_anchor=s.default_anchor_time,
            sleep=sleep,
        )

        self._schedules: dict[str, LearningSchedule] = {}
        self._locks = UserLocks()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start background work (expiry sweep)."""
        self.scheduler.start_expiry_sweep(self.settings.expiry_sweep_interval_seconds)

    async def shutdown(self) -> None:
        """Stop every trigger and release the transport and store."""
        await self.scheduler.stop_all_schedules()
        self._schedules.clear()
        await self.manager.drain()
        await self.transport.aclose()
        self.manager.store.close()
        logger.info("Notification learning service stopped")

    async def __aenter__(self) -> NotificationLearningService:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # =========================================================================
    # Schedules
    # =========================================================================

    async def start_learning(
        self,
        user_id: str,
        schedule_overrides: dict[str, Any] | None = None,
    ) -> LearningSchedule | None:
        """
        Install (or replace) the user's schedule and arm its triggers.

        Returns:
            The active schedule, or None when notification learning is disabled

        Raises:
            InvalidScheduleError: If the merged schedule is invalid
        """
        if not self.settings.enabled:
            logger.info("Notification learning disabled - not starting {}", user_id)
            return None

        schedule = LearningSchedule(
            user_id=user_id, **self.settings.get_schedule_defaults()
        ).merged(schedule_overrides or {})

        async with self._locks.hold(user_id):
            await self._install(schedule)

        logger.info("Notification learning started for {}", user_id)
        return schedule

    async def stop_learning(self, user_id: str) -> None:
        """Cancel the user's triggers and drop the schedule. Idempotent."""
        async with self._locks.hold(user_id):
            await self._remove(user_id)

    async def update_schedule(
        self,
        user_id: str,
        partial_update: dict[str, Any],
    ) -> LearningSchedule:
        """
        Merge ``partial_update`` into the active schedule and re-arm.

        Raises:
            NotFoundError: If the user has no active schedule
            InvalidScheduleError: If the merged schedule is invalid
        """
        async with self._locks.hold(user_id):
            current = self._schedules.get(user_id)
            if current is None:
                raise NotFoundError("Learning schedule", user_id)
            schedule = current.merged(partial_update)
            await self._install(schedule)

        logger.info("Schedule updated for {}", user_id)
        return schedule

    async def adjust_frequency(self, user_id: str, feedback: str) -> LearningSchedule | None:
        """
        Step the frequency tier up or down, or pause.

        Returns:
            The schedule now active, or None when paused or not scheduled

        Raises:
            ValueError: For feedback other than increase/decrease/pause
        """
        if feedback not in FEEDBACK_ACTIONS:
            raise ValueError(f"feedback must be one of {FEEDBACK_ACTIONS}, got {feedback!r}")

        async with self._locks.hold(user_id):
            current = self._schedules.get(user_id)
            if current is None:
                logger.debug("No schedule for {} - ignoring {}", user_id, feedback)
                return None

            if feedback == "pause":
                await self._remove(user_id)
                return None

            index = FREQUENCIES.index(current.frequency)
            step = 1 if feedback == "increase" else -1
            frequency = FREQUENCIES[min(max(index + step, 0), len(FREQUENCIES) - 1)]
            if frequency == current.frequency:
                return current

            schedule = current.merged({"frequency": frequency})
            await self._install(schedule)

        logger.info("Frequency for {}: {} -> {}", user_id, current.frequency, frequency)
        return schedule

    async def _install(self, schedule: LearningSchedule) -> None:
        await self.scheduler.schedule_quizzes(schedule)
        self._schedules[schedule.user_id] = schedule

    async def _remove(self, user_id: str) -> None:
        await self.scheduler.clear_user_schedules(user_id)
        if self._schedules.pop(user_id, None) is not None:
            logger.info("Notification learning stopped for {}", user_id)

    def get_schedule(self, user_id: str) -> LearningSchedule | None:
        return self._schedules.get(user_id)

    def active_users(self) -> list[str]:
        return sorted(self._schedules)

    # =========================================================================
    # Responses & History
    # =========================================================================

    async def respond_to_notification(self, response: NotificationResponse) -> ResponseOutcome:
        """
        Record an answer, feed performance back and optionally arm a follow-up.

        Raises:
            NotFoundError: Unknown notification id
            AlreadyRespondedError: Notification already responded or expired
            InvalidResponseError: Answer index outside the quiz options
        """
        outcome = await self.responses.respond(response)
        user_id = self.manager.require_notification(response.notification_id).user_id

        performance = self.responses.recent_performance(user_id)
        if performance is not None:
            accuracy, avg_seconds = performance
            try:
                await self.quiz_source.record_performance(user_id, accuracy, avg_seconds)
            except Exception as e:
                logger.warning("Performance signal failed for {}: {}", user_id, e)

        if self.settings.adaptive_follow_up:
            async with self._locks.hold(user_id):
                schedule = self._schedules.get(user_id)
                if schedule is not None:
                    await self.scheduler.schedule_follow_up(schedule, outcome.next_delay_minutes)

        return outcome

    def get_history(self, user_id: str, days: int = 7) -> NotificationHistory:
        return self.responses.get_history(user_id, days)
