"""
Quiz Scheduler with daily triggers.

Implements:
- Daily triggers: one asyncio task per planned time, sleeping until the next
  wall-clock occurrence in the schedule's timezone, then firing
- One-shot follow-up triggers after an adaptive delay
- Fire path: quiet hours -> daily quota -> quiz generation -> send,
  serialized per user
- Background expiry sweep for unanswered prompts

Cancellation is cancel + await, so once clear_user_schedules() returns no
trigger of that user can fire again.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from loguru import logger

from .content import QuizSource
from .exceptions import QuizGenerationError
from .locks import UserLocks
from .models import LearningSchedule
from .notifications import NotificationManager
from .planner import DEFAULT_ANCHOR_TIME, plan_times, times_per_day
from .time_windows import (
    Clock,
    is_quiet_hour,
    local_now,
    next_occurrence,
    seconds_until,
    start_of_local_day,
    utc_now,
)

Sleep = Callable[[float], Awaitable[None]]
FireCallback = Callable[[], Awaitable[object]]

FOLLOW_UP_SUFFIX = "followup"


# =============================================================================
# Triggers
# =============================================================================


class Trigger:
    """Base for asyncio-task triggers; a failing fire never ends the task."""

    def __init__(self, job_id: str, callback: FireCallback, sleep: Sleep = asyncio.sleep):
        self.job_id = job_id
        self.callback = callback
        self.sleep = sleep
        self.fire_count = 0
        self._task: asyncio.Task | None = None

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"trigger-{self.job_id}")

    async def _run(self) -> None:
        raise NotImplementedError

    async def _fire(self) -> None:
        self.fire_count += 1
        try:
            await self.callback()
        except Exception:
            logger.exception("Trigger {} failed", self.job_id)

    async def cancel(self) -> None:
        """Cancel and wait until the task has finished."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task


class DailyTrigger(Trigger):
    """Fires every day at ``hhmm`` on the wall clock of ``zone``."""

    def __init__(
        self,
        job_id: str,
        hhmm: str,
        zone: ZoneInfo,
        callback: FireCallback,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ):
        super().__init__(job_id, callback, sleep)
        self.hhmm = hhmm
        self.zone = zone
        self.clock = clock

    async def _run(self) -> None:
        last_target: datetime | None = None
        while True:
            now = self.clock()
            # An early wake must not land on the slot that just fired
            if last_target is None or now.timestamp() > last_target.timestamp():
                after = now
            else:
                after = last_target
            target = next_occurrence(self.hhmm, self.zone, after)
            await self.sleep(seconds_until(target, now))
            last_target = target
            await self._fire()


class OneShotTrigger(Trigger):
    """Fires once after ``delay_seconds``."""

    def __init__(
        self,
        job_id: str,
        delay_seconds: float,
        callback: FireCallback,
        sleep: Sleep = asyncio.sleep,
    ):
        super().__init__(job_id, callback, sleep)
        self.delay_seconds = delay_seconds

    async def _run(self) -> None:
        await self.sleep(self.delay_seconds)
        await self._fire()


# =============================================================================
# Quiz Scheduler
# =============================================================================


class QuizScheduler:
    """
    Arms and cancels triggers for learning schedules.

    Triggers are grouped per user and keyed by job id ("{user_id}-{index}"
    for daily slots, "{user_id}-followup" for the pending follow-up).
    """

    def __init__(
        self,
        manager: NotificationManager,
        quiz_source: QuizSource,
        quiet_hours: tuple[str, str] = ("22:00", "08:00"),
        max_daily_questions: int = 10,
        clock: Clock = utc_now,
        default_anchor: str = DEFAULT_ANCHOR_TIME,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the scheduler.

        Args:
            manager: Creates and dispatches notifications
            quiz_source: Produces quizzes for a schedule's categories
            quiet_hours: (start, end) "HH:MM", inclusive at both ends
            max_daily_questions: Per-user cap per local calendar day
            clock: Source of aware "now" datetimes
            default_anchor: Planning anchor when no preferred time is given
            sleep: Awaitable sleep used by triggers
        """
        self.manager = manager
        self.quiz_source = quiz_source
        self.quiet_hours = quiet_hours
        self.max_daily_questions = max_daily_questions
        self.clock = clock
        self.default_anchor = default_anchor
        self.sleep = sleep

        self._jobs: dict[str, dict[str, Trigger]] = {}
        self._plans: dict[str, list[str]] = {}
        self._sweep: asyncio.Task | None = None
        self._fire_locks = UserLocks()

    # =========================================================================
    # Arming
    # =========================================================================

    async def schedule_quizzes(self, schedule: LearningSchedule) -> list[str]:
        """
        Replace the user's daily triggers with ones for ``schedule``.

        Returns:
            The planned "HH:MM" times, in trigger order
        """
        await self.clear_user_schedules(schedule.user_id)

        times = plan_times(
            schedule.preferred_times,
            times_per_day(schedule.frequency),
            default_anchor=self.default_anchor,
        )
        zone = schedule.zone
        jobs = self._jobs.setdefault(schedule.user_id, {})

        for index, hhmm in enumerate(times):
            job_id = f"{schedule.user_id}-{index}"
            trigger = DailyTrigger(
                job_id,
                hhmm,
                zone,
                callback=lambda s=schedule: self.fire(s),
                clock=self.clock,
                sleep=self.sleep,
            )
            jobs[job_id] = trigger
            trigger.start()

        self._plans[schedule.user_id] = times
        logger.info(
            "Scheduled {} daily quizzes for {} at {} ({})",
            len(times),
            schedule.user_id,
            ", ".join(times),
            schedule.timezone,
        )
        return times

    async def schedule_follow_up(self, schedule: LearningSchedule, delay_minutes: int) -> str:
        """Arm a one-shot fire after ``delay_minutes``, replacing a pending one."""
        job_id = f"{schedule.user_id}-{FOLLOW_UP_SUFFIX}"
        jobs = self._jobs.setdefault(schedule.user_id, {})

        previous = jobs.pop(job_id, None)
        if previous is not None:
            await previous.cancel()

        trigger = OneShotTrigger(
            job_id,
            delay_minutes * 60,
            callback=lambda: self.fire(schedule),
            sleep=self.sleep,
        )
        jobs[job_id] = trigger
        trigger.start()

        logger.debug("Follow-up for {} in {}m", schedule.user_id, delay_minutes)
        return job_id

    # =========================================================================
    # Firing
    # =========================================================================

    async def fire(self, schedule: LearningSchedule) -> str | None:
        """
        Run one fire for ``schedule``.

        Returns:
            The new notification id, or None when the fire was skipped
        """
        # Quota check, generation and send run as one step per user
        async with self._fire_locks.hold(schedule.user_id):
            return await self._fire_unlocked(schedule)

    async def _fire_unlocked(self, schedule: LearningSchedule) -> str | None:
        user_id = schedule.user_id
        zone = schedule.zone
        now = local_now(zone, self.clock)

        quiet_start, quiet_end = self.quiet_hours
        if is_quiet_hour(now, quiet_start, quiet_end):
            logger.debug("Quiet hours for {} at {:%H:%M} - skipping", user_id, now)
            return None

        sent_today = self.manager.count_sent_since(user_id, start_of_local_day(zone, now))
        if sent_today >= self.max_daily_questions:
            logger.debug(
                "Daily limit reached for {} ({}/{}) - skipping",
                user_id,
                sent_today,
                self.max_daily_questions,
            )
            return None

        try:
            quiz = await self.quiz_source.generate_quiz(
                schedule.categories,
                user_id=user_id,
                difficulty=schedule.difficulty,
            )
        except QuizGenerationError as e:
            logger.warning("No quiz for {}: {}", user_id, e)
            return None

        return await self.manager.send_quiz_notification(quiz, user_id)

    # =========================================================================
    # Cancelling
    # =========================================================================

    async def clear_user_schedules(self, user_id: str) -> None:
        """Cancel every trigger of ``user_id``. Safe to call repeatedly."""
        jobs = self._jobs.pop(user_id, {})
        self._plans.pop(user_id, None)
        for trigger in jobs.values():
            await trigger.cancel()
        if jobs:
            logger.debug("Cleared {} triggers for {}", len(jobs), user_id)

    async def stop_all_schedules(self) -> None:
        """Cancel every trigger of every user and the expiry sweep."""
        for user_id in list(self._jobs):
            await self.clear_user_schedules(user_id)
        await self.stop_expiry_sweep()
        logger.info("All schedules stopped")

    # =========================================================================
    # Expiry sweep
    # =========================================================================

    def start_expiry_sweep(self, interval_seconds: float = 60.0) -> None:
        """Start the background task that expires unanswered prompts."""
        if self._sweep is not None and not self._sweep.done():
            logger.debug("Expiry sweep already running")
            return
        self._sweep = asyncio.create_task(
            self._sweep_loop(interval_seconds), name="expiry-sweep"
        )
        logger.info("Expiry sweep started (interval: {}s)", interval_seconds)

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await self.sleep(interval_seconds)
            try:
                self.manager.expire_stale()
            except Exception:
                logger.exception("Expiry sweep failed")

    async def stop_expiry_sweep(self) -> None:
        task, self._sweep = self._sweep, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # =========================================================================
    # Introspection
    # =========================================================================

    def active_jobs(self, user_id: str | None = None) -> list[str]:
        """Job ids whose triggers are still armed."""
        users = [user_id] if user_id is not None else list(self._jobs)
        return sorted(
            job_id
            for uid in users
            for job_id, trigger in self._jobs.get(uid, {}).items()
            if not trigger.done
        )

    def planned_times(self, user_id: str) -> list[str]:
        return list(self._plans.get(user_id, []))
