"""
Tests for QuizScheduler and its asyncio triggers.
"""

import asyncio
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from locklearn_notify.content import QuizSource
from locklearn_notify.exceptions import QuizGenerationError
from locklearn_notify.models import LearningSchedule, NotificationStatus
from locklearn_notify.scheduler import DailyTrigger, OneShotTrigger, QuizScheduler

SEOUL = ZoneInfo("Asia/Seoul")


def seoul(hour, minute=0, day=10):
    return datetime(2026, 3, day, hour, minute, tzinfo=SEOUL).astimezone(timezone.utc)


@pytest.fixture
def schedule():
    return LearningSchedule(
        user_id="u1",
        preferred_times=["09:00", "14:00"],
        timezone="Asia/Seoul",
        frequency="medium",
        categories=["programming"],
    )


@pytest.fixture
def scheduler(manager, quiz_bank, clock):
    return QuizScheduler(manager, quiz_bank, max_daily_questions=3, clock=clock)


class EmptySource(QuizSource):
    async def generate_quiz(self, categories, user_id=None, difficulty="adaptive"):
        raise QuizGenerationError("nothing to ask")


class YieldingSource(QuizSource):
    """Hands the loop to other tasks before returning its quiz."""

    def __init__(self, quiz):
        self.quiz = quiz

    async def generate_quiz(self, categories, user_id=None, difficulty="adaptive"):
        await asyncio.sleep(0)
        return self.quiz


class ClockSleep:
    """Moves the clock by ``rate`` times each requested delay."""

    def __init__(self, clock, rate=1.0):
        self.clock = clock
        self.rate = rate
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        self.clock.advance(seconds=seconds * self.rate)
        await asyncio.sleep(0)


class TestArming:
    @pytest.mark.asyncio
    async def test_one_trigger_per_planned_time(self, scheduler, schedule):
        times = await scheduler.schedule_quizzes(schedule)

        assert times == ["09:00", "14:00", "15:00", "02:00"]
        assert scheduler.active_jobs("u1") == ["u1-0", "u1-1", "u1-2", "u1-3"]
        assert scheduler.planned_times("u1") == times

        await scheduler.stop_all_schedules()

    @pytest.mark.asyncio
    async def test_rescheduling_cancels_old_triggers(self, scheduler, schedule):
        await scheduler.schedule_quizzes(schedule)
        old_triggers = list(scheduler._jobs["u1"].values())

        await scheduler.schedule_quizzes(schedule.merged({"frequency": "low"}))

        assert all(t.done for t in old_triggers)
        assert scheduler.active_jobs("u1") == ["u1-0", "u1-1"]

        await scheduler.stop_all_schedules()

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, scheduler, schedule):
        await scheduler.schedule_quizzes(schedule)

        await scheduler.clear_user_schedules("u1")
        await scheduler.clear_user_schedules("u1")
        await scheduler.clear_user_schedules("never-scheduled")

        assert scheduler.active_jobs() == []
        assert scheduler.planned_times("u1") == []

    @pytest.mark.asyncio
    async def test_clear_only_touches_one_user(self, scheduler, schedule):
        await scheduler.schedule_quizzes(schedule)
        await scheduler.schedule_quizzes(LearningSchedule(user_id="u2"))

        await scheduler.clear_user_schedules("u1")

        assert scheduler.active_jobs("u1") == []
        assert len(scheduler.active_jobs("u2")) == 4

        await scheduler.stop_all_schedules()
        assert scheduler.active_jobs() == []


class TestFire:
    @pytest.mark.asyncio
    async def test_sends_outside_quiet_hours(self, scheduler, schedule, manager, transport):
        notification_id = await scheduler.fire(schedule)

        assert notification_id is not None
        record = manager.get_notification(notification_id)
        assert record.quiz.category == "programming"
        await manager.drain()
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "hour,minute,sends",
        [(21, 59, True), (22, 0, False), (3, 0, False), (8, 0, False), (8, 1, True)],
    )
    async def test_quiet_hours_in_schedule_zone(self, scheduler, schedule, clock, hour, minute, sends):
        clock.set(seoul(hour, minute))

        result = await scheduler.fire(schedule)

        assert (result is not None) is sends

    @pytest.mark.asyncio
    async def test_daily_quota(self, scheduler, schedule, manager, clock):
        for _ in range(3):
            assert await scheduler.fire(schedule) is not None

        assert await scheduler.fire(schedule) is None
        assert len(manager.records_for_user("u1")) == 3

        # Next local day resets the count
        clock.set(seoul(12, day=11))
        assert await scheduler.fire(schedule) is not None

    @pytest.mark.asyncio
    async def test_concurrent_fires_respect_quota(self, manager, clock, schedule, sample_quiz):
        scheduler = QuizScheduler(
            manager, YieldingSource(sample_quiz), max_daily_questions=1, clock=clock
        )

        results = await asyncio.gather(scheduler.fire(schedule), scheduler.fire(schedule))

        assert len([r for r in results if r is not None]) == 1
        assert len(manager.records_for_user("u1")) == 1
        assert "u1" not in scheduler._fire_locks

    @pytest.mark.asyncio
    async def test_quota_counts_local_day(self, manager, quiz_bank, clock):
        scheduler = QuizScheduler(
            manager, quiz_bank, quiet_hours=("03:00", "04:00"), max_daily_questions=1, clock=clock
        )
        schedule = LearningSchedule(user_id="u1", timezone="Asia/Seoul")

        # 23:30 on the 10th and 00:30 on the 11th in Seoul are different days
        clock.set(seoul(23, 30))
        assert await scheduler.fire(schedule) is not None
        clock.set(seoul(0, 30, day=11))
        assert await scheduler.fire(schedule) is not None

    @pytest.mark.asyncio
    async def test_generation_failure_skips(self, manager, clock, schedule):
        scheduler = QuizScheduler(manager, EmptySource(), clock=clock)

        assert await scheduler.fire(schedule) is None
        assert manager.records_for_user("u1") == []


class TestTriggers:
    @pytest.mark.asyncio
    async def test_daily_trigger_sleeps_until_wall_clock_time(self, clock, wait_for):
        sleep = ClockSleep(clock)
        fired = []

        async def callback():
            fired.append(clock().astimezone(SEOUL))

        trigger = DailyTrigger("u1-0", "14:00", SEOUL, callback, clock=clock, sleep=sleep)
        trigger.start()

        assert await wait_for(lambda: len(fired) >= 3)
        await trigger.cancel()

        # Noon in Seoul -> two hours until 14:00, then one day per fire
        assert sleep.calls[:3] == [2 * 3600, 24 * 3600, 24 * 3600]
        assert [(t.day, t.hour, t.minute) for t in fired[:3]] == [(10, 14, 0), (11, 14, 0), (12, 14, 0)]
        assert trigger.done

    @pytest.mark.asyncio
    async def test_early_wake_fires_slot_once(self, clock, wait_for):
        # Sleep returns slightly before the wall clock reaches the target
        sleep = ClockSleep(clock, rate=0.9999)
        fired = []

        async def callback():
            fired.append(clock().astimezone(SEOUL))

        trigger = DailyTrigger("u1-0", "14:00", SEOUL, callback, clock=clock, sleep=sleep)
        trigger.start()

        assert await wait_for(lambda: len(fired) >= 3)
        await trigger.cancel()

        assert [t.day for t in fired[:3]] == [10, 11, 12]
        assert sleep.calls[1] == pytest.approx(24 * 3600, abs=5)

    @pytest.mark.asyncio
    async def test_failing_fire_does_not_stop_trigger(self, clock, fake_sleep, wait_for):
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first fire fails")

        trigger = DailyTrigger("u1-0", "14:00", SEOUL, callback, clock=clock, sleep=fake_sleep)
        trigger.start()

        assert await wait_for(lambda: len(calls) >= 3)
        await trigger.cancel()

    @pytest.mark.asyncio
    async def test_cancelled_trigger_never_fires(self, clock):
        fired = []

        async def callback():
            fired.append(1)

        trigger = DailyTrigger("u1-0", "14:00", SEOUL, callback, clock=clock)
        trigger.start()
        await asyncio.sleep(0)
        await trigger.cancel()

        assert fired == []
        assert trigger.done

    @pytest.mark.asyncio
    async def test_one_shot_fires_once(self, fake_sleep, wait_for):
        fired = []

        async def callback():
            fired.append(1)

        trigger = OneShotTrigger("u1-followup", 90.0, callback, sleep=fake_sleep)
        trigger.start()

        assert await wait_for(lambda: trigger.done)
        assert fired == [1]
        assert fake_sleep.calls == [90.0]


class TestFollowUpAndSweep:
    @pytest.mark.asyncio
    async def test_follow_up_fires_after_delay(
        self, manager, quiz_bank, clock, schedule, fake_sleep, wait_for
    ):
        scheduler = QuizScheduler(manager, quiz_bank, clock=clock, sleep=fake_sleep)

        job_id = await scheduler.schedule_follow_up(schedule, 50)

        assert job_id == "u1-followup"
        assert await wait_for(lambda: len(manager.records_for_user("u1")) == 1)
        assert fake_sleep.calls == [50 * 60]
        assert await wait_for(lambda: scheduler.active_jobs("u1") == [])

    @pytest.mark.asyncio
    async def test_follow_up_replaced_and_cleared(self, scheduler, schedule):
        await scheduler.schedule_quizzes(schedule)
        await scheduler.schedule_follow_up(schedule, 90)
        first = scheduler._jobs["u1"]["u1-followup"]

        await scheduler.schedule_follow_up(schedule, 30)

        assert first.done
        assert "u1-followup" in scheduler.active_jobs("u1")

        await scheduler.clear_user_schedules("u1")
        assert scheduler.active_jobs("u1") == []

    @pytest.mark.asyncio
    async def test_expiry_sweep(self, manager, quiz_bank, clock, sample_quiz, fake_sleep, wait_for):
        scheduler = QuizScheduler(manager, quiz_bank, clock=clock, sleep=fake_sleep)
        notification_id = await manager.send_quiz_notification(sample_quiz, "u1")
        clock.advance(minutes=90)

        scheduler.start_expiry_sweep(interval_seconds=30)

        assert await wait_for(
            lambda: manager.get_notification(notification_id).status == NotificationStatus.EXPIRED
        )
        assert fake_sleep.calls[0] == 30

        await scheduler.stop_all_schedules()
        assert scheduler._sweep is None
