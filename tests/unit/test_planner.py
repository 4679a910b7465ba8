"""
Tests for the interval planner.
"""

import pytest

from locklearn_notify.exceptions import InvalidScheduleError
from locklearn_notify.planner import plan_times, times_per_day


@pytest.mark.parametrize(
    "frequency,count",
    [("low", 2), ("medium", 4), ("high", 6), ("hourly", 3)],
)
def test_times_per_day(frequency, count):
    assert times_per_day(frequency) == count


def test_preferred_times_come_first():
    assert plan_times(["09:00", "14:00"], 4) == ["09:00", "14:00", "15:00", "02:00"]


def test_extra_slots_wrap_past_midnight():
    planned = plan_times(["09:00", "14:00", "19:00"], 6)
    assert planned == ["09:00", "14:00", "19:00", "13:00", "22:00", "07:00"]


def test_truncates_when_more_preferred_than_needed():
    assert plan_times(["09:00", "14:00", "19:00"], 2) == ["09:00", "14:00"]


def test_empty_preferred_uses_anchor():
    assert plan_times([], 4) == ["09:00", "13:00", "17:00", "21:00"]
    assert plan_times([], 2, default_anchor="07:00") == ["07:00", "19:00"]


def test_minutes_are_preserved():
    assert plan_times(["07:30"], 2) == ["07:30", "19:30"]


def test_always_returns_requested_count():
    for count in range(1, 8):
        assert len(plan_times(["08:15"], count)) == count


def test_zero_count():
    assert plan_times(["09:00"], 0) == []


def test_malformed_time_raises():
    with pytest.raises(InvalidScheduleError):
        plan_times(["9am"], 4)
