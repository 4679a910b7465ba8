import pytest

from locklearn_notify.adaptive import compute_next_delay


@pytest.mark.parametrize(
    "base,correct,latency,expected",
    [
        (60, True, 10000, 90),
        (60, False, 3000, 50),
        (60, True, 3000, 108),
        (60, False, 10000, 42),
        (60, True, 5000, 90),  # 5s is not "fast"
        (5, True, 10000, 8),  # 7.5 rounds up
    ],
)
def test_delay_examples(base, correct, latency, expected):
    assert compute_next_delay(base, correct, latency) == expected


def test_never_below_minimum():
    assert compute_next_delay(0, False, 10000) == 1
    assert compute_next_delay(10, False, 10000, minimum_minutes=15) == 15


def test_defaults():
    # base 60, correct, latency at the fast threshold
    assert compute_next_delay() == 90
