"""
Adaptive delay before the next prompt.

Multiplier chain, applied in this order:
    correct   -> x1.5 (longer rest after mastery)
    incorrect -> x0.7 (reinforce sooner)
    latency < 5s -> x1.2 (fast answer: item likely too easy, or dismissed)

A fast answer lengthens the delay whether or not it was correct. That mixes
"too easy" with "guessed without reading"; the behaviour is kept as is.
"""

from __future__ import annotations

import math

DEFAULT_BASE_DELAY_MINUTES = 60
CORRECT_MULTIPLIER = 1.5
INCORRECT_MULTIPLIER = 0.7
FAST_RESPONSE_MS = 5000
FAST_RESPONSE_MULTIPLIER = 1.2
MINIMUM_DELAY_MINUTES = 1


def compute_next_delay(
    base_delay_minutes: float = DEFAULT_BASE_DELAY_MINUTES,
    is_correct: bool = True,
    response_latency_ms: float = FAST_RESPONSE_MS,
    minimum_minutes: int = MINIMUM_DELAY_MINUTES,
) -> int:
    """
    Compute the delay in whole minutes before the next prompt.

    Args:
        base_delay_minutes: Starting delay (default 60)
        is_correct: Whether the last answer was correct
        response_latency_ms: Time between sending and answering
        minimum_minutes: Floor for the result

    Returns:
        Delay in minutes, rounded half up, never below ``minimum_minutes``
    """
    delay = float(base_delay_minutes)
    delay *= CORRECT_MULTIPLIER if is_correct else INCORRECT_MULTIPLIER

    if response_latency_ms < FAST_RESPONSE_MS:
        delay *= FAST_RESPONSE_MULTIPLIER

    return max(minimum_minutes, math.floor(delay + 0.5))
