"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Tests for the token-bucket rate limiter.
"""

from __future__ import annotations

from typing import List

import pytest

from modelhub.net.rate_limiter import RateLimiter


class FakeClock:
    """
    FakeClock: Manually advanced monotonic clock.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self._now

    def sleep(self, duration: float) -> None:
        self.sleeps.append(duration)
        self._now += duration

    def advance(self, seconds: float) -> None:
        self._now += seconds


def _limiter(clock: FakeClock, max_calls: int) -> RateLimiter:
    return RateLimiter(
        max_calls=max_calls,
        period_seconds=1.0,
        time_fn=clock.time,
        sleep_fn=clock.sleep,
    )


def test_rate_limiter_allows_initial_burst() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, 3)

    for _ in range(3):
        limiter.acquire()

    assert clock.sleeps == []


def test_rate_limiter_blocks_when_tokens_exhausted() -> None:
    """
    test_rate_limiter_blocks_when_tokens_exhausted: third call waits one slot.
    :param:
    :returns:
    """

    clock = FakeClock()
    limiter = _limiter(clock, 2)

    limiter.acquire()
    limiter.acquire()
    limiter.acquire()

    assert pytest.approx(clock.sleeps[0], rel=1e-6) == 0.5
    assert pytest.approx(clock.time(), rel=1e-6) == 0.5


def test_tokens_refill_with_elapsed_time() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, 1)

    limiter.acquire()
    clock.advance(1.0)
    limiter.acquire()

    assert clock.sleeps == []


def test_tokens_never_exceed_capacity_after_idle_period() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, 2)
    limiter.acquire()
    limiter.acquire()

    clock.advance(60.0)
    for _ in range(2):
        limiter.acquire()
    assert clock.sleeps == []

    limiter.acquire()
    assert len(clock.sleeps) == 1


def test_per_second_constructor() -> None:
    limiter = RateLimiter.per_second(4)

    assert limiter._capacity == 4.0
    assert pytest.approx(limiter._seconds_per_token) == 0.25


def test_rate_limiter_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_calls=0, period_seconds=1.0)

    with pytest.raises(ValueError):
        RateLimiter(max_calls=1, period_seconds=0.0)
