"""
ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

Token-bucket rate limiter shared by the registry and inference clients.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Optional


class RateLimiter:
    """Allow at most ``max_calls`` operations per ``period_seconds``.

    Every :meth:`acquire` consumes one token; tokens refill continuously.
    The bucket starts full, so a burst of ``max_calls`` requests goes out
    immediately and later callers are spaced evenly.
    """

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ) -> None:
        """
        __init__: Build a limiter.
        :param max_calls: bucket capacity and calls allowed per window
        :param period_seconds: window length
        :param time_fn: monotonic clock override for tests
        :param sleep_fn: sleep override for tests
        """

        if max_calls <= 0:
            raise ValueError("max_calls must be positive.")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive.")

        self._capacity = float(max_calls)
        self._seconds_per_token = float(period_seconds) / self._capacity
        self._time_fn = time_fn or time.monotonic
        self._sleep_fn = sleep_fn or time.sleep

        self._lock = threading.Lock()
        self._tokens = self._capacity
        self._last_refill = self._time_fn()

    @classmethod
    def per_second(cls, calls: int) -> "RateLimiter":
        return cls(max_calls=calls, period_seconds=1.0)

    def acquire(self) -> None:
        """Block until a token is available, then consume it."""
        while True:
            with self._lock:
                wait_time = self._take_or_wait(self._time_fn())
            if wait_time <= 0:
                return
            # Sleep outside the lock so other threads can refill/consume.
            self._sleep_fn(wait_time)

    def _take_or_wait(self, now: float) -> float:
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(
                self._capacity,
                self._tokens + elapsed / self._seconds_per_token,
            )
            self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return 0.0
        return (1.0 - self._tokens) * self._seconds_per_token
