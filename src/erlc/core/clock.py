# src/erlc/core/clock.py
"""Clock abstraction for rate-limit bookkeeping.

Reset times are stored as monotonic timestamps, so every component that
compares "now" against a reset time reads it through a Clock. Production
code uses SystemClock; tests inject MockClock and move time forward
without sleeping through a Retry-After window.
"""

from __future__ import annotations

import time
from threading import Lock
from typing import Protocol


class Clock(Protocol):
    """Source of monotonic time in seconds."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds (never goes backwards)."""
        ...


class SystemClock:
    """Clock backed by time.monotonic()."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic throttle tests.

    Safe to advance from the test thread while the dispatcher thread
    reads it.

    Example:
        clock = MockClock(start=100.0)
        registry = RateLimitRegistry(clock=clock)

        registry.record_limit("server", remaining=0, reset_delay=5)
        assert registry.is_throttled("server")

        clock.advance(5)
        assert not registry.is_throttled("server")
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start
        self._lock = Lock()

    def monotonic(self) -> float:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> None:
        """Move time forward.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        with self._lock:
            self._current += seconds

    def set(self, value: float) -> None:
        """Jump to an absolute time (may go backwards, tests only)."""
        with self._lock:
            self._current = value


DEFAULT_CLOCK: Clock = SystemClock()
