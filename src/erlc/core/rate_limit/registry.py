# src/erlc/core/rate_limit/registry.py
"""Registry of server-communicated rate limits, one record per endpoint."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from erlc.core.clock import DEFAULT_CLOCK, Clock


@dataclass(frozen=True, slots=True)
class RateLimitState:
    """Most recent rate-limit signal for one endpoint.

    Attributes:
        remaining: Calls left in the current window (X-RateLimit-Remaining)
        reset_at: Monotonic time at which the window resets
    """

    remaining: int
    reset_at: float

    def is_throttled(self, now: float) -> bool:
        return self.remaining <= 0 and now < self.reset_at


class RateLimitRegistry:
    """Thread-safe map of endpoint -> RateLimitState.

    Records are written by the transport after every response and read by
    the dispatcher before every dispatch. The registry is purely advisory:
    it never blocks, it only answers whether an endpoint may be called now.

    An endpoint with no record has never been called and is never
    throttled. Each record fully replaces the previous one (last writer
    wins), so a later response that restores budget lifts the throttle
    immediately.

    Example:
        registry = RateLimitRegistry()

        # After a response with X-RateLimit-Remaining: 0, Retry-After: 5
        registry.record_limit("server", remaining=0, reset_delay=5)

        registry.is_throttled("server")   # True for the next 5 seconds
        registry.is_throttled("players")  # False, never seen
    """

    def __init__(self, clock: Clock | None = None) -> None:
        """Initialize an empty registry.

        Args:
            clock: Time source for reset calculations (defaults to system
                monotonic clock)
        """
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._states: dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    @property
    def clock(self) -> Clock:
        return self._clock

    def record_limit(self, endpoint: str, remaining: int, reset_delay: float) -> RateLimitState:
        """Store the limit signalled by a response, replacing any prior record.

        Args:
            endpoint: Endpoint the response belongs to
            remaining: Calls left in the window
            reset_delay: Seconds until the window resets; negative values
                are treated as 0

        Returns:
            The stored state
        """
        state = RateLimitState(
            remaining=remaining,
            reset_at=self._clock.monotonic() + max(0.0, reset_delay),
        )
        with self._lock:
            self._states[endpoint] = state
        return state

    def get(self, endpoint: str) -> RateLimitState | None:
        with self._lock:
            return self._states.get(endpoint)

    def is_throttled(self, endpoint: str, now: float | None = None) -> bool:
        """Check whether dispatch to an endpoint must wait.

        Args:
            endpoint: Endpoint to check
            now: Monotonic time to evaluate at (defaults to the clock)

        Returns:
            True iff a record exists, its remaining budget is exhausted and
            its reset time has not yet passed
        """
        state = self.get(endpoint)
        if state is None:
            return False
        return state.is_throttled(self._clock.monotonic() if now is None else now)

    def seconds_until_reset(self, endpoint: str, now: float | None = None) -> float:
        """Seconds the endpoint stays throttled (0.0 when it is not)."""
        state = self.get(endpoint)
        current = self._clock.monotonic() if now is None else now
        if state is None or not state.is_throttled(current):
            return 0.0
        return state.reset_at - current

    def reset_all(self) -> None:
        """Forget every recorded limit (for testing)."""
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
