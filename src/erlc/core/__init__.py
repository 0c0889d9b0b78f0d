"""Core infrastructure: clock, configuration, logging, queueing, rate limits."""

from erlc.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from erlc.core.config import ErlcSettings, LoggingSettings, load_settings
from erlc.core.logging import configure_logging, get_logger, set_log_level
from erlc.core.queue import PendingRequest, RequestQueue
from erlc.core.rate_limit import RateLimitRegistry, RateLimitState

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "ErlcSettings",
    "LoggingSettings",
    "MockClock",
    "PendingRequest",
    "RateLimitRegistry",
    "RateLimitState",
    "RequestQueue",
    "SystemClock",
    "configure_logging",
    "get_logger",
    "load_settings",
    "set_log_level",
]
