# tests/conftest.py
"""Shared test fixtures.

Dispatcher fixtures run over RecordingTransport (tests/helpers.py) and a
MockClock, so throttle windows are crossed by advancing the clock rather
than sleeping.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from erlc.core.clock import MockClock
from erlc.core.rate_limit import RateLimitRegistry
from erlc.dispatcher import Dispatcher
from tests.helpers import RESULT_TIMEOUT, RecordingTransport


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock(start=1000.0)


@pytest.fixture
def registry(mock_clock: MockClock) -> RateLimitRegistry:
    return RateLimitRegistry(clock=mock_clock)


@pytest.fixture
def transport(registry: RateLimitRegistry) -> RecordingTransport:
    return RecordingTransport(registry)


@pytest.fixture
def dispatcher(transport: RecordingTransport) -> Iterator[Dispatcher]:
    """Running dispatcher over RecordingTransport with a 5ms poll interval."""
    d = Dispatcher(transport, poll_interval=0.005, max_workers=4)  # type: ignore[arg-type]
    d.ensure_running()
    yield d
    d.stop(timeout=RESULT_TIMEOUT)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo configure_logging() and set_log_level() between tests."""
    yield
    structlog.reset_defaults()
    logging.getLogger("erlc").setLevel(logging.NOTSET)


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Dispatcher timing varies
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
