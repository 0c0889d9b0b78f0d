"""Test doubles and polling helpers shared across the test suite."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from erlc.core.queue import PendingRequest
from erlc.core.rate_limit import RateLimitRegistry
from erlc.errors import ErlcError

# Upper bound for any wait on a dispatcher thread in tests
RESULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class ExecutedCall:
    """One call observed by RecordingTransport."""

    method: str
    endpoint: str
    body: object
    at: float  # clock time when execution started


class ScriptedError(ErlcError):
    """Error injected through RecordingTransport.failures."""


class RecordingTransport:
    """Transport double that never touches the network.

    Attributes:
        calls: Every executed request, in execution order
        responses: endpoint -> payload returned for that endpoint
        failures: endpoint -> exception raised for that endpoint
        limits: endpoint -> (remaining, reset_delay) recorded after each call
    """

    def __init__(self, registry: RateLimitRegistry) -> None:
        self.registry = registry
        self.calls: list[ExecutedCall] = []
        self.responses: dict[str, bytes] = {}
        self.failures: dict[str, BaseException] = {}
        self.limits: dict[str, tuple[int, float]] = {}
        self._gates: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def hold(self, endpoint: str) -> threading.Event:
        """Make calls to endpoint block until the returned event is set."""
        gate = threading.Event()
        self._gates[endpoint] = gate
        return gate

    def execute(self, request: PendingRequest) -> bytes:
        with self._lock:
            self.calls.append(ExecutedCall(request.method, request.endpoint, request.body, self.registry.clock.monotonic()))
        gate = self._gates.get(request.endpoint)
        if gate is not None:
            gate.wait(RESULT_TIMEOUT)
        if request.endpoint in self.limits:
            remaining, reset_delay = self.limits[request.endpoint]
            self.registry.record_limit(request.endpoint, remaining, reset_delay)
        failure = self.failures.get(request.endpoint)
        if failure is not None:
            raise failure
        return self.responses.get(request.endpoint, f"{request.method} {request.endpoint}".encode())

    def executed(self, endpoint: str | None = None) -> list[ExecutedCall]:
        with self._lock:
            return [c for c in self.calls if endpoint is None or c.endpoint == endpoint]


def wait_for(predicate: Callable[[], bool], timeout: float = RESULT_TIMEOUT) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
