# src/erlc/dispatcher.py
"""Background dispatcher that turns queued requests into network calls.

Manages per-endpoint dispatch while:
- Keeping strict submission order within each endpoint
- Deferring endpoints whose server-signalled budget is exhausted
- Running calls to different endpoints concurrently on a worker pool
- Never holding a lock across a network call
- Delivering exactly one result to every submitted request
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from erlc.core.logging import get_logger
from erlc.core.queue import PendingRequest, RequestQueue
from erlc.errors import DispatcherStoppedError, ErlcError
from erlc.transport import Transport

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.025


def normalize_endpoint(endpoint: str) -> str:
    """Strip surrounding slashes so "/server/" and "server" share a queue.

    Raises:
        ValueError: If nothing is left after stripping
    """
    normalized = endpoint.strip().strip("/")
    if not normalized:
        raise ValueError(f"Endpoint must be a non-empty path, got {endpoint!r}")
    return normalized


class Dispatcher:
    """Rate-limit-aware request dispatcher.

    One background thread scans the request queue. For every endpoint that
    has pending work, is not throttled and has no request already in
    flight, it dequeues the head request and hands it to a worker thread,
    which executes it through the Transport and completes the request's
    Future.

    Allowing at most one in-flight request per endpoint gives two
    guarantees: requests to the same endpoint execute in submission order,
    and the rate limit recorded from request N is visible before request
    N+1 is considered. Endpoints never wait on each other.

    When nothing is eligible the loop waits on a condition with the poll
    interval as timeout. The condition is signalled on enqueue and on
    every completion, so the interval only bounds how late a throttle
    expiry is noticed.

    Usage:
        dispatcher = Dispatcher(transport)
        dispatcher.ensure_running()

        payload = dispatcher.submit("GET", "server")   # blocks

        future = dispatcher.submit_async("GET", "server/players")
        players = future.result(timeout=10)

        dispatcher.stop()
    """

    def __init__(
        self,
        transport: Transport,
        *,
        queue: RequestQueue | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_workers: int = 4,
    ) -> None:
        """Initialize dispatcher (the loop is not started).

        Args:
            transport: Executes requests and records their rate limits
            queue: Pending request store (a fresh one if None)
            poll_interval: Seconds to wait between scans when idle
            max_workers: Maximum requests executing at once (each to a
                different endpoint)

        Raises:
            ValueError: If poll_interval is not positive or max_workers < 1
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self._transport = transport
        self._registry = transport.registry
        self._queue = queue if queue is not None else RequestQueue()
        self._poll_interval = poll_interval
        self._max_workers = max_workers

        # Guards _in_flight, _deferred and the counters
        self._state_lock = threading.Lock()
        self._in_flight: set[str] = set()
        # Endpoints already reported as deferred, so each throttle window
        # is logged once rather than once per scan
        self._deferred: set[str] = set()
        self._dispatched = 0
        self._succeeded = 0
        self._failed = 0
        self._deferrals = 0

        self._wakeup = threading.Condition()
        self._signalled = False

        # Guards start/stop so two callers can't start competing loops
        self._lifecycle_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._pool: ThreadPoolExecutor | None = None
        self._stop_event: threading.Event | None = None

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    @property
    def is_running(self) -> bool:
        with self._lifecycle_lock:
            return self._thread is not None and self._thread.is_alive()

    def ensure_running(self) -> bool:
        """Start the background loop unless one is already running.

        Safe to call any number of times from any thread: at most one loop
        runs per dispatcher. A loop that was stopped (or whose thread died)
        is replaced by a fresh one.

        Returns:
            True if this call started a loop, False if one was running
        """
        with self._lifecycle_lock:
            if self._thread is not None and self._thread.is_alive():
                return False

            stop_event = threading.Event()
            pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="erlc-worker")
            thread = threading.Thread(
                target=self._run,
                args=(stop_event, pool),
                name="erlc-dispatcher",
                daemon=True,
            )
            self._stop_event = stop_event
            self._pool = pool
            self._thread = thread
            thread.start()

        logger.info(
            "dispatcher_started",
            poll_interval_ms=self._poll_interval * 1000,
            max_workers=self._max_workers,
        )
        return True

    def stop(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Stop the loop and fail every request still queued.

        Requests already executing finish normally (when wait is True).
        Queued requests receive DispatcherStoppedError so no caller stays
        blocked. ensure_running() may be called afterwards to start again.

        Args:
            wait: Join the loop thread and wait for in-flight requests
            timeout: Maximum seconds to wait for the loop thread
        """
        with self._lifecycle_lock:
            thread, pool, stop_event = self._thread, self._pool, self._stop_event
            self._thread = None
            self._pool = None
            self._stop_event = None

        if thread is None or pool is None or stop_event is None:
            return

        stop_event.set()
        self._signal()
        if wait:
            thread.join(timeout)
        pool.shutdown(wait=wait)

        with self._state_lock:
            self._deferred.clear()

        abandoned = self._queue.drain()
        for request in abandoned:
            if request.result.set_running_or_notify_cancel():
                self._deliver(request, error=DispatcherStoppedError(request.endpoint))

        logger.info("dispatcher_stopped", abandoned_requests=len(abandoned))

    def submit_async(self, method: str, endpoint: str, body: Any = None) -> Future[bytes]:
        """Queue a request and return its result Future without blocking.

        The Future resolves to the raw response bytes, or raises the
        ErlcError the request failed with. Cancelling the Future before
        dispatch removes the request from consideration; once dispatched it
        can no longer be cancelled.

        The request waits in the queue until a loop is running; see
        ensure_running().

        Raises:
            ValueError: If endpoint or method is empty
        """
        if not method.strip():
            raise ValueError("method must be non-empty")
        request = PendingRequest(
            method=method.strip().upper(),
            endpoint=normalize_endpoint(endpoint),
            body=body,
        )
        self._queue.enqueue(request)
        self._signal()
        return request.result

    def submit(self, method: str, endpoint: str, body: Any = None, *, timeout: float | None = None) -> bytes:
        """Queue a request and block until its result arrives.

        Args:
            method: HTTP method
            endpoint: Path relative to the API root
            body: JSON-serializable payload or None
            timeout: Optional caller-side wait limit in seconds. Expiry
                raises TimeoutError but does not withdraw the request.

        Returns:
            Raw response body

        Raises:
            ErlcError: Whatever the request failed with
            TimeoutError: If timeout elapsed first
        """
        return self.submit_async(method, endpoint, body).result(timeout=timeout)

    def get_stats(self) -> dict[str, int]:
        """Counters for observability (thread-safe snapshot)."""
        with self._state_lock:
            return {
                "dispatched": self._dispatched,
                "succeeded": self._succeeded,
                "failed": self._failed,
                "deferrals": self._deferrals,
                "in_flight": len(self._in_flight),
                "pending": self._queue.pending_count(),
            }

    def _signal(self) -> None:
        with self._wakeup:
            self._signalled = True
            self._wakeup.notify_all()

    def _run(self, stop_event: threading.Event, pool: ThreadPoolExecutor) -> None:
        while not stop_event.is_set():
            with self._wakeup:
                self._signalled = False

            self._dispatch_eligible(stop_event, pool)

            # A signal raised during the scan means new work or a freed
            # endpoint; rescan immediately instead of sleeping
            with self._wakeup:
                if not self._signalled and not stop_event.is_set():
                    self._wakeup.wait(timeout=self._poll_interval)

    def _dispatch_eligible(self, stop_event: threading.Event, pool: ThreadPoolExecutor) -> int:
        """Dispatch the head request of every eligible endpoint.

        Returns:
            Number of requests handed to workers
        """
        dispatched = 0
        for endpoint in self._queue.endpoints():
            if stop_event.is_set():
                break

            request = self._claim(endpoint)
            if request is None:
                continue

            # Marks the future RUNNING; False means the caller cancelled it
            if not request.result.set_running_or_notify_cancel():
                self._release(endpoint)
                logger.debug("request_cancelled", endpoint=endpoint, method=request.method)
                continue

            try:
                pool.submit(self._execute, request)
            except RuntimeError:
                # Pool already shut down by stop() or interpreter exit
                self._release(endpoint)
                self._deliver(request, error=DispatcherStoppedError(endpoint))
                break

            dispatched += 1

        return dispatched

    def _claim(self, endpoint: str) -> PendingRequest | None:
        """Dequeue the endpoint's head request and mark the endpoint in flight.

        The in-flight check, throttle check and dequeue happen under one
        short critical section so that even a loop being replaced can't
        dispatch the same endpoint twice.
        """
        with self._state_lock:
            if endpoint in self._in_flight:
                return None

            if self._registry.is_throttled(endpoint):
                if endpoint not in self._deferred:
                    self._deferred.add(endpoint)
                    self._deferrals += 1
                    logger.debug(
                        "dispatch_deferred",
                        endpoint=endpoint,
                        seconds_until_reset=round(self._registry.seconds_until_reset(endpoint), 3),
                        pending=self._queue.pending_count(endpoint),
                    )
                return None

            request = self._queue.dequeue_next(endpoint)
            if request is None:
                return None

            self._deferred.discard(endpoint)
            self._in_flight.add(endpoint)
            self._dispatched += 1
            return request

    def _release(self, endpoint: str) -> None:
        with self._state_lock:
            self._in_flight.discard(endpoint)
        self._signal()

    def _execute(self, request: PendingRequest) -> None:
        """Worker body: run one request and complete its Future."""
        payload: bytes | None = None
        error: BaseException | None = None
        try:
            payload = self._transport.execute(request)
        except ErlcError as e:
            error = e
        except Exception as e:
            # Anything else is a bug, but it still belongs to this caller
            # and must not take down the worker
            logger.exception(
                "request_failed_unexpectedly",
                endpoint=request.endpoint,
                method=request.method,
                error_type=type(e).__name__,
            )
            error = e
        finally:
            with self._state_lock:
                if error is None:
                    self._succeeded += 1
                else:
                    self._failed += 1
            self._release(request.endpoint)

        self._deliver(request, payload=payload, error=error)

    @staticmethod
    def _deliver(
        request: PendingRequest,
        *,
        payload: bytes | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Complete the request's Future (raises if already completed)."""
        future = request.result
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(payload if payload is not None else b"")
