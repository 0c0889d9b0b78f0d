# src/erlc/core/queue.py
"""Per-endpoint FIFO queues of requests waiting for dispatch.

Results travel back to callers through a single-use Future attached to
each request, so the queue itself never sees a result. Requests to the
same endpoint leave in the order they arrived; there is no ordering
between endpoints.
"""

from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class PendingRequest:
    """A submitted call awaiting dispatch.

    Attributes:
        method: HTTP method (e.g. "GET", "POST")
        endpoint: Path relative to the API root (e.g. "server/players")
        body: JSON-serializable payload, or None for no body
        result: Future completed exactly once with the response bytes or
            the error raised while executing the call
    """

    method: str
    endpoint: str
    body: Any = None
    result: Future[bytes] = field(default_factory=Future, repr=False)


class RequestQueue:
    """Thread-safe map of endpoint -> deque of PendingRequest.

    Callers enqueue from any thread; the dispatcher dequeues. Every
    operation holds the lock only for the dict/deque mutation itself.
    Empty deques are dropped so endpoints() only lists endpoints with
    work.
    """

    def __init__(self) -> None:
        # dict preserves insertion order, which gives scans a stable
        # first-seen endpoint order
        self._queues: dict[str, deque[PendingRequest]] = {}
        self._lock = threading.Lock()

    def enqueue(self, request: PendingRequest) -> None:
        """Append a request to the back of its endpoint's queue."""
        with self._lock:
            queue = self._queues.get(request.endpoint)
            if queue is None:
                queue = self._queues[request.endpoint] = deque()
            queue.append(request)

    def dequeue_next(self, endpoint: str) -> PendingRequest | None:
        """Remove and return the oldest request for an endpoint.

        Returns:
            The request, or None if nothing is pending for the endpoint
        """
        with self._lock:
            queue = self._queues.get(endpoint)
            if not queue:
                return None
            request = queue.popleft()
            if not queue:
                del self._queues[endpoint]
            return request

    def endpoints(self) -> list[str]:
        """Snapshot of endpoints that currently have pending requests."""
        with self._lock:
            return list(self._queues)

    def pending_count(self, endpoint: str | None = None) -> int:
        """Number of pending requests for one endpoint, or for all of them."""
        with self._lock:
            if endpoint is not None:
                queue = self._queues.get(endpoint)
                return len(queue) if queue else 0
            return sum(len(q) for q in self._queues.values())

    def drain(self) -> list[PendingRequest]:
        """Remove and return every pending request, per-endpoint order kept."""
        with self._lock:
            drained = [request for queue in self._queues.values() for request in queue]
            self._queues.clear()
            return drained

    def __len__(self) -> int:
        return self.pending_count()
