# src/erlc/transport.py
"""HTTP transport for dispatched requests.

Executes one PendingRequest with httpx, records the rate-limit headers of
every response in the RateLimitRegistry, and turns the outcome into
either the raw response bytes or an ErlcError.
"""

from __future__ import annotations

import json
import math
import threading
import time
from typing import Any

import httpx

from erlc.core.config import DEFAULT_BASE_URL
from erlc.core.logging import get_logger
from erlc.core.queue import PendingRequest
from erlc.core.rate_limit import RateLimitRegistry
from erlc.errors import HTTPError, TransportError

logger = get_logger(__name__)

REMAINING_HEADER = "X-RateLimit-Remaining"
RETRY_AFTER_HEADER = "Retry-After"
SERVER_KEY_HEADER = "Server-Key"
GLOBAL_KEY_HEADER = "Authorization"


def parse_remaining(value: str | None) -> int:
    """Parse X-RateLimit-Remaining; missing or malformed reads as 0."""
    if value is None:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_retry_after(value: str | None) -> float:
    """Parse Retry-After as seconds; missing, malformed or HTTP-date reads as 0."""
    if value is None:
        return 0.0
    try:
        seconds = float(value.strip())
    except ValueError:
        return 0.0
    if not math.isfinite(seconds) or seconds < 0:
        return 0.0
    return seconds


def encode_body(body: Any) -> bytes | None:
    """JSON-encode a request body (None means no body).

    Raises:
        TransportError: If the body is not JSON serializable
    """
    if body is None:
        return None
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise TransportError(f"Request body is not JSON serializable: {e}") from e


class Transport:
    """Executes requests against the API and feeds the rate limit registry.

    Credentials are opaque strings held behind a lock and read fresh for
    every request, so set_global_key()/set_server_key() affect all
    dispatches that start after the call.

    Example:
        registry = RateLimitRegistry()
        transport = Transport(registry, server_key="abc")

        payload = transport.execute(PendingRequest("GET", "server"))
        registry.get("server")  # populated from the response headers
    """

    def __init__(
        self,
        registry: RateLimitRegistry,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        global_key: str | None = None,
        server_key: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            registry: Registry that receives the rate limit of every response
            base_url: API root that endpoints are appended to
            timeout: Request timeout in seconds
            global_key: Initial Authorization header value
            server_key: Initial Server-Key header value
            client: Pre-built httpx.Client (the transport takes ownership)
        """
        self._registry = registry
        self._base_url = base_url
        self._global_key = global_key
        self._server_key = server_key
        self._key_lock = threading.Lock()
        # httpx.Client is thread-safe; workers share its connection pool
        self._client = client if client is not None else httpx.Client(timeout=timeout, follow_redirects=False)

    @property
    def registry(self) -> RateLimitRegistry:
        return self._registry

    def set_global_key(self, key: str | None) -> None:
        with self._key_lock:
            self._global_key = key or None

    def set_server_key(self, key: str | None) -> None:
        with self._key_lock:
            self._server_key = key or None

    def build_headers(self) -> dict[str, str]:
        """Headers for the next request, including whichever keys are set."""
        headers = {"Content-Type": "application/json"}
        with self._key_lock:
            if self._server_key:
                headers[SERVER_KEY_HEADER] = self._server_key
            if self._global_key:
                headers[GLOBAL_KEY_HEADER] = self._global_key
        return headers

    def resolve_url(self, endpoint: str) -> str:
        """Join the API root with an endpoint path."""
        return f"{self._base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def execute(self, request: PendingRequest) -> bytes:
        """Perform the network call for one request.

        Rate-limit headers are recorded for every response that arrives,
        before the status is inspected.

        Args:
            request: The dequeued request

        Returns:
            Raw response body of a 200 response

        Raises:
            TransportError: If the body can't be encoded or no response
                was received
            HTTPError: If the response status is not 200
        """
        content = encode_body(request.body)
        url = self.resolve_url(request.endpoint)
        start = time.perf_counter()

        try:
            response = self._client.request(
                request.method,
                url,
                content=content,
                headers=self.build_headers(),
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error(
                "transport_error",
                method=request.method,
                endpoint=request.endpoint,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(f"{request.method} {request.endpoint} failed: {e}") from e

        latency_ms = (time.perf_counter() - start) * 1000
        remaining = parse_remaining(response.headers.get(REMAINING_HEADER))
        retry_after = parse_retry_after(response.headers.get(RETRY_AFTER_HEADER))
        self._registry.record_limit(request.endpoint, remaining, retry_after)

        logger.debug(
            "request_completed",
            method=request.method,
            endpoint=request.endpoint,
            status_code=response.status_code,
            remaining=remaining,
            retry_after=retry_after,
            latency_ms=round(latency_ms, 2),
        )

        if response.status_code != 200:
            logger.warning(
                "http_error",
                method=request.method,
                endpoint=request.endpoint,
                status_code=response.status_code,
            )
            raise HTTPError(response.status_code, response.text)

        return response.content

    def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        self._client.close()
