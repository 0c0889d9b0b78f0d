# src/erlc/client.py
"""Caller-facing client for the ER:LC API.

Wires the rate limit registry, transport and dispatcher together and
exposes blocking request methods plus the credential setters. Every call
goes through the dispatcher, so concurrent callers share one view of the
server's rate limits.
"""

from __future__ import annotations

import json
import threading
from types import TracebackType
from typing import Any

import httpx

from erlc.core.clock import Clock
from erlc.core.config import ErlcSettings
from erlc.core.logging import get_logger, set_log_level
from erlc.core.rate_limit import RateLimitRegistry
from erlc.dispatcher import Dispatcher
from erlc.errors import ClientClosedError, DecodeError
from erlc.transport import Transport

logger = get_logger(__name__)


def decode_json(payload: bytes) -> Any:
    """Decode a successful response body.

    Raises:
        DecodeError: If the payload is not valid UTF-8 JSON
    """
    try:
        return json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Response is not valid JSON: {e}", payload) from e


class ErlcClient:
    """Rate-limited client for the ER:LC private server API.

    Constructing a client does not start any thread. The dispatcher loop
    starts when a key is set, on the first request, or on start().

    Example:
        with ErlcClient() as client:
            client.set_server_key(os.environ["ERLC_SERVER_KEY"])
            server = client.server()
            print(server["Name"])

            players = client.request_json("GET", "server/players")
            client.request("POST", "server/command", {"command": ":h Hello"})
    """

    def __init__(
        self,
        settings: ErlcSettings | None = None,
        *,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize client.

        Args:
            settings: Client settings (defaults if None). Keys present in
                settings are applied without starting the dispatcher.
            clock: Time source for rate-limit windows (tests)
            http_client: Pre-built httpx.Client, owned by the client
        """
        self._settings = settings if settings is not None else ErlcSettings()
        self._registry = RateLimitRegistry(clock=clock)
        self._transport = Transport(
            self._registry,
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
            global_key=self._settings.global_key,
            server_key=self._settings.server_key,
            client=http_client,
        )
        self._dispatcher = Dispatcher(
            self._transport,
            poll_interval=self._settings.poll_interval_seconds,
            max_workers=self._settings.max_workers,
        )
        # Held while checking _closed and handing work to the dispatcher, so
        # close() can't interleave with a request and restart the loop
        self._lifecycle_lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: ErlcSettings) -> ErlcClient:
        """Build a client, apply settings.logging.level and start dispatching
        if settings carry a key.

        json_output only takes effect through configure_logging(), which is
        left to the application.
        """
        set_log_level(settings.logging.level)
        client = cls(settings)
        if settings.global_key or settings.server_key:
            client.start()
        return client

    @property
    def settings(self) -> ErlcSettings:
        return self._settings

    @property
    def rate_limits(self) -> RateLimitRegistry:
        return self._registry

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def closed(self) -> bool:
        return self._closed

    def set_global_key(self, key: str) -> None:
        """Set the Authorization header for all future requests.

        Raises:
            ClientClosedError: If close() was called
        """
        with self._lifecycle_lock:
            if self._closed:
                raise ClientClosedError()
            self._transport.set_global_key(key)
            logger.info("global_key_set", key="[HIDDEN]")
            self._dispatcher.ensure_running()

    def set_server_key(self, key: str) -> None:
        """Set the Server-Key header for all future requests.

        Raises:
            ClientClosedError: If close() was called
        """
        with self._lifecycle_lock:
            if self._closed:
                raise ClientClosedError()
            self._transport.set_server_key(key)
            logger.info("server_key_set", key="[HIDDEN]")
            self._dispatcher.ensure_running()

    def set_log_level(self, level: str) -> None:
        """Change the package log level (DEBUG, INFO, WARNING, ERROR)."""
        set_log_level(level)

    def start(self) -> bool:
        """Start the dispatcher loop if it isn't running.

        Raises:
            ClientClosedError: If close() was called
        """
        with self._lifecycle_lock:
            if self._closed:
                raise ClientClosedError()
            return self._dispatcher.ensure_running()

    def request(self, method: str, endpoint: str, body: Any = None, *, timeout: float | None = None) -> bytes:
        """Send a request through the dispatcher and wait for the raw body.

        Args:
            method: HTTP method
            endpoint: Path relative to the API root (e.g. "server/players")
            body: JSON-serializable payload or None
            timeout: Optional caller-side wait limit in seconds

        Returns:
            Raw body of the 200 response

        Raises:
            TransportError: No response was received
            HTTPError: The server answered with a non-200 status
            ClientClosedError: close() was called before the request
            DispatcherStoppedError: close() ran while it was still queued
            TimeoutError: timeout elapsed before a result arrived
        """
        with self._lifecycle_lock:
            if self._closed:
                raise ClientClosedError()
            self._dispatcher.ensure_running()
            future = self._dispatcher.submit_async(method, endpoint, body)
        return future.result(timeout=timeout)

    def request_json(self, method: str, endpoint: str, body: Any = None, *, timeout: float | None = None) -> Any:
        """Like request(), but decodes the JSON body.

        Raises:
            DecodeError: The 200 response did not contain valid JSON
        """
        return decode_json(self.request(method, endpoint, body, timeout=timeout))

    def server(self, *, timeout: float | None = None) -> dict[str, Any]:
        """Fetch the server status object (GET server).

        Raises:
            DecodeError: The response is not a JSON object
        """
        payload = self.request("GET", "server", timeout=timeout)
        result = decode_json(payload)
        if not isinstance(result, dict):
            raise DecodeError(f"Expected a JSON object from 'server', got {type(result).__name__}", payload)
        return result

    def close(self) -> None:
        """Stop dispatching (queued requests fail) and close connections.

        Safe to call more than once. Afterwards every request, key setter
        and start() raises ClientClosedError.
        """
        with self._lifecycle_lock:
            if self._closed:
                return
            self._closed = True
        self._dispatcher.stop()
        self._transport.close()

    def __enter__(self) -> ErlcClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
