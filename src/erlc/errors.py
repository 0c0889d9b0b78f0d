# src/erlc/errors.py
"""Errors delivered to callers through their result future.

Every failure a caller can see derives from ErlcError. The ``retryable``
flag is advisory: the dispatcher never retries on its own, but callers
wrapping requests in their own retry policy can use it to decide.

Throttle deferral is not represented here. A throttled endpoint only
adds latency; it never fails a request.
"""

from __future__ import annotations

# Statuses worth retrying after the server's Retry-After window.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


class ErlcError(Exception):
    """Base class for all client errors.

    Attributes:
        retryable: Whether the same request might succeed later
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class TransportError(ErlcError):
    """No response was received (connection refused, DNS, timeout, bad request).

    The underlying exception is chained as ``__cause__``. No rate-limit
    state is recorded for these because the server never answered.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class HTTPError(ErlcError):
    """The server answered with a status other than 200.

    Rate-limit headers from the response have already been recorded by
    the time this is raised.

    Attributes:
        status_code: HTTP status returned by the server
        body: Raw response body text
    """

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(
            f"HTTP {status_code}: {body}",
            retryable=status_code in RETRYABLE_STATUS_CODES,
        )
        self.status_code = status_code
        self.body = body


class DecodeError(ErlcError):
    """A 200 response whose payload is not the JSON the caller asked for.

    Attributes:
        payload: Raw response bytes
    """

    def __init__(self, message: str, payload: bytes) -> None:
        super().__init__(message, retryable=False)
        self.payload = payload


class DispatcherStoppedError(ErlcError):
    """The dispatcher was stopped before this request could run."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Dispatcher stopped before request to {endpoint!r} was sent")
        self.endpoint = endpoint


class ClientClosedError(ErlcError):
    """The client was closed; it accepts no further requests or keys."""

    def __init__(self) -> None:
        super().__init__("Client is closed")
