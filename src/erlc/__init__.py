"""
erlc: A library providing dynamic ratelimiting, custom functions, and easy
access to the ER:LC API.

Requests are queued per endpoint and dispatched by a background thread
that honours the rate limits the server reports in its response headers.
"""

from erlc.client import ErlcClient, decode_json
from erlc.core.config import ErlcSettings, LoggingSettings, load_settings
from erlc.core.logging import configure_logging
from erlc.dispatcher import Dispatcher
from erlc.errors import (
    ClientClosedError,
    DecodeError,
    DispatcherStoppedError,
    ErlcError,
    HTTPError,
    TransportError,
)

__version__ = "2.0.0"

__all__ = [
    "ClientClosedError",
    "DecodeError",
    "Dispatcher",
    "DispatcherStoppedError",
    "ErlcClient",
    "ErlcError",
    "ErlcSettings",
    "HTTPError",
    "LoggingSettings",
    "TransportError",
    "configure_logging",
    "decode_json",
    "load_settings",
]
