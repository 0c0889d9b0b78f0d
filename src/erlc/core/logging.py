# src/erlc/core/logging.py
"""Structured logging configuration for erlc.

Uses structlog routed through stdlib logging. ProcessorFormatter sends
stdlib records (httpx, httpcore, application code using
logging.getLogger) through the same processor chain as structlog events,
so all output shares one format (console or JSON).

The library never calls configure_logging() on import; applications opt
in. set_log_level() works either way: it sets the package logger level,
and when structlog still prints directly (not yet routed through stdlib)
it also installs a level-filtering wrapper.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Root logger name for every module in the package.
PACKAGE_LOGGER = "erlc"

# httpx logs one INFO line per request, httpcore logs connection details
# at DEBUG. Neither is useful at the configured application level.
_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "httpcore.connection",
    "httpcore.http11",
)

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter bookkeeping keys from rendered output."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name not in _LEVELS:
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(_LEVELS)}")
    return int(getattr(logging, name))


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).

    Raises:
        ValueError: If level is not one of the supported names.
    """
    log_level = _resolve_level(level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Uncached so tests can reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)

    # Never make noisy loggers less restrictive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def _routed_through_stdlib() -> bool:
    return isinstance(structlog.get_config()["logger_factory"], structlog.stdlib.LoggerFactory)


def set_log_level(level: str) -> None:
    """Change the minimum level of erlc log events.

    After configure_logging() only the package logger changes. Before it,
    structlog bypasses stdlib levels, so the filter goes on structlog's
    wrapper class instead (this applies to every structlog logger in the
    process, not just erlc).

    Raises:
        ValueError: If level is not one of the supported names.
    """
    log_level = _resolve_level(level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)
    if not _routed_through_stdlib():
        structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(log_level))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
