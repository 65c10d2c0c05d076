# src/llm_debugger/core/logging.py
"""Structured logging configuration for the debugger and collector.

Architecture:
    Both structlog and stdlib logging are routed through the same
    ProcessorFormatter, so a record from logging.getLogger(__name__) and an
    event from structlog.get_logger(__name__) render identically.

    The debugger's own events are logged under ``llm_debugger.*``. The
    console producer ignores that namespace, which keeps the diagnostic
    channel from feeding back into the buffer it reports on.

    The debugger's own HTTP requests (batch posts, resource probes) log
    through httpx, outside that namespace. They run inside
    debugger_traffic(), a structlog context variable the console producer
    also checks, so a send never produces an entry for the next send.
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Emit a line per request/connection at DEBUG/INFO; capped at WARNING.
_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "uvicorn.access",
)

DEBUGGER_LOGGER_PREFIX = "llm_debugger"
_TRAFFIC_KEY = "llm_debugger_traffic"


def is_debugger_logger(name: str) -> bool:
    """True for loggers that belong to the debugger itself."""
    return name == DEBUGGER_LOGGER_PREFIX or name.startswith(DEBUGGER_LOGGER_PREFIX + ".")


def debugger_traffic() -> AbstractContextManager[Any]:
    """Mark records logged inside the block as the debugger's own traffic."""
    return structlog.contextvars.bound_contextvars(**{_TRAFFIC_KEY: True})


def in_debugger_traffic() -> bool:
    """True while the current context is inside debugger_traffic()."""
    return structlog.contextvars.get_contextvars().get(_TRAFFIC_KEY) is True


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove ProcessorFormatter bookkeeping from output.

    ProcessorFormatter always adds _record and _from_structlog, so a
    KeyError here means the integration is broken.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging.

    Replaces the root logger's handlers, so call this before installing the
    debugger if the console producer is meant to watch the root logger.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

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
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching would pin loggers to the first configuration; tests reconfigure
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
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

    # Never less restrictive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
