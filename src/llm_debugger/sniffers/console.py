# src/llm_debugger/sniffers/console.py
"""Console producer: captures logging records as console entries.

Python's console is the logging module, so instead of replacing
console.log/warn/error this producer attaches a handler to a logger (the
root logger unless configured otherwise). The host's own handlers keep
working untouched; there is nothing to save and restore.

Records from the debugger's own ``llm_debugger.*`` loggers, and any record
logged inside debugger_traffic() (the httpx lines of batch posts and resource
probes), are filtered out before the handler lock is taken. Neither the
diagnostic channel nor the transport can feed entries back into the buffer.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import ConsoleEntry, utc_timestamp
from llm_debugger.contracts.enums import LogLevel
from llm_debugger.core.logging import in_debugger_traffic, is_debugger_logger
from llm_debugger.errors import SnifferError
from llm_debugger.pipeline.protocols import SubmitFn

logger = structlog.get_logger(__name__)

_KNOWN_OPTIONS = frozenset({"logger"})


def level_for(levelno: int) -> LogLevel:
    """Map a logging level number onto the three captured levels."""
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARNING
    return LogLevel.DEBUG


class _SubmitHandler(logging.Handler):
    def __init__(self, sniffer: ConsoleSniffer) -> None:
        super().__init__(logging.NOTSET)
        self._sniffer = sniffer

    def filter(self, record: logging.LogRecord) -> bool:
        if is_debugger_logger(record.name) or in_debugger_traffic():
            return False
        return bool(super().filter(record))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._sniffer.capture(record)
        except Exception:
            self.handleError(record)


class ConsoleSniffer:
    """Capture log records as ``console`` entries.

    Configuration options:
        logger: Name of the logger to attach to (default: root logger)

    Example configuration:
        sniffers:
          console:
            logger: myapp

    Records still have to pass the attached logger's level, so a root logger
    left at WARNING will never yield DEBUG entries.
    """

    _name = "console"

    def __init__(self) -> None:
        self._logger_name = ""
        self._handler = _SubmitHandler(self)
        self._formatter = logging.Formatter()
        self._submit: SubmitFn | None = None
        self._enabled_levels: frozenset[LogLevel] = frozenset(LogLevel)
        self._attached_to: logging.Logger | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        return self._attached_to is not None

    def configure(self, options: dict[str, Any]) -> None:
        """Apply options.

        Raises:
            SnifferError: If an option is unknown or 'logger' is not a string
        """
        unknown = sorted(set(options) - _KNOWN_OPTIONS)
        if unknown:
            raise SnifferError(self._name, f"Unknown options {unknown}. Valid options: {sorted(_KNOWN_OPTIONS)}")
        logger_name = options.get("logger", "")
        if not isinstance(logger_name, str):
            raise SnifferError(self._name, f"'logger' must be a string, got {type(logger_name).__name__}")
        self._logger_name = logger_name

    def start(self, submit: SubmitFn, config: RuntimeDebuggerConfig) -> None:
        if self.active:
            return
        self._submit = submit
        self._enabled_levels = config.enabled_levels
        target = logging.getLogger(self._logger_name or None)
        target.addHandler(self._handler)
        self._attached_to = target
        logger.debug("Console sniffer attached", logger_name=self._logger_name or "root")

    def stop(self) -> None:
        if self._attached_to is None:
            return
        self._attached_to.removeHandler(self._handler)
        self._attached_to = None
        self._submit = None

    def capture(self, record: logging.LogRecord) -> None:
        """Turn one record into a console entry and submit it."""
        submit = self._submit
        if submit is None:
            return
        level = level_for(record.levelno)
        if level not in self._enabled_levels:
            return
        submit(
            ConsoleEntry(
                timestamp=utc_timestamp(datetime.fromtimestamp(record.created, tz=UTC)),
                level=level,
                message=self._format_message(record),
                file=record.pathname or None,
                line=record.lineno or None,
            )
        )

    def _format_message(self, record: logging.LogRecord) -> str:
        try:
            message = record.getMessage()
        except Exception as e:
            message = f"[Unserializable argument: {e}]"
        if record.exc_info:
            message = f"{message}\n{self._formatter.formatException(record.exc_info)}"
        elif record.exc_text:
            message = f"{message}\n{record.exc_text}"
        if record.stack_info:
            message = f"{message}\n{self._formatter.formatStack(record.stack_info)}"
        return message
