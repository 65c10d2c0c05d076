# src/llm_debugger/core/__init__.py
"""Core infrastructure: configuration and logging."""

from llm_debugger.core.config import (
    CollectorSettings,
    DebuggerSettings,
    resolve_settings,
)
from llm_debugger.core.logging import configure_logging, get_logger

__all__ = [
    "CollectorSettings",
    "DebuggerSettings",
    "configure_logging",
    "get_logger",
    "resolve_settings",
]
