# src/llm_debugger/errors.py
"""Debugger-specific exceptions.

Exceptions are raised only at configuration seams: resolving settings,
discovering producers, configuring a producer. Runtime failures (an entry
that does not fit, an entry that cannot be serialized, a batch that cannot
be delivered) are NOT exceptions; they are reported on the diagnostic
channel and the pipeline carries on.
"""


class DebuggerError(Exception):
    """Base class for all debugger errors."""


class ConfigurationError(DebuggerError):
    """Raised when configuration cannot be resolved into a runnable session.

    A session that hits this during start() stays Stopped.

    Attributes:
        source: What was being configured (a settings field, "settings",
            or a producer name)
        message: Human-readable error description
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(f"Invalid configuration for '{source}': {message}")


class SnifferError(ConfigurationError):
    """Raised when a producer cannot be discovered or rejects its options.

    This is raised during discovery and configure(), NOT while a producer is
    running. A running producer must never raise into the host.
    """

    def __init__(self, sniffer_name: str, message: str) -> None:
        self.sniffer_name = sniffer_name
        super().__init__(sniffer_name, message)
