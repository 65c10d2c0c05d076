# src/llm_debugger/sniffers/__init__.py
"""Built-in entry producers.

Available producers (by configured name):
- console: ConsoleSniffer, log records from a logger
- fetch: NetworkSniffer, traffic of instrumented httpx clients
- resourceCheck: ResourceCheckSniffer, broken script/stylesheet references
- error: ErrorSniffer, uncaught exceptions and unhandled loop errors

Plugin registration:
    Producers are registered via the llm_debugger_get_sniffers hook.
    BuiltinSniffersPlugin registers all built-in producers.
"""

from llm_debugger.sniffers.console import ConsoleSniffer
from llm_debugger.sniffers.errors import ErrorSniffer
from llm_debugger.sniffers.hookspecs import hookimpl
from llm_debugger.sniffers.network import NetworkSniffer
from llm_debugger.sniffers.resources import ResourceCheckSniffer


class BuiltinSniffersPlugin:
    """Plugin that registers built-in producers."""

    @hookimpl
    def llm_debugger_get_sniffers(self) -> list[type]:
        """Return built-in producer classes."""
        return [ConsoleSniffer, NetworkSniffer, ResourceCheckSniffer, ErrorSniffer]


__all__ = [
    "BuiltinSniffersPlugin",
    "ConsoleSniffer",
    "ErrorSniffer",
    "NetworkSniffer",
    "ResourceCheckSniffer",
]
