# src/llm_debugger/sniffers/hookspecs.py
"""pluggy hook specifications for entry producers (sniffers).

Producers implement these hooks to register themselves with the debugger.
create_session() calls them to discover the available producers.

Usage (implementing a producer plugin):
    from llm_debugger.sniffers.hookspecs import hookimpl

    class MySnifferPlugin:
        @hookimpl
        def llm_debugger_get_sniffers(self):
            return [MySniffer]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from llm_debugger.pipeline.protocols import SnifferProtocol

PROJECT_NAME = "llm_debugger"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class LLMDebuggerSnifferSpec:
    """Hook specifications for producer plugins."""

    @hookspec
    def llm_debugger_get_sniffers(self) -> list[type["SnifferProtocol"]]:  # type: ignore[empty-body]
        """Return producer classes.

        Called once per create_session(). Each class must be constructible
        without arguments; its ``name`` is what enabled_sources and the
        per-producer options refer to.

        Returns:
            List of producer classes (not instances) implementing
            SnifferProtocol
        """
