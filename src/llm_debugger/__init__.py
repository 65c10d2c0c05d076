"""
llm-debugger: capture a running program's console output, network traffic,
uncaught errors and broken resources, and ship them to a local collector
that appends them to a log file an assistant can read.

    import llm_debugger

    debugger = llm_debugger.install("?level=ERROR,WARNING")
    ...
    debugger.flush()
"""

__version__ = "0.2.0"

from llm_debugger.pipeline.factory import create_session, install  # noqa: E402

__all__ = ["__version__", "create_session", "install"]
