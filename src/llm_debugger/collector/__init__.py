# src/llm_debugger/collector/__init__.py
"""Log collector: receives batches over HTTP and appends them to a file."""

from llm_debugger.collector.server import CollectorServer, create_app
from llm_debugger.collector.writer import LogFileWriter, format_entry, parse_batch

__all__ = [
    "CollectorServer",
    "LogFileWriter",
    "create_app",
    "format_entry",
    "parse_batch",
]
