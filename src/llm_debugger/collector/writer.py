# src/llm_debugger/collector/writer.py
"""Batch parsing and append-only log file writing for the collector.

Every received entry becomes one line (error entries are followed by their
stack) in the form the log reader expects:

    [2025-01-01T12:00:00.000Z] ERROR: Something broke
"""

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _compact(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    except ValueError:
        return repr(value)


def format_entry(entry: Mapping[str, Any]) -> str:
    """Render one entry as a log line.

    Console entries (and anything without a recognised type) keep the
    ``[timestamp] LEVEL: message`` form, with LEVEL defaulting to DEBUG.
    Other types render their salient fields.
    """
    prefix = f"[{_text(entry.get('timestamp'))}]"
    entry_type = entry.get("type")

    if entry_type == "network":
        method = _text(entry.get("method")).upper()
        url = _text(entry.get("url"))
        sub_type = entry.get("subType")
        if sub_type == "fetch_error":
            return f"{prefix} NETWORK: {method} {url} failed: {_text(entry.get('error'))}"
        if sub_type == "fetch_request":
            request_body = entry.get("requestBody")
            suffix = f" {request_body}" if request_body else ""
            return f"{prefix} NETWORK: {method} {url}{suffix}"
        line = f"{prefix} NETWORK: {method} {url} -> {_text(entry.get('status'))}"
        if entry.get("body") is not None:
            line = f"{line} {_compact(entry['body'])}"
        return line

    if entry_type in ("resourceCheck", "resource"):
        tag_name = _text(entry.get("tagName")).upper()
        url = entry.get("url") or entry.get("originalUrl")
        line = f"{prefix} RESOURCE: {tag_name} {_text(url)} ({_text(entry.get('status'))})"
        if entry.get("error"):
            line = f"{line}: {entry['error']}"
        return line

    if entry_type == "error":
        line = f"{prefix} ERROR: {_text(entry.get('message'))}"
        stack = entry.get("stack")
        if stack:
            line = f"{line}\n{_text(stack).rstrip()}"
        return line

    level = _text(entry.get("level") or "DEBUG").upper()
    return f"{prefix} {level}: {_text(entry.get('message'))}"


def _as_entry(item: Any) -> dict[str, Any]:
    if isinstance(item, dict):
        return item
    return {"message": _compact(item)}


def _parse_text_line(line: str) -> dict[str, Any]:
    try:
        item = json.loads(line)
    except ValueError:
        return {"message": line}
    return _as_entry(item)


def parse_batch(body: bytes, content_type: str | None) -> list[dict[str, Any]]:
    """Parse a POSTed batch into entry mappings.

    Accepts:
    - the JSON envelope ``{"messages": [...]}``
    - a single JSON object (one entry)
    - a JSON array of entries
    - text/plain with one JSON entry per line; lines that are not JSON
      become ``{"message": line}``

    Raises:
        ValueError: If a body declared as JSON does not parse
    """
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return []

    declared_json = content_type is not None and "json" in content_type.lower()
    try:
        document = json.loads(text)
    except ValueError:
        if declared_json:
            raise
        return [_parse_text_line(line) for line in text.splitlines() if line.strip()]

    if isinstance(document, dict):
        messages = document.get("messages")
        if isinstance(messages, list):
            return [_as_entry(item) for item in messages]
        return [document]
    if isinstance(document, list):
        return [_as_entry(item) for item in document]
    return [{"message": _compact(document)}]


class LogFileWriter:
    """Append-only, line-buffered writer shared by concurrent requests.

    Thread Safety:
        write_entries() runs in the server's thread pool; a lock keeps the
        lines of one batch together.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file = path.open("a", encoding="utf-8", buffering=1)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def write_entries(self, entries: Iterable[Mapping[str, Any]]) -> int:
        """Append entries to the file.

        Returns:
            Number of entries written.

        Raises:
            ValueError: If the writer has been closed
            OSError: If the write fails
        """
        lines = [format_entry(entry) + "\n" for entry in entries]
        with self._lock:
            if self._closed:
                raise ValueError(f"Log file writer for {self._path} is closed")
            self._file.writelines(lines)
            self._file.flush()
        return len(lines)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._file.close()
        logger.debug("Log file closed", log_file=str(self._path))
