# src/llm_debugger/pipeline/serialization.py
"""Entry and batch encoding.

Entries are serialized once, at admission. A flush only concatenates the
already-encoded strings into a batch body, so nothing is serialized twice
and the byte size the buffer accounted for is exactly what is sent.
"""

import json
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from llm_debugger.contracts.entries import LogEntry, utc_timestamp
from llm_debugger.contracts.enums import DiagnosticKind
from llm_debugger.pipeline.diagnostics import Diagnostics

BatchEncoding = Literal["json", "text"]

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _json_default(value: Any) -> Any:
    """Best-effort conversion for values json cannot encode natively."""
    if isinstance(value, datetime):
        return utc_timestamp(value) if value.tzinfo is not None else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return repr(value)


def _dumps(data: Any) -> str:
    return json.dumps(
        data,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_json_default,
    )


def serialize_entry(entry: LogEntry | Mapping[str, Any], diagnostics: Diagnostics | None = None) -> str:
    """Serialize one entry to compact JSON.

    An entry that cannot be encoded (circular structure, NaN/Infinity) is
    replaced by a placeholder carrying its timestamp and type, so the loss is
    visible in the log instead of silent.

    Args:
        entry: LogEntry or an already-built wire mapping
        diagnostics: Where to report serialization failures

    Returns:
        Compact JSON text of the entry (or of its placeholder).
    """
    data = entry.to_dict() if isinstance(entry, LogEntry) else dict(entry)
    try:
        return _dumps(data)
    except (ValueError, TypeError, RecursionError) as e:
        reason = str(e) or type(e).__name__
        entry_type = data.get("type")
        if diagnostics is not None:
            diagnostics.report(
                DiagnosticKind.SERIALIZATION_FAILURE,
                "Entry could not be serialized, placeholder substituted",
                entry_type=str(entry_type),
                reason=reason,
            )
        timestamp = data.get("timestamp")
        placeholder = {
            "timestamp": str(timestamp) if timestamp is not None else utc_timestamp(),
            "type": str(entry_type) if entry_type is not None else None,
            "message": f"[Unserializable entry: {reason}]",
        }
        return _dumps(placeholder)


def byte_length(text: str) -> int:
    """UTF-8 encoded length of text."""
    return len(text.encode("utf-8"))


def encode_batch(batch: Sequence[str], encoding: BatchEncoding = "json") -> tuple[bytes, str]:
    """Join serialized entries into a request body.

    Args:
        batch: Serialized entries in submission order
        encoding: "json" for the ``{"messages": [...]}`` envelope, "text" for
            newline-joined entries

    Returns:
        (body, content_type)

    Raises:
        ValueError: If encoding is not recognised
    """
    if encoding == "json":
        return ('{"messages":[' + ",".join(batch) + "]}").encode("utf-8"), JSON_CONTENT_TYPE
    if encoding == "text":
        return "\n".join(batch).encode("utf-8"), TEXT_CONTENT_TYPE
    raise ValueError(f"Unknown batch encoding {encoding!r}")
