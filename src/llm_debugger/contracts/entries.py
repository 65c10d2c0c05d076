"""Log entries emitted by producers.

Entries are immutable (frozen) so that a producer can never change an entry
after it has been serialized into the buffer. The ``type`` discriminator is
a class-level constant of each subclass rather than a field, which makes it
impossible to build, say, a ConsoleEntry that claims to be a network entry.

Wire form (see ``LogEntry.to_dict``) uses camelCase keys because the
collector and any existing log consumers expect the browser field names
(``subType``, ``tagName``, ``requestBody``).
"""

from dataclasses import dataclass, fields
from datetime import UTC, datetime
from typing import Any, ClassVar

from llm_debugger.contracts.enums import EntryType, LogLevel


def utc_timestamp(moment: datetime | None = None) -> str:
    """Render a timestamp the way JavaScript's ``Date.toISOString`` does.

    Args:
        moment: Aware datetime to render. Defaults to now (UTC).

    Returns:
        ``YYYY-MM-DDTHH:MM:SS.mmmZ``
    """
    if moment is None:
        moment = datetime.now(tz=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """Base class for all log entries.

    All entries include:
    - timestamp: ISO-8601 string of when the producer observed the event
    - type: discriminator (class constant, see EntryType)
    """

    entry_type: ClassVar[EntryType]

    timestamp: str

    @property
    def type(self) -> EntryType:
        return self.entry_type

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation of this entry.

        ``timestamp`` and ``type`` come first; remaining fields follow in
        declaration order under camelCase keys. ``None`` values are kept so
        that consumers see explicit nulls.
        """
        data: dict[str, Any] = {"timestamp": self.timestamp, "type": self.entry_type.value}
        for f in fields(self):
            if f.name == "timestamp":
                continue
            data[_camel_case(f.name)] = getattr(self, f.name)
        return data


@dataclass(frozen=True, slots=True)
class ConsoleEntry(LogEntry):
    """A captured console/logging call."""

    entry_type: ClassVar[EntryType] = EntryType.CONSOLE

    level: LogLevel
    message: str
    file: str | None = None
    line: int | None = None


@dataclass(frozen=True, slots=True)
class NetworkEntry(LogEntry):
    """A request, response, or failure observed on an instrumented HTTP client.

    sub_type is one of ``fetch_request``, ``fetch_response``, ``fetch_error``.
    """

    entry_type: ClassVar[EntryType] = EntryType.NETWORK

    sub_type: str
    method: str
    url: str
    status: int | None = None
    body: Any = None
    request_body: str | None = None
    error: str | None = None
    stack: str | None = None


@dataclass(frozen=True, slots=True)
class ResourceEntry(LogEntry):
    """A resource that failed to load at all (the host document itself)."""

    entry_type: ClassVar[EntryType] = EntryType.RESOURCE

    tag_name: str
    url: str
    status: int | str
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ResourceCheckEntry(LogEntry):
    """Result of probing a script or stylesheet referenced by the document.

    sub_type is ``failed`` (server answered with a non-2xx status) or
    ``error`` (the probe itself could not be made).
    """

    entry_type: ClassVar[EntryType] = EntryType.RESOURCE_CHECK

    sub_type: str
    tag_name: str
    url: str | None
    status: int | str
    original_url: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ErrorEntry(LogEntry):
    """An uncaught exception or unhandled asynchronous failure."""

    entry_type: ClassVar[EntryType] = EntryType.ERROR

    sub_type: str
    message: str
    stack: str | None = None
    file: str | None = None
    line: int | None = None
    column: int | None = None
