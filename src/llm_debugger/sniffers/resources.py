# src/llm_debugger/sniffers/resources.py
"""Resource check producer: probes scripts and stylesheets a page references.

Given an HTML document (inline, or fetched from page_url) the producer
collects every ``<script src>`` and ``<link rel="stylesheet" href>``,
resolves each against the base URL and sends a HEAD request:

- non-2xx answer -> resourceCheck entry, subType "failed", with the status
- request error -> resourceCheck entry, subType "error", "Network/CORS Error"
- unresolvable URL -> resourceCheck entry, subType "error", "Invalid URL"

If page_url itself cannot be loaded a single ``resource`` entry is emitted.
On start() the check runs once, on a background thread, after delay_ms.
Probe requests run inside debugger_traffic() so the console producer does
not record their httpx log lines.
"""

from __future__ import annotations

import threading
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx
import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import ResourceCheckEntry, ResourceEntry, utc_timestamp
from llm_debugger.core.logging import debugger_traffic
from llm_debugger.errors import SnifferError
from llm_debugger.pipeline.protocols import SubmitFn

logger = structlog.get_logger(__name__)

_KNOWN_OPTIONS = frozenset({"document", "page_url", "base_url", "delay_ms", "timeout"})
_SKIPPED_SCHEMES = frozenset({"data", "blob"})

NETWORK_ERROR_STATUS = "Network/CORS Error"
INVALID_URL_STATUS = "Invalid URL"


class ResourceCollector(HTMLParser):
    """Collect (TAG, url) pairs for external scripts and stylesheets."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.resources: list[tuple[str, str]] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attributes = {name.lower(): value for name, value in attrs}
        if tag == "script" and attributes.get("src"):
            self.resources.append(("SCRIPT", attributes["src"] or ""))
        elif tag == "link" and attributes.get("href"):
            rel = (attributes.get("rel") or "").lower().split()
            if "stylesheet" in rel:
                self.resources.append(("LINK", attributes["href"] or ""))

    handle_startendtag = handle_starttag


def collect_resources(document: str) -> list[tuple[str, str]]:
    parser = ResourceCollector()
    parser.feed(document)
    parser.close()
    return parser.resources


class ResourceCheckSniffer:
    """Report broken script and stylesheet references as ``resourceCheck`` entries.

    Configuration options:
        document: HTML to inspect (takes precedence over page_url)
        page_url: URL to fetch the HTML from; also the default base URL
        base_url: Base for resolving relative references
        delay_ms: Delay before the check runs after start() (default 500)
        timeout: Per-request timeout in seconds (default 5.0)

    Example configuration:
        sniffers:
          resourceCheck:
            page_url: http://localhost:8000/
            delay_ms: 1000
    """

    _name = "resourceCheck"

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client
        self._document: str | None = None
        self._page_url: str | None = None
        self._base_url: str | None = None
        self._delay_ms = 500
        self._timeout = 5.0
        self._submit: SubmitFn | None = None
        self._pending: threading.Timer | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def active(self) -> bool:
        return self._submit is not None

    def configure(self, options: dict[str, Any]) -> None:
        """Apply options.

        Raises:
            SnifferError: If an option is unknown or has the wrong type
        """
        unknown = sorted(set(options) - _KNOWN_OPTIONS)
        if unknown:
            raise SnifferError(self._name, f"Unknown options {unknown}. Valid options: {sorted(_KNOWN_OPTIONS)}")
        for key in ("document", "page_url", "base_url"):
            value = options.get(key)
            if value is not None and not isinstance(value, str):
                raise SnifferError(self._name, f"'{key}' must be a string, got {type(value).__name__}")
        delay_ms = options.get("delay_ms", 500)
        if type(delay_ms) is not int or delay_ms < 0:
            raise SnifferError(self._name, f"'delay_ms' must be a non-negative integer, got {delay_ms!r}")
        timeout = options.get("timeout", 5.0)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise SnifferError(self._name, f"'timeout' must be a positive number, got {timeout!r}")

        self._document = options.get("document")
        self._page_url = options.get("page_url")
        self._base_url = options.get("base_url")
        self._delay_ms = delay_ms
        self._timeout = float(timeout)

    def start(self, submit: SubmitFn, config: RuntimeDebuggerConfig) -> None:
        if self.active:
            return
        self._submit = submit
        if self._document is None and self._page_url is None:
            logger.debug("Resource check has no document or page_url, nothing to probe")
            return
        self._pending = threading.Timer(self._delay_ms / 1000, self._run_check)
        self._pending.daemon = True
        self._pending.name = "llm-debugger-resource-check"
        self._pending.start()

    def stop(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._submit = None

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for a scheduled check to finish. True if none is still running."""
        pending = self._pending
        if pending is None:
            return True
        pending.join(timeout)
        return not pending.is_alive()

    def _run_check(self) -> None:
        try:
            self.check()
        except Exception:
            logger.exception("Resource check failed")

    def _emit(self, entry: ResourceCheckEntry | ResourceEntry) -> None:
        submit = self._submit
        if submit is not None:
            submit(entry)

    def check(self) -> int:
        """Probe every referenced script and stylesheet once.

        Returns:
            Number of resources checked (skipped data:/blob: URLs excluded).
        """
        client = self._client if self._client is not None else httpx.Client(timeout=self._timeout)
        try:
            document = self._document
            if document is None:
                if self._page_url is None:
                    return 0
                document = self._load_page(client, self._page_url)
                if document is None:
                    return 0

            base = self._base_url or self._page_url or ""
            count = 0
            for tag_name, reference in collect_resources(document):
                if urlsplit(reference).scheme.lower() in _SKIPPED_SCHEMES:
                    continue
                count += 1
                self._probe(client, tag_name, reference, base)
        finally:
            if self._client is None:
                client.close()

        logger.info("Resource check complete", resources_checked=count)
        return count

    def _load_page(self, client: httpx.Client, page_url: str) -> str | None:
        try:
            with debugger_traffic():
                response = client.get(page_url, follow_redirects=True)
        except httpx.HTTPError as e:
            self._emit(
                ResourceEntry(
                    timestamp=utc_timestamp(),
                    tag_name="DOCUMENT",
                    url=page_url,
                    status=NETWORK_ERROR_STATUS,
                    error=str(e) or type(e).__name__,
                )
            )
            return None
        if not response.is_success:
            self._emit(
                ResourceEntry(
                    timestamp=utc_timestamp(),
                    tag_name="DOCUMENT",
                    url=page_url,
                    status=response.status_code,
                )
            )
            return None
        return response.text

    def _probe(self, client: httpx.Client, tag_name: str, reference: str, base: str) -> None:
        try:
            absolute_url = urljoin(base, reference) if base else reference
            parts = urlsplit(absolute_url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValueError(f"Cannot resolve {reference!r} to an http(s) URL")
            httpx.URL(absolute_url)
        except (ValueError, httpx.InvalidURL) as e:
            self._emit(
                ResourceCheckEntry(
                    timestamp=utc_timestamp(),
                    sub_type="error",
                    tag_name=tag_name,
                    url=None,
                    status=INVALID_URL_STATUS,
                    original_url=reference,
                    error=str(e),
                )
            )
            return

        try:
            with debugger_traffic():
                response = client.head(absolute_url, follow_redirects=True)
        except httpx.HTTPError as e:
            self._emit(
                ResourceCheckEntry(
                    timestamp=utc_timestamp(),
                    sub_type="error",
                    tag_name=tag_name,
                    url=absolute_url,
                    status=NETWORK_ERROR_STATUS,
                    error=str(e) or type(e).__name__,
                )
            )
            return

        if not response.is_success:
            self._emit(
                ResourceCheckEntry(
                    timestamp=utc_timestamp(),
                    sub_type="failed",
                    tag_name=tag_name,
                    url=absolute_url,
                    status=response.status_code,
                )
            )
