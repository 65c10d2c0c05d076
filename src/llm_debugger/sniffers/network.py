# src/llm_debugger/sniffers/network.py
"""Network producer: records requests made through instrumented httpx clients.

Rather than patching a global ``fetch``, the producer hands out transport
wrappers. A client built with ``sniffer.client()`` (or any client given
``sniffer.wrap(transport)``) reports every request as three possible
entries:

- fetch_request: method, URL, and a description of the request body
- fetch_response: status and a decoded body (JSON, text, or a marker)
- fetch_error: the transport error, which is then re-raised unchanged

While the producer is stopped the wrappers are plain pass-throughs.
"""

from __future__ import annotations

import json
import traceback
from typing import Any

import httpx
import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.entries import NetworkEntry, utc_timestamp
from llm_debugger.errors import SnifferError
from llm_debugger.pipeline.protocols import SubmitFn

logger = structlog.get_logger(__name__)

_KNOWN_OPTIONS = frozenset({"capture_bodies"})


def describe_request_body(request: httpx.Request) -> str | None:
    """Describe the request body by type only; content is never logged."""
    try:
        content = request.content
    except httpx.RequestNotRead:
        return "[Body type: stream]"
    if not content:
        return None
    return f"[Body type: {type(content).__name__}]"


def _body_kind(content_type: str | None) -> str | None:
    if content_type and "application/json" in content_type:
        return "json"
    if content_type and ("text/" in content_type or "application/xml" in content_type):
        return "text"
    return None


def _decode_body(response: httpx.Response, kind: str | None) -> Any:
    content_type = response.headers.get("content-type")
    if kind == "json":
        try:
            return json.loads(response.content)
        except ValueError:
            return "[Failed to parse JSON body]"
    if kind == "text":
        try:
            return response.text
        except (UnicodeDecodeError, LookupError):
            return "[Failed to read text body]"
    return f"[Unsupported content type: {content_type}]"


class NetworkSniffer:
    """Capture HTTP traffic of instrumented httpx clients as ``network`` entries.

    Configuration options:
        capture_bodies: Read and record JSON/text response bodies (default True)

    Example:
        sniffer = session.get_sniffer("fetch")
        with sniffer.client(base_url="https://api.example.com") as client:
            client.get("/status")
    """

    _name = "fetch"

    def __init__(self) -> None:
        self._submit: SubmitFn | None = None
        self._capture_bodies = True

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
        capture_bodies = options.get("capture_bodies", True)
        if not isinstance(capture_bodies, bool):
            raise SnifferError(self._name, f"'capture_bodies' must be a bool, got {type(capture_bodies).__name__}")
        self._capture_bodies = capture_bodies

    def start(self, submit: SubmitFn, config: RuntimeDebuggerConfig) -> None:
        if self.active:
            return
        self._submit = submit

    def stop(self) -> None:
        self._submit = None

    def wrap(self, transport: httpx.BaseTransport | None = None) -> SniffingTransport:
        """Wrap a sync transport (default: a fresh httpx.HTTPTransport)."""
        return SniffingTransport(transport if transport is not None else httpx.HTTPTransport(), self)

    def wrap_async(self, transport: httpx.AsyncBaseTransport | None = None) -> AsyncSniffingTransport:
        """Wrap an async transport (default: a fresh httpx.AsyncHTTPTransport)."""
        return AsyncSniffingTransport(transport if transport is not None else httpx.AsyncHTTPTransport(), self)

    def client(self, **kwargs: Any) -> httpx.Client:
        """Build an httpx.Client whose traffic is recorded.

        A ``transport`` keyword is wrapped rather than replaced.
        """
        transport = kwargs.pop("transport", None)
        return httpx.Client(transport=self.wrap(transport), **kwargs)

    def async_client(self, **kwargs: Any) -> httpx.AsyncClient:
        transport = kwargs.pop("transport", None)
        return httpx.AsyncClient(transport=self.wrap_async(transport), **kwargs)

    # -------------------------------------------------------------------------
    # Entry construction shared by both transports
    # -------------------------------------------------------------------------

    def _emit(self, entry: NetworkEntry) -> None:
        submit = self._submit
        if submit is not None:
            submit(entry)

    def record_request(self, request: httpx.Request) -> None:
        self._emit(
            NetworkEntry(
                timestamp=utc_timestamp(),
                sub_type="fetch_request",
                method=request.method.upper(),
                url=str(request.url),
                request_body=describe_request_body(request),
            )
        )

    def record_error(self, request: httpx.Request, error: BaseException) -> None:
        self._emit(
            NetworkEntry(
                timestamp=utc_timestamp(),
                sub_type="fetch_error",
                method=request.method.upper(),
                url=str(request.url),
                status=0,
                error=str(error) or type(error).__name__,
                stack="".join(traceback.format_exception(error)),
            )
        )

    def body_kind(self, response: httpx.Response) -> str | None:
        """Which body, if any, should be read before recording the response."""
        if not self._capture_bodies:
            return None
        return _body_kind(response.headers.get("content-type"))

    def record_response(self, request: httpx.Request, response: httpx.Response, kind: str | None) -> None:
        if self._capture_bodies:
            body = _decode_body(response, kind)
        else:
            body = None
        self._emit(
            NetworkEntry(
                timestamp=utc_timestamp(),
                sub_type="fetch_response",
                method=request.method.upper(),
                url=str(request.url),
                status=response.status_code,
                body=body,
            )
        )


class SniffingTransport(httpx.BaseTransport):
    """Sync transport wrapper reporting to a NetworkSniffer."""

    def __init__(self, wrapped: httpx.BaseTransport, sniffer: NetworkSniffer) -> None:
        self._wrapped = wrapped
        self._sniffer = sniffer

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        sniffer = self._sniffer
        if not sniffer.active:
            return self._wrapped.handle_request(request)

        sniffer.record_request(request)
        try:
            response = self._wrapped.handle_request(request)
        except Exception as e:
            sniffer.record_error(request, e)
            raise

        kind = sniffer.body_kind(response)
        if kind is not None:
            try:
                response.read()
            except (httpx.HTTPError, httpx.StreamError) as e:
                sniffer.record_error(request, e)
                raise
        sniffer.record_response(request, response, kind)
        return response

    def close(self) -> None:
        self._wrapped.close()


class AsyncSniffingTransport(httpx.AsyncBaseTransport):
    """Async transport wrapper reporting to a NetworkSniffer.

    Entries are submitted synchronously on the event loop thread. submit()
    takes the session lock, so while another thread is flushing the loop
    waits for that flush to hand its batch to the transport. The transport
    never waits on the network, so the pause is bounded by serialization plus
    a queue put or thread start.
    """

    def __init__(self, wrapped: httpx.AsyncBaseTransport, sniffer: NetworkSniffer) -> None:
        self._wrapped = wrapped
        self._sniffer = sniffer

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        sniffer = self._sniffer
        if not sniffer.active:
            return await self._wrapped.handle_async_request(request)

        sniffer.record_request(request)
        try:
            response = await self._wrapped.handle_async_request(request)
        except Exception as e:
            sniffer.record_error(request, e)
            raise

        kind = sniffer.body_kind(response)
        if kind is not None:
            try:
                await response.aread()
            except (httpx.HTTPError, httpx.StreamError) as e:
                sniffer.record_error(request, e)
                raise
        sniffer.record_response(request, response, kind)
        return response

    async def aclose(self) -> None:
        await self._wrapped.aclose()
