# src/llm_debugger/pipeline/transport.py
"""Two-tier batch delivery.

The primary tier mirrors navigator.sendBeacon: offer() answers immediately
whether the payload was accepted, and delivery then happens on a background
worker. A rejected offer (payload over quota, outbox full, sender closed)
falls through to the keep-alive tier, which posts each batch on its own
non-daemon thread so the request can finish while the interpreter is
shutting down.

Neither tier retries or re-queues. Once Transport.send() has been called
the batch is either in flight or lost, and every failure ends up on the
diagnostic channel.

Posts run inside debugger_traffic(), so the request lines httpx logs for them
are never captured as console entries.
"""

import queue
import threading
import time
from collections.abc import Sequence

import httpx
import structlog

from llm_debugger.contracts.config import RuntimeDebuggerConfig
from llm_debugger.contracts.enums import DeliveryOutcome, DiagnosticKind
from llm_debugger.core.logging import debugger_traffic
from llm_debugger.pipeline.diagnostics import Diagnostics
from llm_debugger.pipeline.protocols import FallbackSender, PrimarySender
from llm_debugger.pipeline.serialization import BatchEncoding, encode_batch

logger = structlog.get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT = 10.0


def _report_response(
    diagnostics: Diagnostics,
    tier: str,
    endpoint: str,
    response: httpx.Response,
) -> None:
    # Status is otherwise ignored; non-2xx is only worth a note
    if not response.is_success:
        diagnostics.report(
            DiagnosticKind.TRANSPORT_FAILURE,
            "Collector answered with a non-success status",
            tier=tier,
            endpoint=endpoint,
            status_code=response.status_code,
        )


class BeaconSender:
    """Fire-and-survive primary sender.

    Thread Safety:
        offer() and close() may be called from any thread. A single worker
        thread drains the outbox, so batches accepted by this sender are
        posted in the order they were offered.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        max_payload_bytes: int = 64 * 1024,
        outbox_size: int = 32,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.Client | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._max_payload_bytes = max_payload_bytes
        self._outbox: queue.Queue[tuple[bytes, str] | None] = queue.Queue(maxsize=outbox_size)
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    def offer(self, payload: bytes, content_type: str) -> bool:
        """Queue a payload for background delivery.

        Returns:
            True if accepted. False if the payload is over quota, the outbox
            is full, or the sender has been closed.
        """
        if len(payload) > self._max_payload_bytes:
            logger.debug(
                "Beacon payload over quota",
                payload_bytes=len(payload),
                max_payload_bytes=self._max_payload_bytes,
            )
            return False
        with self._lock:
            if self._closed:
                return False
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run,
                    name="llm-debugger-beacon",
                    daemon=True,
                )
                self._worker.start()
            try:
                self._outbox.put_nowait((payload, content_type))
            except queue.Full:
                logger.debug("Beacon outbox full", outbox_size=self._outbox.maxsize)
                return False
        return True

    def _run(self) -> None:
        while True:
            item = self._outbox.get()
            try:
                if item is None:
                    return
                self._post(*item)
            finally:
                self._outbox.task_done()

    def _post(self, payload: bytes, content_type: str) -> None:
        try:
            with debugger_traffic():
                response = self._client.post(
                    self._endpoint,
                    content=payload,
                    headers={"Content-Type": content_type},
                )
        except httpx.HTTPError as e:
            self._diagnostics.report(
                DiagnosticKind.TRANSPORT_FAILURE,
                "Beacon delivery failed",
                tier="primary",
                endpoint=self._endpoint,
                error=str(e) or type(e).__name__,
            )
            return
        _report_response(self._diagnostics, "primary", self._endpoint, response)

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting payloads and wait up to timeout for queued ones.

        Idempotent. The HTTP client is only closed once the worker has
        finished, so a timed-out close never pulls the client out from under
        an in-flight post.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker

        if worker is not None:
            try:
                self._outbox.put(None, timeout=timeout)
            except queue.Full:
                logger.warning("Beacon outbox still full at close", endpoint=self._endpoint)
            worker.join(timeout)
            if worker.is_alive():
                logger.warning("Beacon worker still busy after close timeout", timeout=timeout)
                return
        if self._owns_client:
            self._client.close()


class KeepAliveSender:
    """Fallback sender: one non-daemon thread per batch.

    Non-daemon threads keep the interpreter alive until the request finishes
    or times out, which is the closest Python analogue of ``keepalive: true``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.Client | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._lock = threading.Lock()
        self._in_flight: set[threading.Thread] = set()
        self._closed = False

    def send(self, payload: bytes, content_type: str) -> None:
        """Start posting payload and return without waiting for it."""
        with self._lock:
            if self._closed:
                self._diagnostics.report(
                    DiagnosticKind.TRANSPORT_FAILURE,
                    "Keep-alive sender closed, batch dropped",
                    tier="fallback",
                    endpoint=self._endpoint,
                    payload_bytes=len(payload),
                )
                return
            thread = threading.Thread(
                target=self._post,
                args=(payload, content_type),
                name="llm-debugger-keepalive",
                daemon=False,
            )
            self._in_flight.add(thread)
            thread.start()

    def _post(self, payload: bytes, content_type: str) -> None:
        try:
            with debugger_traffic():
                response = self._client.post(
                    self._endpoint,
                    content=payload,
                    headers={"Content-Type": content_type},
                )
        except httpx.HTTPError as e:
            self._diagnostics.report(
                DiagnosticKind.TRANSPORT_FAILURE,
                "Keep-alive delivery failed",
                tier="fallback",
                endpoint=self._endpoint,
                error=str(e) or type(e).__name__,
            )
        else:
            _report_response(self._diagnostics, "fallback", self._endpoint, response)
        finally:
            with self._lock:
                self._in_flight.discard(threading.current_thread())

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting batches and join outstanding requests up to timeout."""
        with self._lock:
            self._closed = True
            pending = list(self._in_flight)

        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in pending:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)

        if self.in_flight:
            logger.warning("Keep-alive requests still in flight after close timeout", in_flight=self.in_flight)
            return
        if self._owns_client:
            self._client.close()
            self._owns_client = False


class Transport:
    """Encodes a batch and hands it to the primary tier, then the fallback.

    Example:
        transport = Transport(BeaconSender(url), KeepAliveSender(url))
        outcome = transport.send(['{"type":"console"}'])
    """

    def __init__(
        self,
        primary: PrimarySender | None,
        fallback: FallbackSender,
        *,
        encoding: BatchEncoding = "json",
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._encoding = encoding
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def send(self, batch: Sequence[str]) -> DeliveryOutcome:
        """Dispatch one batch. Never raises, never waits on the network.

        Returns:
            EMPTY for an empty batch, PRIMARY if the primary tier accepted it,
            FALLBACK if the keep-alive tier took it, FAILED otherwise.
        """
        if not batch:
            return DeliveryOutcome.EMPTY
        payload, content_type = encode_batch(batch, self._encoding)

        if self._primary is not None:
            try:
                if self._primary.offer(payload, content_type):
                    return DeliveryOutcome.PRIMARY
            except Exception as e:
                # Primary failure must degrade to the fallback, never escape
                logger.warning("Primary sender raised, falling back", error=str(e))

        try:
            self._fallback.send(payload, content_type)
        except Exception as e:
            self._diagnostics.report(
                DiagnosticKind.TRANSPORT_FAILURE,
                "Fallback sender raised, batch lost",
                tier="fallback",
                entries=len(batch),
                error=str(e) or type(e).__name__,
            )
            return DeliveryOutcome.FAILED
        return DeliveryOutcome.FALLBACK

    def close(self, timeout: float | None = None) -> None:
        """Close both tiers, sharing one grace period between them."""
        deadline = None if timeout is None else time.monotonic() + timeout
        if self._primary is not None:
            self._primary.close(timeout)
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        self._fallback.close(remaining)


def create_transport(
    config: RuntimeDebuggerConfig,
    diagnostics: Diagnostics,
    *,
    client: httpx.Client | None = None,
) -> Transport:
    """Build the beacon + keep-alive transport described by config.

    Args:
        config: Resolved session configuration
        diagnostics: Shared diagnostic channel
        client: Optional shared httpx client (e.g. one using MockTransport).
            When given, the caller owns it and must close it.

    Returns:
        Transport posting to config.endpoint
    """
    primary = BeaconSender(
        config.endpoint,
        max_payload_bytes=config.beacon_max_bytes,
        client=client,
        diagnostics=diagnostics,
    )
    fallback = KeepAliveSender(config.endpoint, client=client, diagnostics=diagnostics)
    return Transport(primary, fallback, encoding=config.batch_encoding, diagnostics=diagnostics)
