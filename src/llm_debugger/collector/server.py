# src/llm_debugger/collector/server.py
"""Starlette ASGI application for the log collector.

Receives batches POSTed by the debugger and appends every entry to the log
file. The response is always 200: delivery is fire-and-forget on the
client side, so an error status would only produce noise there.

Usage:
    from llm_debugger.collector.server import create_app, CollectorServer
    from llm_debugger.core.config import CollectorSettings

    app = create_app(CollectorSettings(log_file=Path("logs.txt")))

    # Or use the server class for more control
    server = CollectorServer(settings)
    app = server.app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from llm_debugger.collector.writer import LogFileWriter, parse_batch
from llm_debugger.core.config import CollectorSettings

logger = structlog.get_logger(__name__)


class CollectorServer:
    """Collector server state: settings, the log file, and counters."""

    def __init__(self, settings: CollectorSettings, *, writer: LogFileWriter | None = None) -> None:
        self._settings = settings
        self._writer = writer if writer is not None else LogFileWriter(settings.log_file)
        self._batches_received = 0
        self._entries_written = 0
        self._malformed_batches = 0
        self._app = self._create_app()

    def _create_app(self) -> Starlette:
        """Create the Starlette application with all routes."""
        routes = [
            Route("/health", self._health_endpoint, methods=["GET"]),
            Route(self._settings.path, self._logs_endpoint, methods=["POST"]),
        ]
        middleware = [
            Middleware(
                CORSMiddleware,
                allow_origins=list(self._settings.allow_origins),
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            )
        ]
        return Starlette(debug=False, routes=routes, middleware=middleware, lifespan=self._lifespan)

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        logger.info("Collector ready", log_file=str(self._writer.path), path=self._settings.path)
        try:
            yield
        finally:
            self._writer.close()

    @property
    def app(self) -> Starlette:
        """Get the Starlette ASGI application."""
        return self._app

    @property
    def writer(self) -> LogFileWriter:
        return self._writer

    def get_stats(self) -> dict[str, Any]:
        return {
            "batches_received": self._batches_received,
            "entries_written": self._entries_written,
            "malformed_batches": self._malformed_batches,
        }

    async def _health_endpoint(self, request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "log_file": str(self._writer.path),
                **self.get_stats(),
            }
        )

    async def _logs_endpoint(self, request: Request) -> JSONResponse:
        body = await request.body()
        self._batches_received += 1

        try:
            entries = parse_batch(body, request.headers.get("content-type"))
        except ValueError as e:
            self._malformed_batches += 1
            logger.warning("Malformed batch ignored", error=str(e), body_bytes=len(body))
            entries = []

        written = 0
        if entries:
            try:
                written = await run_in_threadpool(self._writer.write_entries, entries)
            except (OSError, ValueError) as e:
                logger.error("Failed to append entries to log file", error=str(e), entries=len(entries))
        self._entries_written += written
        return JSONResponse({"accepted": written})


def create_app(settings: CollectorSettings) -> Starlette:
    """Create the collector ASGI application.

    Args:
        settings: Collector configuration

    Returns:
        Starlette application
    """
    return CollectorServer(settings).app
