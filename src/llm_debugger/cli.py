# src/llm_debugger/cli.py
"""CLI for the llm-debugger log collector.

Usage:
    llm-debugger start                                 # Listen on 127.0.0.1:3006
    llm-debugger start --log-file=debug/logs.txt       # Custom log file
    llm-debugger start --port=4000 --json-logs         # JSON structured logs
    llm-debugger show-config --query="?buffer_size=64&level=ERROR"
    llm-debugger show-config --config=debugger.yaml --format=yaml
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import pydantic
import typer
import uvicorn
import yaml

from llm_debugger.collector.server import CollectorServer
from llm_debugger.core.config import CollectorSettings, DebuggerSettings, resolve_settings
from llm_debugger.core.logging import configure_logging
from llm_debugger.errors import ConfigurationError

app = typer.Typer(
    name="llm-debugger",
    help="LLM Debugger: collect browser-style debug logs into a file an assistant can read.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from llm_debugger import __version__

        typer.echo(f"llm-debugger {__version__}")
        raise typer.Exit()


@app.callback()
def _main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """LLM Debugger command line."""


@app.command()
def start(
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            "-f",
            help="File entries are appended to (default: ./llm-debugger-logs.txt).",
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    host: Annotated[
        str,
        typer.Option("--host", "-h", help="Host address to bind to."),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to listen on.", min=1, max=65535),
    ] = 3006,
    path: Annotated[
        str,
        typer.Option("--path", help="Route that accepts POSTed batches."),
    ] = "/logs",
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Emit the collector's own logs as JSON."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Collector log level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "INFO",
) -> None:
    """Start the log collector."""
    values: dict[str, Any] = {"host": host, "port": port, "path": path}
    if log_file is not None:
        values["log_file"] = log_file
    try:
        settings = CollectorSettings(**values)
    except pydantic.ValidationError as e:
        typer.secho(f"Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e

    if log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        typer.secho(f"Configuration error: unknown log level {log_level!r}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    configure_logging(json_output=json_logs, level=log_level)

    try:
        server = CollectorServer(settings)
    except OSError as e:
        typer.secho(f"Error: cannot open log file {settings.log_file}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e

    typer.secho(
        f"LLM Debugger collector running on http://{settings.host}:{settings.port}{settings.path}",
        fg=typer.colors.GREEN,
    )
    typer.echo(f"Logs will be saved to: {settings.log_file}")

    uvicorn.run(
        server.app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )


def _settings_payload(settings: DebuggerSettings) -> dict[str, Any]:
    payload = settings.model_dump(mode="json")
    payload["enabled_levels"] = sorted(str(level) for level in settings.enabled_levels)
    if settings.enabled_sources is not None:
        payload["enabled_sources"] = sorted(settings.enabled_sources)
    return payload


@app.command()
def show_config(
    query: Annotated[
        str | None,
        typer.Option("--query", "-q", help="Script query string or full script URL."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to YAML configuration file.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: json or yaml."),
    ] = "json",
) -> None:
    """Show the debugger settings a query string or YAML file resolves to."""
    if query is not None and config_file is not None:
        typer.secho("Error: --query and --config are mutually exclusive", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    if output_format not in ("json", "yaml"):
        typer.secho(f"Error: unknown format {output_format!r}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    source: str | Path | None = config_file if config_file is not None else query
    try:
        settings = resolve_settings(source)
    except ConfigurationError as e:
        typer.secho(f"Configuration error: {e.message}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from e

    payload = _settings_payload(settings)
    if output_format == "json":
        typer.echo(json.dumps(payload, indent=2))
    else:
        typer.echo(yaml.safe_dump(payload, default_flow_style=False, sort_keys=False))


def main() -> None:
    """Entry point for llm-debugger CLI."""
    app()


if __name__ == "__main__":
    main()
