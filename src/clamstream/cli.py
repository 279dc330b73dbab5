"""CLI entry point using Typer."""

from __future__ import annotations

import json
import logging
import sys
import tomllib
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from clamstream import __version__
from clamstream.config import ScanConfig, load_config
from clamstream.errors import ClamStreamError

app = typer.Typer(
    name="clamstream",
    help="Stream files to a ClamAV daemon with INSTREAM and print its verdict.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

HostOption = Annotated[str | None, typer.Option("--host", "-H", help="clamd host")]
PortOption = Annotated[int | None, typer.Option("--port", "-p", help="clamd TCP port")]
TimeoutOption = Annotated[
    float | None, typer.Option("--timeout", "-t", help="Socket timeout in seconds")
]
ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Config file path")
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"clamstream {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """clamstream — ClamAV INSTREAM client."""
    if verbose:
        package_logger = logging.getLogger("clamstream")
        package_logger.setLevel(logging.DEBUG)
        if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
            package_logger.addHandler(RichHandler(console=err_console, show_path=False))


@app.command()
def scan(
    path: Annotated[
        str, typer.Argument(help="File to scan, '-' for stdin")
    ] = "-",
    host: HostOption = None,
    port: PortOption = None,
    chunk_size: Annotated[
        int | None, typer.Option("--chunk-size", help="Max bytes per INSTREAM chunk")
    ] = None,
    timeout: TimeoutOption = None,
    config: ConfigOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON output")] = False,
) -> None:
    """Stream a file to clamd and print the verdict."""
    from clamstream.scanner import scan as scan_stream

    cfg = _resolve_config(config, host, port, timeout, chunk_size)

    if path == "-":
        response = _run(scan_stream, cfg.address, sys.stdin.buffer, cfg.chunk_size, cfg.timeout)
    else:
        file_path = Path(path)
        if not file_path.is_file():
            err_console.print(f"[red]No such file: {escape(path)}[/red]")
            raise typer.Exit(1)
        with file_path.open("rb") as f:
            response = _run(scan_stream, cfg.address, f, cfg.chunk_size, cfg.timeout)

    if as_json:
        console.print_json(json.dumps({"source": path, "response": response}))
    else:
        console.print(response.rstrip("\0"), markup=False, highlight=False)


@app.command()
def ping(
    host: HostOption = None,
    port: PortOption = None,
    timeout: TimeoutOption = None,
    config: ConfigOption = None,
) -> None:
    """Check that clamd answers PING."""
    from clamstream.scanner import ping as ping_daemon

    cfg = _resolve_config(config, host, port, timeout)
    response = _run(ping_daemon, cfg.address, cfg.timeout)
    console.print(response.rstrip("\0"), markup=False, highlight=False)


@app.command(name="version")
def version_show(
    host: HostOption = None,
    port: PortOption = None,
    timeout: TimeoutOption = None,
    config: ConfigOption = None,
) -> None:
    """Show the clamd version string."""
    from clamstream.scanner import version as daemon_version

    cfg = _resolve_config(config, host, port, timeout)
    response = _run(daemon_version, cfg.address, cfg.timeout)
    console.print(response.rstrip("\0"), markup=False, highlight=False)


@app.command(name="config")
def config_show(
    config: ConfigOption = None,
) -> None:
    """Show current configuration."""
    cfg = _load(config)
    console.print_json(json.dumps(cfg.model_dump(), default=str))


def _resolve_config(
    config: Path | None,
    host: str | None,
    port: int | None,
    timeout: float | None,
    chunk_size: int | None = None,
) -> ScanConfig:
    cfg = _load(config)
    overrides = {
        "host": host,
        "port": port,
        "timeout": timeout,
        "chunk_size": chunk_size,
    }
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return cfg
    try:
        return ScanConfig(**(cfg.model_dump() | updates))
    except ValidationError as exc:
        _fail(exc)


def _load(config: Path | None) -> ScanConfig:
    try:
        return load_config(config)
    except (ValidationError, tomllib.TOMLDecodeError) as exc:
        _fail(exc)


def _run(func, *args):
    try:
        return func(*args)
    except ClamStreamError as exc:
        _fail(exc)


def _fail(exc: Exception) -> NoReturn:
    err_console.print(f"[red]{escape(str(exc))}[/red]", highlight=False)
    raise typer.Exit(1) from exc
