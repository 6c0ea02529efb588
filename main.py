"""Folio CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from server.app import run_server
from server.config import DEFAULT_CONFIG_PATH, FolioConfig, load_config, write_default_config
from server.errors import ScanError
from server.index import IndexManager
from server.logging_config import setup_logging
from server.monitor import start_file_monitoring
from server.scanner import CollectionScanner, scan_library


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Folio comic library CLI")
logger = logging.getLogger("folio")


def _ensure_config() -> FolioConfig:
    try:
        return load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: folio init --library /path/to/comics")
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)


@app.command()
def init(
    library: Path = typer.Option(..., "--library", help="Path to your comics folder"),
    name: str = typer.Option("My Comic Library", "--name", help="Library name"),
) -> None:
    """Initialize config.ini with default settings."""
    write_default_config(DEFAULT_CONFIG_PATH, library, name)
    typer.echo(f"[OK] Config created at {DEFAULT_CONFIG_PATH}")


@app.command()
def scan(
    path: Optional[Path] = typer.Option(None, "--path", help="Scan a subfolder"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report problems"),
) -> None:
    """Scan the library once, filling the thumbnail cache."""
    setup_logging(quiet=quiet)

    config = _ensure_config()
    try:
        index = scan_library(config, path=path)
    except ScanError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)

    stats = index.stats
    typer.echo(
        "✓ Scan completed: "
        f"{stats.comics} comics, "
        f"{stats.folders} folders, "
        f"{stats.thumbnails_generated} new thumbnails, "
        f"{stats.broken} broken."
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", help="Server port"),
    interval: Optional[int] = typer.Option(
        None, "--interval", help="Rescan interval in seconds (0 disables)"
    ),
    no_watch: bool = typer.Option(False, "--no-watch", help="Disable file monitoring"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report problems"),
) -> None:
    """Scan the library and start the web reader."""
    setup_logging(quiet=quiet)

    config = _ensure_config()
    manager = IndexManager(CollectionScanner.from_config(config), config.library_path)

    logger.info("Running initial library scan...")
    try:
        manager.rescan()
    except ScanError as exc:
        logger.error(str(exc))
        raise typer.Exit(code=1)

    rescan_interval = config.scanner.rescan_interval if interval is None else interval
    manager.start(rescan_interval)

    monitor = None
    if not no_watch:
        monitor = start_file_monitoring(config, manager)

    try:
        run_server(config, manager, host=host, port=port)
    except KeyboardInterrupt:
        pass
    finally:
        manager.stop(timeout=5)
        if monitor:
            monitor.stop()


@app.command()
def stats() -> None:
    """Show library statistics."""
    setup_logging(quiet=True)

    config = _ensure_config()
    try:
        index = scan_library(config)
    except ScanError as exc:
        typer.echo(f"[ERROR] {exc}")
        raise typer.Exit(code=1)

    s = index.stats
    total_size = sum(entry.path.stat().st_size for entry in index.comics if entry.path.exists())
    size_gb = total_size / (1024 ** 3)
    with_cover = s.comics - s.broken
    percent = (with_cover / s.comics * 100) if s.comics else 0

    typer.echo("Library Statistics:")
    typer.echo(f"  Total comics: {s.comics}")
    typer.echo(f"  Total folders: {s.folders}")
    typer.echo(f"  Total pages: {s.pages}")
    typer.echo(f"  Total size: {size_gb:.1f} GB")
    typer.echo(f"  Covers available: {with_cover} / {s.comics} ({percent:.0f}%)")
    typer.echo(f"  Thumbnail cache: {config.thumbnails_dir}")


if __name__ == "__main__":
    app()
