from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from .config import AppConfig
from . import main as facade
from ..core.domain.exceptions import ConfigurationError

load_dotenv()

app = typer.Typer(add_completion=False, no_args_is_help=True)

COLLECTOR_NAMES = ("docker", "github")


def _load_config(
    *,
    config_path: Optional[Path] = None,
    bind: Optional[str] = None,
    verbose: bool = False,
    debug: bool = False,
    log_json: bool = False,
) -> AppConfig:
    """Load settings from the environment and apply command line overrides."""
    try:
        config = AppConfig()
    except ValidationError as e:
        typer.echo(f"Error: invalid settings: {e}", err=True)
        raise typer.Exit(code=1)

    update: dict[str, object] = {}
    if config_path is not None:
        update["config_path"] = config_path
    if bind:
        update["server"] = config.server.model_copy(update={"bind": bind})
    if verbose or debug or log_json:
        update["logging"] = config.logging.model_copy(update={
            "verbose": config.logging.verbose or verbose,
            "debug": config.logging.debug or debug,
            "json_output": config.logging.json_output or log_json,
        })
    if update:
        config = config.model_copy(update=update)

    if config.config_path is None:
        typer.echo("Error: project file required via --config or APPRELEASE_EXPORTER_CONFIG_PATH", err=True)
        raise typer.Exit(code=2)
    return config


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, frame) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML project file"),
    bind: Optional[str] = typer.Option(None, "--bind", help="Server address, e.g. :8080"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-version details"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging, including HTTP requests"),
    log_json: bool = typer.Option(False, "--log-json", help="Emit logs as JSON lines"),
):
    """Serve release metrics on /metrics until interrupted."""
    config = _load_config(
        config_path=config_path,
        bind=bind,
        verbose=verbose,
        debug=debug,
        log_json=log_json,
    )

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    try:
        facade.serve(config=config, stop_event=stop_event)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def collect(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML project file"),
    collector: Optional[str] = typer.Option(
        None,
        "--collector",
        help="Only run this collector (docker or github)",
        case_sensitive=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-version details"),
):
    """Collect once and print the metrics in Prometheus text format."""
    if collector is not None and collector.lower() not in COLLECTOR_NAMES:
        typer.echo(f"Error: --collector must be one of {', '.join(COLLECTOR_NAMES)}", err=True)
        raise typer.Exit(code=2)

    config = _load_config(config_path=config_path, verbose=verbose)

    try:
        output = facade.collect_once(
            collector=collector.lower() if collector else None,
            config=config,
        )
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(output.decode("utf-8"), nl=False)


@app.command(name="clear-cache")
def clear_cache_command():
    """Remove cached CVE reports."""
    try:
        config = AppConfig()
    except ValidationError as e:
        typer.echo(f"Error: invalid settings: {e}", err=True)
        raise typer.Exit(code=1)

    removed = facade.clear_cache(config=config)
    typer.echo(f"Removed {removed} cached CVE report(s) from {config.cache.path}")


if __name__ == "__main__":
    app()
