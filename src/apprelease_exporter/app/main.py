from __future__ import annotations

import threading
from pathlib import Path

from prometheus_client import generate_latest

from .config import AppConfig
from .container import Container
from ..core.domain.exceptions import ConfigurationError
from ..infra.metrics_store import build_registry


def _create_container(config: AppConfig | None = None) -> Container:
    """Create and initialize a container.

    Args:
        config: Optional config. If None, loads from environment variables.

    Returns:
        Initialized container instance
    """
    container = Container()

    if config is None:
        # Load from environment variables (BaseSettings default behavior)
        config = AppConfig()

    container.config.from_pydantic(config)
    container.init_resources()

    return container


def _require_config_path(config: AppConfig) -> Path:
    if config.config_path is None:
        raise ConfigurationError("project file required via --config or APPRELEASE_EXPORTER_CONFIG_PATH")
    return config.config_path


def serve(
    *,
    config: AppConfig | None = None,
    stop_event: threading.Event | None = None,
) -> None:
    """Run the exporter until ``stop_event`` is set.

    Args:
        config: Optional config. If None, loads from env vars.
        stop_event: Shutdown signal, typically set by a signal handler

    Raises:
        ConfigurationError: If the project file is missing or invalid
    """
    config = config or AppConfig()
    _require_config_path(config)
    stop_event = stop_event or threading.Event()

    container = _create_container(config)
    try:
        container.exporter_config()
        uc = container.serve_uc()
        uc.execute(stop_event)
    finally:
        container.shutdown_resources()


def collect_once(
    *,
    collector: str | None = None,
    config: AppConfig | None = None,
) -> bytes:
    """Run the enabled collectors a single time.

    Args:
        collector: Restrict the run to ``docker`` or ``github``
        config: Optional config. If None, loads from env vars.

    Returns:
        Prometheus text exposition of the collected metrics
    """
    config = config or AppConfig()
    _require_config_path(config)

    container = _create_container(config)
    try:
        container.exporter_config()
        uc = container.collect_once_uc()
        uc.execute(only=collector)
        return generate_latest(build_registry(container.snapshot_store(), process_metrics=False))
    finally:
        container.shutdown_resources()


def clear_cache(config: AppConfig | None = None) -> int:
    """Remove cached CVE reports.

    Args:
        config: Optional config. If None, loads from env vars.

    Returns:
        Number of removed cache files
    """
    container = _create_container(config)
    try:
        uc = container.clear_cache_uc()
        return uc.execute()
    finally:
        container.shutdown_resources()
