from __future__ import annotations

import threading
from typing import Any, Optional

from prometheus_client import CollectorRegistry, start_http_server

from ..core.ports import LoggerPort


def parse_bind(bind: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional, e.g. ``:8080``) into its parts.

    Raises:
        ValueError: If the port is missing or not a number
    """
    host, sep, port = bind.strip().rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid bind address: {bind!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


class MetricsHttpServer:
    """Serves ``/metrics`` from a registry.

    Uses prometheus_client's threading WSGI server, so a stalled client
    never blocks other scrapes.
    """

    def __init__(self, *, bind: str, registry: CollectorRegistry, logger: LoggerPort) -> None:
        self._host, self._port = parse_bind(bind)
        self._registry = registry
        self._logger = logger
        self._server: Optional[Any] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        if self._server is not None:
            return self._server.server_port
        return self._port

    def start(self) -> None:
        self._server, self._thread = start_http_server(self._port, addr=self._host, registry=self._registry)
        self._logger.info(
            f"starting http server on {self._host}:{self.port}",
            host=self._host,
            port=self.port,
        )

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        self._logger.info("http server stopped")
