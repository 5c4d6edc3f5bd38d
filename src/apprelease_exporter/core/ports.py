from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .domain.models import MetricTable
from .services.cve_report import CveReport


class RegistryClientPort(Protocol):
    """Port for one container registry (Docker Registry HTTP API v2)."""

    def tags(self, image: str) -> list[str]:
        """List all tags of an image.

        Raises:
            RegistryError: If the registry request fails
        """
        ...

    def manifest_history(self, image: str, tag: str) -> list[Any]:
        """Return the raw history entries of a tag's manifest.

        Entries are either JSON strings (schema 1 ``v1Compatibility``) or
        already decoded mappings (schema 2 / OCI config history). Each is
        expected to carry a ``created`` timestamp.

        Raises:
            RegistryError: If the manifest or config blob cannot be fetched
        """
        ...


class RegistryPoolPort(Protocol):
    """Hands out one registry client per registry URL."""

    def client_for(self, url: str, username: str, password: str) -> RegistryClientPort:
        ...


class ReleaseClientPort(Protocol):
    """Port for the source hosting API (GitHub REST v3)."""

    def ping(self) -> None:
        """Verify credentials, if any.

        Raises:
            ConfigurationError: If configured credentials are rejected
        """
        ...

    def list_releases(self, owner: str, repository: str, *, per_page: int) -> list[dict[str, Any]]:
        ...

    def list_tags(self, owner: str, repository: str, *, per_page: int) -> list[dict[str, Any]]:
        ...

    def get_commit(self, owner: str, repository: str, sha: str) -> dict[str, Any]:
        ...


class CveClientPort(Protocol):
    """Port for the vulnerability search with cache fallback."""

    @property
    def enabled(self) -> bool:
        ...

    def fetch_report(self, vendor: str, product: str) -> Optional[CveReport]:
        """Return the report, or None when neither remote nor cache has one."""
        ...


class CveCachePort(Protocol):
    """Port for the on-disk vulnerability report cache."""

    @property
    def enabled(self) -> bool:
        ...

    def load(self, vendor: str, product: str, *, ignore_ttl: bool = False) -> Optional[Any]:
        ...

    def store(self, vendor: str, product: str, payload: Any) -> None:
        ...

    def clear_all(self) -> int:
        ...


class MetricsSinkPort(Protocol):
    """Port for the metrics snapshot store."""

    def publish(self, tables: Mapping[str, MetricTable]) -> None:
        """Atomically replace the given metrics with the new tables."""
        ...


class LoggerPort(Protocol):
    """Port for structured logging.

    Extra keyword arguments become structured fields of the log record.
    """

    def debug(self, message: str, **fields: Any) -> None:
        ...

    def info(self, message: str, **fields: Any) -> None:
        ...

    def warning(self, message: str, **fields: Any) -> None:
        ...

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        ...

    def exception(self, message: str, **fields: Any) -> None:
        ...


class MetricsServerPort(Protocol):
    """Port for the scrape endpoint."""

    def start(self) -> None:
        ...

    def shutdown(self) -> None:
        ...
