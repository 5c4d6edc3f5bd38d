from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from natsort import natsorted

from ..domain.exceptions import RegistryError
from ..domain.models import (
    DOCKER_RELEASE,
    DOCKER_RELEASE_CVE,
    DiscoveredVersion,
    MetricTable,
    bool_label,
)
from ..domain.projects import DockerProject
from ..ports import CveClientPort, LoggerPort, RegistryClientPort, RegistryPoolPort
from .base import SourceCollector


def parse_created(value: Any) -> datetime:
    """Parse an RFC 3339 ``created`` timestamp as an aware datetime.

    Raises:
        ValueError: If the value is missing or not a timestamp
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"invalid created timestamp: {value!r}")
    text = value.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    # registries emit nanoseconds, fromisoformat wants exactly 6 digits
    if "." in text:
        head, _, rest = text.partition(".")
        digits = len(rest) - len(rest.lstrip("0123456789"))
        text = f"{head}.{rest[:digits][:6].ljust(6, '0')}{rest[digits:]}"
    created = datetime.fromisoformat(text)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


class RegistryCollector(SourceCollector):
    """Collects container image tags for every configured Docker project."""

    name = "docker"
    definitions = (DOCKER_RELEASE, DOCKER_RELEASE_CVE)

    def __init__(
        self,
        *,
        projects: Sequence[DockerProject],
        registries: RegistryPoolPort,
        cve: Optional[CveClientPort],
        logger: LoggerPort,
        default_limit: int = 25,
        max_workers: int = 8,
    ) -> None:
        super().__init__(cve=cve, logger=logger, default_limit=default_limit, max_workers=max_workers)
        self._projects = list(projects)
        self._registries = registries

    def projects(self) -> Sequence[DockerProject]:
        return self._projects

    def collect_project(self, project: DockerProject, stop_event: threading.Event) -> dict[str, MetricTable]:
        tables = self.new_tables()
        release_table = tables[DOCKER_RELEASE.name]
        cve_table = tables[DOCKER_RELEASE_CVE.name]

        self._logger.info(
            f"project[{project.name}]: starting collection",
            collector=self.name,
            project=project.name,
        )

        url, username, password = project.registry_settings()
        client = self._registries.client_for(url, username, password)

        releases = self.fetch_versions(project, client, stop_event)
        cve_report = self.fetch_cve_report(project) if releases else None

        for release in releases:
            labels = {
                "name": project.name,
                "image": project.image,
                "tag": release.tag,
                "version": release.version,
                "marked": bool_label(project.is_marked(release.version)),
            }
            if release.created_at is not None:
                self._logger.debug(
                    f"project[{project.name}]: found version {release.version} on date {release.created_at.isoformat()}",
                    collector=self.name,
                    project=project.name,
                )
                release_table.add_time(labels, release.created_at)
            else:
                self._logger.debug(
                    f"project[{project.name}]: found version {release.version} without date",
                    collector=self.name,
                    project=project.name,
                )
                release_table.add_info(labels)

            self.add_cve_facts(
                cve_table,
                {"name": project.name, "image": project.image},
                cve_report,
                project,
                release.version,
            )

        return tables

    def fetch_versions(
        self,
        project: DockerProject,
        client: RegistryClientPort,
        stop_event: threading.Event,
    ) -> list[DiscoveredVersion]:
        """Discover the newest valid tags of an image.

        Invalid tags are dropped before any manifest is fetched. Survivors are
        sorted naturally on the raw tag, newest first, and cut to the limit.

        Raises:
            RegistryError: If the tag list cannot be fetched
        """
        self.check_cancelled(stop_event)
        raw_tags = client.tags(project.image)

        candidates = [tag for tag in raw_tags if project.normalize(tag)[1]]
        candidates = natsorted(candidates, reverse=True)[: project.resolve_limit(self._default_limit)]

        releases: list[DiscoveredVersion] = []
        for tag in candidates:
            self.check_cancelled(stop_event)
            version, _ = project.normalize(tag)
            releases.append(
                DiscoveredVersion(
                    tag=tag,
                    version=version,
                    created_at=self._latest_created(project, client, tag),
                )
            )
        return releases

    def _latest_created(self, project: DockerProject, client: RegistryClientPort, tag: str) -> Optional[datetime]:
        try:
            history = client.manifest_history(project.image, tag)
        except RegistryError as e:
            self._logger.warning(
                f"project[{project.name}]: manifest for tag {tag} unavailable: {e}",
                collector=self.name,
                project=project.name,
                error=str(e),
            )
            return None

        latest: Optional[datetime] = None
        for entry in history:
            try:
                if isinstance(entry, (str, bytes)):
                    entry = json.loads(entry)
                if not isinstance(entry, dict):
                    raise ValueError("history entry is not an object")
                created = parse_created(entry.get("created"))
            except ValueError as e:
                self._logger.error(
                    f"project[{project.name}]: {e}",
                    collector=self.name,
                    project=project.name,
                    error=str(e),
                )
                continue
            if latest is None or created > latest:
                latest = created
        return latest
