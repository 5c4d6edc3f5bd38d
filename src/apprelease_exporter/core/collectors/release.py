from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from ..domain.exceptions import CommitLookupError, ReleaseSourceError
from ..domain.models import (
    GITHUB_RELEASE,
    GITHUB_RELEASE_CVE,
    DiscoveredVersion,
    MetricTable,
    bool_label,
)
from ..domain.projects import GithubProject
from ..ports import CveClientPort, LoggerPort, ReleaseClientPort
from .base import SourceCollector
from .registry import parse_created


class ReleaseCollector(SourceCollector):
    """Collects GitHub releases (or tags) for every configured GitHub project.

    Projects are submitted to the worker pool one after another with a fixed
    pause between submissions to stay friendly with the API rate limit. The
    pause does not wait for the previous project to finish, so fetches of
    already submitted projects may overlap.
    """

    name = "github"
    definitions = (GITHUB_RELEASE, GITHUB_RELEASE_CVE)

    def __init__(
        self,
        *,
        projects: Sequence[GithubProject],
        client: ReleaseClientPort,
        cve: Optional[CveClientPort],
        logger: LoggerPort,
        default_limit: int = 25,
        scrape_wait: timedelta = timedelta(seconds=2),
        max_workers: int = 8,
    ) -> None:
        super().__init__(cve=cve, logger=logger, default_limit=default_limit, max_workers=max_workers)
        self._projects = list(projects)
        self._client = client
        self._scrape_wait = scrape_wait

    def projects(self) -> Sequence[GithubProject]:
        return self._projects

    def wait_between_projects(self, stop_event: threading.Event) -> bool:
        seconds = self._scrape_wait.total_seconds()
        if seconds <= 0:
            return stop_event.is_set()
        return stop_event.wait(seconds)

    def collect_project(self, project: GithubProject, stop_event: threading.Event) -> dict[str, MetricTable]:
        tables = self.new_tables()
        release_table = tables[GITHUB_RELEASE.name]
        cve_table = tables[GITHUB_RELEASE_CVE.name]

        self._logger.info(
            f"project[{project.name}]: starting collection",
            collector=self.name,
            project=project.name,
            fetch_type=project.fetch_type,
        )

        if project.fetch_type == "tags":
            releases = self.fetch_tags(project, stop_event)
        else:
            releases = self.fetch_releases(project, stop_event)

        cve_report = self.fetch_cve_report(project) if releases else None

        for release in releases:
            labels = {
                "name": project.name,
                "project": project.project,
                "tag": release.tag,
                "version": release.version,
                "marked": bool_label(project.is_marked(release.version)),
            }
            if release.created_at is not None:
                release_table.add_time(labels, release.created_at)
            else:
                release_table.add_info(labels)

            self.add_cve_facts(
                cve_table,
                {"name": project.name, "project": project.project},
                cve_report,
                project,
                release.version,
            )

        return tables

    def fetch_releases(self, project: GithubProject, stop_event: threading.Event) -> list[DiscoveredVersion]:
        """List the release feed; each release's tag name is the raw version.

        Raises:
            ReleaseSourceError: If the release list cannot be fetched
        """
        self.check_cancelled(stop_event)
        limit = project.resolve_limit(self._default_limit)
        if limit == 0:
            return []
        items = self._client.list_releases(project.owner, project.repository, per_page=limit)

        releases: list[DiscoveredVersion] = []
        for item in items[:limit]:
            tag = self._item_tag(project, item, "tag_name")
            if not tag:
                continue
            version, valid = project.normalize(tag)
            if not valid:
                continue
            releases.append(
                DiscoveredVersion(tag=tag, version=version, created_at=self._release_created(project, item))
            )
        return releases

    def fetch_tags(self, project: GithubProject, stop_event: threading.Event) -> list[DiscoveredVersion]:
        """List repository tags and resolve each surviving tag's commit date.

        Raises:
            ReleaseSourceError: If the tag list cannot be fetched
            CommitLookupError: If any commit lookup fails (aborts the project)
        """
        self.check_cancelled(stop_event)
        limit = project.resolve_limit(self._default_limit)
        if limit == 0:
            return []
        items = self._client.list_tags(project.owner, project.repository, per_page=limit)

        releases: list[DiscoveredVersion] = []
        for item in items[:limit]:
            tag = self._item_tag(project, item, "name")
            if not tag:
                continue
            version, valid = project.normalize(tag)
            if not valid:
                continue
            self.check_cancelled(stop_event)
            sha = (item.get("commit") or {}).get("sha")
            if not sha:
                raise CommitLookupError(tag, "tag does not reference a commit")
            try:
                commit = self._client.get_commit(project.owner, project.repository, sha)
            except ReleaseSourceError as e:
                raise CommitLookupError(tag, str(e), status_code=e.status_code) from e
            releases.append(
                DiscoveredVersion(tag=tag, version=version, created_at=self._commit_created(tag, commit))
            )
        return releases

    def _item_tag(self, project: GithubProject, item: Any, key: str) -> Optional[str]:
        tag = item.get(key) if isinstance(item, dict) else None
        if tag is None or isinstance(tag, str):
            return tag
        self._logger.warning(
            f"project[{project.name}]: skipping item with non-string {key}",
            collector=self.name,
            project=project.name,
            value=repr(tag),
        )
        return None

    def _release_created(self, project: GithubProject, item: dict[str, Any]) -> Optional[datetime]:
        value = item.get("created_at")
        if value is None:
            return None
        try:
            return parse_created(value)
        except ValueError as e:
            self._logger.error(
                f"project[{project.name}]: {e}",
                collector=self.name,
                project=project.name,
                error=str(e),
            )
            return None

    @staticmethod
    def _commit_created(tag: str, commit: dict[str, Any]) -> datetime:
        # /repos/{owner}/{repo}/commits/{sha} nests the git commit under "commit"
        details = commit.get("commit", commit)
        author = details.get("author") or {}
        try:
            return parse_created(author.get("date"))
        except ValueError as e:
            raise CommitLookupError(tag, str(e)) from e
