from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Mapping, Optional, Sequence

from ..domain.exceptions import AppReleaseError, CollectionCancelledError
from ..domain.models import MetricDefinition, MetricTable, cve_labels
from ..domain.projects import Project
from ..ports import CveClientPort, LoggerPort
from ..services.cve_report import CveReport


class SourceCollector(ABC):
    """Base class for collectors that turn configured projects into metrics.

    One call to :meth:`collect` is one cycle: every project is handled on its
    own worker, workers are joined, and the merged tables are returned to the
    scheduler for publishing. A failing project is logged and contributes no
    facts; it never aborts its siblings.

    Subclasses implement:
    - projects(): the configured projects of this source type
    - collect_project(): discovery for a single project
    """

    name: str = ""
    definitions: tuple[MetricDefinition, ...] = ()

    def __init__(
        self,
        *,
        cve: Optional[CveClientPort],
        logger: LoggerPort,
        default_limit: int,
        max_workers: int = 8,
    ) -> None:
        self._cve = cve
        self._logger = logger
        self._default_limit = default_limit
        self._max_workers = max(1, max_workers)

    @abstractmethod
    def projects(self) -> Sequence[Project]:
        ...

    @abstractmethod
    def collect_project(self, project: Project, stop_event: threading.Event) -> dict[str, MetricTable]:
        """Collect one project and return its own metric tables.

        Raises:
            AppReleaseError: Any failure scoped to this project
        """
        ...

    def new_tables(self) -> dict[str, MetricTable]:
        return {d.name: d.new_table() for d in self.definitions}

    def collect(self, stop_event: threading.Event) -> dict[str, MetricTable]:
        """Run one collection cycle over all projects."""
        tables = self.new_tables()
        projects = list(self.projects())
        if not projects:
            return tables

        futures: dict[Future[dict[str, MetricTable]], Project] = {}
        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(projects)),
            thread_name_prefix=f"{self.name}-project",
        ) as pool:
            for position, project in enumerate(projects):
                if stop_event.is_set():
                    break
                if position > 0 and self.wait_between_projects(stop_event):
                    break
                futures[pool.submit(self.collect_project, project, stop_event)] = project

            for future in as_completed(futures):
                project = futures[future]
                try:
                    project_tables = future.result()
                except CollectionCancelledError:
                    self._logger.debug(
                        "project_collection_cancelled",
                        collector=self.name,
                        project=project.name,
                    )
                    continue
                except AppReleaseError as e:
                    self._logger.error(
                        f"project[{project.name}]: {e}",
                        collector=self.name,
                        project=project.name,
                        error=str(e),
                    )
                    continue
                except Exception as e:
                    self._logger.exception(
                        f"project[{project.name}]: unexpected error",
                        collector=self.name,
                        project=project.name,
                        error=str(e),
                    )
                    continue
                self._merge(tables, project_tables)

        return tables

    def wait_between_projects(self, stop_event: threading.Event) -> bool:
        """Hook called on the scheduling thread between project submissions.

        Returns:
            True if the stop signal was set while waiting
        """
        return stop_event.is_set()

    def fetch_cve_report(self, project: Project) -> Optional[CveReport]:
        if self._cve is None or not self._cve.enabled or not project.cve.enabled:
            return None
        self._logger.info(
            f"project[{project.name}]: fetching cve report",
            collector=self.name,
            project=project.name,
        )
        return self._cve.fetch_report(project.cve.vendor, project.cve.product)

    def add_cve_facts(
        self,
        table: MetricTable,
        base_labels: Mapping[str, str],
        report: Optional[CveReport],
        project: Project,
        version: str,
    ) -> None:
        if report is None:
            return
        entries = report.get_report_by_version(version)
        self._logger.debug(
            f"project[{project.name}]: found {len(entries)} cve reports for version {version}",
            collector=self.name,
            project=project.name,
        )
        for entry in entries:
            table.add({**base_labels, **cve_labels(entry, version)}, entry.cvss)

    @staticmethod
    def check_cancelled(stop_event: threading.Event) -> None:
        if stop_event.is_set():
            raise CollectionCancelledError("collection cancelled")

    @staticmethod
    def _merge(tables: dict[str, MetricTable], project_tables: Mapping[str, MetricTable]) -> None:
        for name, table in project_tables.items():
            tables[name].extend(list(table.points()))
