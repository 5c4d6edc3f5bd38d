from __future__ import annotations

import threading
from typing import Iterable, Mapping

from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector
from prometheus_client.core import GaugeMetricFamily, Metric

from ..core.domain.models import MetricTable


class MetricsSnapshotStore:
    """In-process metric snapshot exposed as a prometheus_client collector.

    ``publish`` swaps whole tables under a lock; ``collect`` copies the
    current mapping under the same lock, so a scrape always sees each
    published batch either completely or not at all.
    """

    def __init__(self) -> None:
        self._tables: dict[str, MetricTable] = {}
        self._lock = threading.Lock()

    def publish(self, tables: Mapping[str, MetricTable]) -> None:
        with self._lock:
            updated = dict(self._tables)
            updated.update(tables)
            self._tables = updated

    def reset(self) -> None:
        with self._lock:
            self._tables = {}

    def snapshot(self) -> dict[str, MetricTable]:
        with self._lock:
            return dict(self._tables)

    def describe(self) -> Iterable[Metric]:
        # metric names vary with configuration; skip registration-time checks
        return []

    def collect(self) -> Iterable[Metric]:
        for table in self.snapshot().values():
            family = GaugeMetricFamily(
                table.name,
                table.definition.documentation,
                labels=list(table.definition.label_names),
            )
            for point in table.points():
                family.add_metric([value for _, value in point.labels], point.value)
            yield family


def build_registry(store: MetricsSnapshotStore, *, process_metrics: bool = True) -> CollectorRegistry:
    """Create a dedicated registry holding the snapshot store."""
    registry = CollectorRegistry()
    registry.register(store)
    if process_metrics:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
    return registry
