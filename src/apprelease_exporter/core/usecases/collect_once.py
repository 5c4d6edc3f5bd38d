from __future__ import annotations

import threading
from datetime import timedelta
from typing import Optional, Sequence

from ..ports import LoggerPort, MetricsSinkPort
from ..scheduler import CollectorPort, CollectorScheduler


class CollectOnceUseCase:
    """Run collectors a single time and publish into the sink."""

    def __init__(
        self,
        *,
        collectors: Sequence[CollectorPort],
        sink: MetricsSinkPort,
        logger: LoggerPort,
    ) -> None:
        self._collectors = list(collectors)
        self._sink = sink
        self._logger = logger

    @property
    def collector_names(self) -> list[str]:
        return [c.name for c in self._collectors]

    def execute(
        self,
        only: Optional[str] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> list[str]:
        """Collect and publish.

        Args:
            only: Restrict the run to the collector with this name
            stop_event: Cancellation signal

        Returns:
            Names of the collectors that published a snapshot

        Raises:
            ValueError: If ``only`` names no known collector
        """
        selected = self._collectors
        if only is not None:
            selected = [c for c in self._collectors if c.name == only]
            if not selected:
                raise ValueError(
                    f"unknown collector {only!r}, expected one of {', '.join(self.collector_names)}"
                )

        stop_event = stop_event or threading.Event()
        published: list[str] = []
        for collector in selected:
            scheduler = CollectorScheduler(
                collector=collector,
                interval=timedelta(0),
                sink=self._sink,
                logger=self._logger,
            )
            if scheduler.run_once(stop_event) is not None:
                published.append(collector.name)
        return published
