from __future__ import annotations

import threading
from datetime import timedelta
from typing import Mapping, Optional, Sequence

from ..collectors.stats import StatsCollector
from ..ports import LoggerPort, MetricsServerPort, MetricsSinkPort, ReleaseClientPort
from ..scheduler import CollectorPort, CollectorScheduler


STATS_INTERVAL = timedelta(seconds=10)


class ServeUseCase:
    """Long-running exporter: scrape endpoint plus one scheduler per source type.

    Blocks until the stop event is set, then shuts the endpoint down and
    waits briefly for the scheduler threads.
    """

    def __init__(
        self,
        *,
        collectors: Sequence[CollectorPort],
        intervals: Mapping[str, timedelta],
        sink: MetricsSinkPort,
        server: MetricsServerPort,
        logger: LoggerPort,
        release_client: Optional[ReleaseClientPort] = None,
        stats_interval: timedelta = STATS_INTERVAL,
        join_timeout: float = 5.0,
    ) -> None:
        self._collectors = list(collectors)
        self._intervals = dict(intervals)
        self._sink = sink
        self._server = server
        self._logger = logger
        self._release_client = release_client
        self._stats_interval = stats_interval
        self._join_timeout = join_timeout

    def build_schedulers(self) -> list[CollectorScheduler]:
        """One scheduler per enabled collector, followed by the hidden stats scheduler."""
        schedulers: list[CollectorScheduler] = []
        for collector in self._collectors:
            interval = self._intervals.get(collector.name, timedelta(0))
            if interval <= timedelta(0):
                self._logger.info(
                    f"collector[{collector.name}]: disabled",
                    collector=collector.name,
                )
                continue
            schedulers.append(
                CollectorScheduler(
                    collector=collector,
                    interval=interval,
                    sink=self._sink,
                    logger=self._logger,
                )
            )

        if not schedulers:
            self._logger.warning("no collectors enabled, serving process metrics only")

        # live list; the stats scheduler appended below is hidden and skipped
        stats = StatsCollector(schedulers=schedulers)
        schedulers.append(
            CollectorScheduler(
                collector=stats,
                interval=self._stats_interval,
                sink=self._sink,
                logger=self._logger,
                hidden=True,
            )
        )
        return schedulers

    def execute(self, stop_event: threading.Event) -> list[CollectorScheduler]:
        """Serve until ``stop_event`` is set.

        Raises:
            ConfigurationError: If startup checks fail
        """
        if self._release_client is not None:
            self._release_client.ping()

        schedulers = self.build_schedulers()
        self._server.start()
        try:
            for scheduler in schedulers:
                self._logger.debug(
                    f"collector[{scheduler.name}]: starting (interval {scheduler.interval})",
                    collector=scheduler.name,
                    interval_seconds=scheduler.interval.total_seconds(),
                )
                scheduler.start(stop_event)

            stop_event.wait()
            self._logger.info("shutting down")
        finally:
            stop_event.set()
            self._server.shutdown()
            for scheduler in schedulers:
                if scheduler.thread is not None:
                    scheduler.thread.join(self._join_timeout)
        return schedulers
