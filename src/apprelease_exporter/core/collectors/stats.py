from __future__ import annotations

import threading
from typing import Optional, Protocol, Sequence

from ..domain.models import STATS, MetricTable


class _TimedScheduler(Protocol):
    name: str
    hidden: bool

    @property
    def last_scrape_duration(self) -> Optional[float]:
        ...


class StatsCollector:
    """Republishes each visible scheduler's last scrape duration."""

    name = "Collector"

    def __init__(self, *, schedulers: Sequence[_TimedScheduler]) -> None:
        # live view: schedulers may be registered after construction
        self._schedulers = schedulers

    def collect(self, stop_event: threading.Event) -> dict[str, MetricTable]:
        table = STATS.new_table()
        for scheduler in self._schedulers:
            if scheduler.hidden or scheduler.last_scrape_duration is None:
                continue
            table.add({"name": scheduler.name, "type": "collectorDuration"}, scheduler.last_scrape_duration)
        return {STATS.name: table}
