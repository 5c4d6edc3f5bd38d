from __future__ import annotations

import enum
import threading
import time
from datetime import timedelta
from typing import Optional, Protocol

from .domain.models import MetricTable
from .ports import LoggerPort, MetricsSinkPort


class CollectorPort(Protocol):
    name: str

    def collect(self, stop_event: threading.Event) -> dict[str, MetricTable]:
        ...


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PUBLISHING = "publishing"
    SLEEPING = "sleeping"


class CollectorScheduler:
    """Runs one collector on a fixed interval and publishes its tables.

    A cycle is ``IDLE -> COLLECTING -> PUBLISHING -> SLEEPING``. Tables are
    handed to the sink in a single publish call, so readers only ever see a
    complete cycle. Slow cycles simply push back the next one.
    """

    def __init__(
        self,
        *,
        collector: CollectorPort,
        interval: timedelta,
        sink: MetricsSinkPort,
        logger: LoggerPort,
        hidden: bool = False,
    ) -> None:
        self.collector = collector
        self.interval = interval
        self.hidden = hidden
        self.state = SchedulerState.IDLE
        self._sink = sink
        self._logger = logger
        self._last_scrape_duration: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return self.collector.name

    @property
    def last_scrape_duration(self) -> Optional[float]:
        """Duration of the last completed cycle in seconds."""
        return self._last_scrape_duration

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def run_once(self, stop_event: Optional[threading.Event] = None) -> Optional[float]:
        """Run a single collect/publish cycle.

        Returns:
            Cycle duration in seconds, or None if nothing was published
        """
        stop_event = stop_event or threading.Event()
        started = time.monotonic()

        self.state = SchedulerState.COLLECTING
        self._log("info", f"collector[{self.name}]: starting metrics collection")
        try:
            tables = self.collector.collect(stop_event)
        except Exception as e:
            self.state = SchedulerState.IDLE
            self._logger.exception(
                f"collector[{self.name}]: collection failed",
                collector=self.name,
                error=str(e),
            )
            return None

        if stop_event.is_set():
            self.state = SchedulerState.IDLE
            self._log("info", f"collector[{self.name}]: stopped, discarding partial cycle")
            return None

        self.state = SchedulerState.PUBLISHING
        self._sink.publish(tables)

        duration = time.monotonic() - started
        self._last_scrape_duration = duration
        self._log(
            "info",
            f"collector[{self.name}]: finished metrics collection (duration: {duration:.3f}s)",
            duration=duration,
        )
        return duration

    def run_forever(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.run_once(stop_event)
            self.state = SchedulerState.SLEEPING
            self._log("debug", f"collector[{self.name}]: sleeping {self.interval}")
            if stop_event.wait(self.interval.total_seconds()):
                break
            self.state = SchedulerState.IDLE
        self.state = SchedulerState.IDLE

    def start(self, stop_event: threading.Event) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.run_forever,
            args=(stop_event,),
            name=f"collector-{self.name}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def _log(self, level: str, message: str, **fields: object) -> None:
        if self.hidden:
            level = "debug"
        getattr(self._logger, level)(message, collector=self.name, **fields)
