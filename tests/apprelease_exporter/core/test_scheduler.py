"""Tests for CollectorScheduler cycles and the stats collector."""
import threading
from datetime import timedelta

from apprelease_exporter.core.collectors import StatsCollector
from apprelease_exporter.core.domain.models import DOCKER_RELEASE
from apprelease_exporter.core.scheduler import CollectorScheduler, SchedulerState
from apprelease_exporter.infra.metrics_store import MetricsSnapshotStore

from helpers import FakeLogger


class FakeCollector:
    def __init__(self, name="docker", tables=None, error=None):
        self.name = name
        self._tables = tables
        self._error = error
        self.calls = 0

    def collect(self, stop_event):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._tables if self._tables is not None else {}


class RecordingSink:
    def __init__(self):
        self.published: list[dict] = []

    def publish(self, tables):
        self.published.append(dict(tables))


def _table(tag):
    table = DOCKER_RELEASE.new_table()
    table.add_info({"name": "a", "image": "a", "tag": tag, "version": tag, "marked": "false"})
    return table


def test_run_once_publishes_in_one_call_and_records_duration():
    tables = {DOCKER_RELEASE.name: _table("1.0")}
    sink = RecordingSink()
    scheduler = CollectorScheduler(
        collector=FakeCollector(tables=tables),
        interval=timedelta(hours=1),
        sink=sink,
        logger=FakeLogger(),
    )

    duration = scheduler.run_once()

    assert sink.published == [tables]
    assert duration is not None and duration >= 0
    assert scheduler.last_scrape_duration == duration
    assert scheduler.state is SchedulerState.PUBLISHING


def test_failed_cycle_keeps_previous_snapshot():
    store = MetricsSnapshotStore()
    store.publish({DOCKER_RELEASE.name: _table("1.0")})
    logger = FakeLogger()
    scheduler = CollectorScheduler(
        collector=FakeCollector(error=RuntimeError("boom")),
        interval=timedelta(hours=1),
        sink=store,
        logger=logger,
    )

    assert scheduler.run_once() is None

    assert len(store.snapshot()[DOCKER_RELEASE.name]) == 1
    assert scheduler.last_scrape_duration is None
    assert logger.messages("exception") == ["collector[docker]: collection failed"]


def test_cycle_interrupted_by_stop_is_discarded():
    stop = threading.Event()

    class StoppingCollector(FakeCollector):
        def collect(self, stop_event):
            stop_event.set()
            return {DOCKER_RELEASE.name: _table("1.0")}

    sink = RecordingSink()
    scheduler = CollectorScheduler(
        collector=StoppingCollector(),
        interval=timedelta(hours=1),
        sink=sink,
        logger=FakeLogger(),
    )

    assert scheduler.run_once(stop) is None
    assert sink.published == []


def test_run_forever_stops_on_event():
    stop = threading.Event()
    collector = FakeCollector()

    class StopAfterFirstSink(RecordingSink):
        def publish(self, tables):
            super().publish(tables)
            stop.set()

    scheduler = CollectorScheduler(
        collector=collector,
        interval=timedelta(hours=1),
        sink=StopAfterFirstSink(),
        logger=FakeLogger(),
    )

    thread = scheduler.start(stop)
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.daemon
    assert thread.name == "collector-docker"
    assert collector.calls == 1
    assert scheduler.state is SchedulerState.IDLE


def test_hidden_scheduler_logs_at_debug_only():
    logger = FakeLogger()
    scheduler = CollectorScheduler(
        collector=FakeCollector(name="Collector"),
        interval=timedelta(seconds=10),
        sink=RecordingSink(),
        logger=logger,
        hidden=True,
    )

    scheduler.run_once()

    assert {level for level, _, _ in logger.records} == {"debug"}


def test_stats_collector_reports_visible_durations():
    visible = CollectorScheduler(
        collector=FakeCollector(name="docker"),
        interval=timedelta(hours=1),
        sink=RecordingSink(),
        logger=FakeLogger(),
    )
    never_ran = CollectorScheduler(
        collector=FakeCollector(name="github"),
        interval=timedelta(hours=1),
        sink=RecordingSink(),
        logger=FakeLogger(),
    )
    schedulers = [visible, never_ran]
    stats = StatsCollector(schedulers=schedulers)
    hidden = CollectorScheduler(
        collector=stats,
        interval=timedelta(seconds=10),
        sink=RecordingSink(),
        logger=FakeLogger(),
        hidden=True,
    )
    schedulers.append(hidden)

    visible.run_once()
    hidden.run_once()
    tables = stats.collect(threading.Event())

    points = list(tables["apprelease_stats"].points())
    assert [dict(p.labels) for p in points] == [{"name": "docker", "type": "collectorDuration"}]
    assert points[0].value == visible.last_scrape_duration
