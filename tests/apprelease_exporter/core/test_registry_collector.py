"""Tests for RegistryCollector discovery, ordering and failure isolation."""
import json
import threading
from datetime import datetime, timezone

import pytest

from apprelease_exporter.core.collectors import RegistryCollector
from apprelease_exporter.core.collectors.registry import parse_created
from apprelease_exporter.core.domain.exceptions import RegistryError
from apprelease_exporter.core.domain.models import CveEntry
from apprelease_exporter.core.domain.projects import DockerProject
from apprelease_exporter.core.services import CveReport

from helpers import FakeLogger


class FakeRegistryClient:
    def __init__(self, tags, history=None, failing_tags=()):
        self._tags = tags
        self._history = history or {}
        self._failing_tags = set(failing_tags)
        self.manifest_calls: list[str] = []

    def tags(self, image):
        if isinstance(self._tags, Exception):
            raise self._tags
        return list(self._tags)

    def manifest_history(self, image, tag):
        self.manifest_calls.append(tag)
        if tag in self._failing_tags:
            raise RegistryError("manifest unknown", status_code=404)
        return self._history.get(tag, [])


class FakePool:
    def __init__(self, clients):
        self.clients = clients
        self.requested: list[tuple[str, str, str]] = []

    def client_for(self, url, username, password):
        self.requested.append((url, username, password))
        return self.clients[url]


class FakeCve:
    def __init__(self, report=None, enabled=True):
        self.report = report
        self.enabled = enabled
        self.calls: list[tuple[str, str]] = []

    def fetch_report(self, vendor, product):
        self.calls.append((vendor, product))
        return self.report


def _v1(created):
    return json.dumps({"created": created})


def _collector(projects, pool, cve=None, logger=None, **kwargs):
    return RegistryCollector(
        projects=projects,
        registries=pool,
        cve=cve,
        logger=logger or FakeLogger(),
        **kwargs,
    )


def _values(table):
    return {dict(p.labels)["tag"]: p.value for p in table.points()}


def test_natural_order_and_limit():
    client = FakeRegistryClient(["v1.9", "v1.10", "v1.2"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    project = DockerProject(name="app", image="app", limit=2)

    tables = _collector([project], pool).collect(threading.Event())

    assert set(_values(tables["apprelease_project_docker_release"])) == {"v1.10", "v1.9"}
    assert client.manifest_calls == ["v1.10", "v1.9"]


def test_filtered_tags_never_fetch_manifests():
    client = FakeRegistryClient(["1.0", "latest", "1.1-rc1"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    project = DockerProject.model_validate({
        "name": "app",
        "image": "app",
        "filter": {"whitelist": r"^\d+\.\d+$"},
    })

    tables = _collector([project], pool).collect(threading.Event())

    assert list(_values(tables["apprelease_project_docker_release"])) == ["1.0"]
    assert client.manifest_calls == ["1.0"]


def test_latest_history_timestamp_wins_and_bad_entries_are_skipped():
    history = {"1.0": [
        _v1("2020-01-01T00:00:00Z"),
        "{not json",
        _v1("2021-06-01T12:00:00.123456789Z"),
        {"created": "2019-01-01T00:00:00Z"},
        {"no_created": True},
    ]}
    client = FakeRegistryClient(["1.0"], history)
    pool = FakePool({"https://registry-1.docker.io/": client})
    logger = FakeLogger()

    tables = _collector([DockerProject(name="app", image="app")], pool, logger=logger).collect(threading.Event())

    expected = datetime(2021, 6, 1, 12, 0, 0, tzinfo=timezone.utc).timestamp()
    assert _values(tables["apprelease_project_docker_release"]) == {"1.0": float(int(expected))}
    assert len(logger.messages("error")) == 2


def test_manifest_failure_reports_tag_without_timestamp():
    client = FakeRegistryClient(["1.0", "1.1"], {"1.1": [_v1("2022-01-01T00:00:00Z")]}, failing_tags=["1.0"])
    pool = FakePool({"https://registry-1.docker.io/": client})

    tables = _collector([DockerProject(name="app", image="app")], pool).collect(threading.Event())

    values = _values(tables["apprelease_project_docker_release"])
    assert values["1.0"] == 1.0
    assert values["1.1"] > 1.0


def test_partial_failure_isolation():
    good = FakeRegistryClient(["2.0"])
    bad = FakeRegistryClient(RegistryError("unauthorized", status_code=401))
    pool = FakePool({"https://good.example/": good, "https://bad.example/": bad})
    projects = [
        DockerProject.model_validate({"name": "bad", "image": "x", "registry": {"url": "https://bad.example/"}}),
        DockerProject.model_validate({"name": "good", "image": "y", "registry": {"url": "https://good.example/"}}),
    ]
    logger = FakeLogger()

    tables = _collector(projects, pool, logger=logger).collect(threading.Event())

    names = {dict(p.labels)["name"] for p in tables["apprelease_project_docker_release"].points()}
    assert names == {"good"}
    assert any("project[bad]" in m for m in logger.messages("error"))


def test_marked_label_and_cve_facts():
    report = CveReport("nginx", "nginx", {
        "1.25": {"CVE-1": CveEntry(id="CVE-1", cvss=9.8)},
    })
    cve = FakeCve(report)
    client = FakeRegistryClient(["1.25", "1.24"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    project = DockerProject.model_validate({
        "name": "nginx",
        "image": "nginx",
        "mark": ["1.25"],
        "cve": {"vendor": "nginx", "product": "nginx"},
    })

    tables = _collector([project], pool, cve=cve).collect(threading.Event())

    marked = {dict(p.labels)["tag"]: dict(p.labels)["marked"] for p in tables["apprelease_project_docker_release"].points()}
    assert marked == {"1.25": "true", "1.24": "false"}
    [point] = list(tables["apprelease_project_docker_release_cve"].points())
    assert dict(point.labels)["cve"] == "CVE-1"
    assert dict(point.labels)["version"] == "1.25"
    assert point.value == 9.8
    assert cve.calls == [("nginx", "nginx")]


def test_cve_report_skipped_when_no_tag_survives():
    cve = FakeCve(CveReport("a", "b", {}))
    client = FakeRegistryClient(["latest"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    project = DockerProject.model_validate({
        "name": "app",
        "image": "app",
        "filter": {"blacklist": "latest"},
        "cve": {"vendor": "a", "product": "b"},
    })

    _collector([project], pool, cve=cve).collect(threading.Event())

    assert cve.calls == []


def test_cve_disabled_client_is_not_called():
    cve = FakeCve(enabled=False)
    client = FakeRegistryClient(["1.0"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    project = DockerProject.model_validate({"name": "a", "image": "a", "cve": {"vendor": "a", "product": "b"}})

    tables = _collector([project], pool, cve=cve).collect(threading.Event())

    assert cve.calls == []
    assert len(tables["apprelease_project_docker_release_cve"]) == 0


def test_stop_event_cancels_collection():
    client = FakeRegistryClient(["1.0"])
    pool = FakePool({"https://registry-1.docker.io/": client})
    stop = threading.Event()
    stop.set()

    tables = _collector([DockerProject(name="a", image="a")], pool).collect(stop)

    assert len(tables["apprelease_project_docker_release"]) == 0
    assert client.manifest_calls == []


def test_default_limit_applies_without_project_limit():
    client = FakeRegistryClient([f"1.{i}" for i in range(10)])
    pool = FakePool({"https://registry-1.docker.io/": client})

    tables = _collector([DockerProject(name="a", image="a")], pool, default_limit=3).collect(threading.Event())

    assert set(_values(tables["apprelease_project_docker_release"])) == {"1.9", "1.8", "1.7"}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2021-06-01T12:00:00Z", datetime(2021, 6, 1, 12, tzinfo=timezone.utc)),
        ("2021-06-01T12:00:00.5Z", datetime(2021, 6, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)),
        ("2021-06-01T12:00:00.123456789+00:00", datetime(2021, 6, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)),
        ("2021-06-01T12:00:00", datetime(2021, 6, 1, 12, tzinfo=timezone.utc)),
    ],
)
def test_parse_created(value, expected):
    assert parse_created(value) == expected


@pytest.mark.parametrize("value", [None, "", "yesterday", 12])
def test_parse_created_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_created(value)


class PayloadCve:
    enabled = True

    def __init__(self, payload, logger):
        self.payload = payload
        self.logger = logger

    def fetch_report(self, vendor, product):
        return CveReport.from_payload(self.payload, vendor=vendor, product=product, logger=self.logger)


def test_malformed_cve_record_keeps_release_and_cve_facts():
    logger = FakeLogger()
    cve = PayloadCve([
        {"id": "CVE-1", "vulnerable_product": 5},
        {"id": "CVE-2", "vulnerable_product": ["cpe:2.3:a:acme:app:1.0:*"]},
    ], logger)
    pool = FakePool({"https://registry-1.docker.io/": FakeRegistryClient(["1.0"])})
    project = DockerProject.model_validate({
        "name": "app",
        "image": "acme/app",
        "cve": {"vendor": "acme", "product": "app"},
    })

    tables = _collector([project], pool, cve=cve, logger=logger).collect(threading.Event())

    assert _values(tables["apprelease_project_docker_release"]) == {"1.0": 1.0}
    [point] = list(tables["apprelease_project_docker_release_cve"].points())
    assert dict(point.labels)["cve"] == "CVE-2"
    assert logger.messages("warning") == ["cve_record_skipped"]
