from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Mapping


@dataclass(frozen=True)
class DiscoveredVersion:
    """A version found in a registry or release feed during one cycle."""
    tag: str
    version: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class CveAccess:
    authentication: str = ""
    complexity: str = ""
    vector: str = ""


@dataclass(frozen=True)
class CveImpact:
    availability: str = ""
    confidentiality: str = ""
    integrity: str = ""


@dataclass(frozen=True)
class CveEntry:
    """Short form of one vulnerability record, as indexed per version."""
    id: str
    cvss: float
    cwe: str = ""
    vector: str = ""
    access: CveAccess = field(default_factory=CveAccess)
    impact: CveImpact = field(default_factory=CveImpact)


@dataclass(frozen=True)
class MetricPoint:
    labels: tuple[tuple[str, str], ...]
    value: float


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    documentation: str
    label_names: tuple[str, ...]

    def new_table(self) -> "MetricTable":
        return MetricTable(self)


class MetricTable:
    """Label-set keyed values for one metric, built during a single cycle.

    Adding the same label set twice keeps the last value.
    """

    def __init__(self, definition: MetricDefinition) -> None:
        self.definition = definition
        self._values: dict[tuple[str, ...], float] = {}

    @property
    def name(self) -> str:
        return self.definition.name

    def add(self, labels: Mapping[str, str], value: float) -> None:
        missing = set(self.definition.label_names) - set(labels)
        if missing:
            raise ValueError(f"{self.name}: missing labels {sorted(missing)}")
        key = tuple(str(labels[n]) for n in self.definition.label_names)
        self._values[key] = float(value)

    def add_time(self, labels: Mapping[str, str], value: datetime) -> None:
        self.add(labels, float(int(value.timestamp())))

    def add_info(self, labels: Mapping[str, str]) -> None:
        self.add(labels, 1.0)

    def extend(self, points: "list[MetricPoint]") -> None:
        for point in points:
            self.add(dict(point.labels), point.value)

    def points(self) -> Iterator[MetricPoint]:
        names = self.definition.label_names
        for key, value in self._values.items():
            yield MetricPoint(labels=tuple(zip(names, key)), value=value)

    def __len__(self) -> int:
        return len(self._values)


CVE_LABELS = (
    "version",
    "cve",
    "cwe",
    "vector",
    "accessAuthentication",
    "accessComplexity",
    "accessVector",
    "impactAvailability",
    "impactConfidentiality",
    "impactIntegrity",
)

DOCKER_RELEASE = MetricDefinition(
    name="apprelease_project_docker_release",
    documentation="AppRelease project docker information",
    label_names=("name", "image", "tag", "version", "marked"),
)

DOCKER_RELEASE_CVE = MetricDefinition(
    name="apprelease_project_docker_release_cve",
    documentation="AppRelease project docker cve reports",
    label_names=("name", "image") + CVE_LABELS,
)

GITHUB_RELEASE = MetricDefinition(
    name="apprelease_project_github_release",
    documentation="AppRelease project github release information",
    label_names=("name", "project", "tag", "version", "marked"),
)

GITHUB_RELEASE_CVE = MetricDefinition(
    name="apprelease_project_github_release_cve",
    documentation="AppRelease project github release cve reports",
    label_names=("name", "project") + CVE_LABELS,
)

STATS = MetricDefinition(
    name="apprelease_stats",
    documentation="AppRelease exporter statistics",
    label_names=("name", "type"),
)


def bool_label(value: bool) -> str:
    return "true" if value else "false"


def cve_labels(entry: CveEntry, version: str) -> dict[str, str]:
    return {
        "version": version,
        "cve": entry.id,
        "cwe": entry.cwe,
        "vector": entry.vector,
        "accessAuthentication": entry.access.authentication,
        "accessComplexity": entry.access.complexity,
        "accessVector": entry.access.vector,
        "impactAvailability": entry.impact.availability,
        "impactConfidentiality": entry.impact.confidentiality,
        "impactIntegrity": entry.impact.integrity,
    }
