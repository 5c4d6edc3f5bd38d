from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .version_filter import ProjectFilter


DEFAULT_REGISTRY_URL = "https://registry-1.docker.io/"

FetchType = Literal["releases", "tags"]


class CveTarget(BaseModel):
    """Vendor/product pair used to query the vulnerability search."""

    model_config = ConfigDict(frozen=True)

    vendor: str = ""
    product: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.vendor and self.product)


class Project(BaseModel):
    """Fields shared by every project type."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    filter: ProjectFilter = Field(default_factory=ProjectFilter)
    mark: list[str] = Field(default_factory=list)
    cve: CveTarget = Field(default_factory=CveTarget)
    limit: Optional[int] = None

    def normalize(self, raw: str) -> tuple[str, bool]:
        return self.filter.normalize(raw)

    def is_marked(self, version: str) -> bool:
        """Case-insensitive exact match against the mark list."""
        version = version.lower()
        return any(mark.lower() == version for mark in self.mark)

    def resolve_limit(self, default: int) -> int:
        limit = self.limit if self.limit is not None else default
        return max(limit, 0)


class RegistryCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    username: str = ""
    password: str = ""


class DockerProject(Project):
    image: str
    registry: RegistryCredentials = Field(default_factory=RegistryCredentials)

    def registry_settings(self) -> tuple[str, str, str]:
        """Return (url, username, password); public registry when no url is set."""
        if self.registry.url:
            return self.registry.url, self.registry.username, self.registry.password
        return DEFAULT_REGISTRY_URL, "", ""


class GithubProject(Project):
    project: str
    fetch_type: FetchType = Field(default="releases", alias="fetchType")

    @field_validator("project")
    @classmethod
    def _owner_and_repository(cls, value: str) -> str:
        owner, _, repository = value.strip().partition("/")
        if not owner or not repository:
            raise ValueError(f"project must be 'owner/repository', got {value!r}")
        return f"{owner}/{repository}"

    @field_validator("fetch_type", mode="before")
    @classmethod
    def _normalize_fetch_type(cls, value: object) -> object:
        if value is None:
            return "releases"
        if isinstance(value, str):
            return "tags" if value.strip().lower() in ("tag", "tags") else "releases"
        return value

    @property
    def owner(self) -> str:
        return self.project.split("/", 1)[0]

    @property
    def repository(self) -> str:
        return self.project.split("/", 1)[1]


class ProjectsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    docker: list[DockerProject] = Field(default_factory=list)
    github: list[GithubProject] = Field(default_factory=list)

    @field_validator("docker", "github", mode="before")
    @classmethod
    def _empty_section(cls, value: object) -> object:
        return [] if value is None else value


class ExporterConfig(BaseModel):
    """Root of the YAML project file."""

    model_config = ConfigDict(frozen=True)

    projects: ProjectsConfig = Field(default_factory=ProjectsConfig)

    @field_validator("projects", mode="before")
    @classmethod
    def _empty_projects(cls, value: object) -> object:
        return {} if value is None else value
