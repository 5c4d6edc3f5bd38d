from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs
from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..shared.durations import Duration


APP_NAME = "apprelease_exporter"


def _default_cache_dir() -> Path:
    """Get default cache directory using platformdirs."""
    return Path(PlatformDirs(appname=APP_NAME, appauthor=False).user_cache_dir)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    debug: bool = Field(default=False, description="Debug mode (DEBUG level, HTTP library output)")
    verbose: bool = Field(default=False, description="Verbose mode (per-version detail events)")
    json_output: bool = Field(default=False, description="Emit log records as JSON lines")
    logger_name: str = Field(default=APP_NAME, description="Logger name")
    file: Optional[Path] = Field(default=None, description="Additional JSONL log file")

    @computed_field
    @property
    def level(self) -> str:
        return "DEBUG" if (self.debug or self.verbose) else "INFO"


class ScrapeConfig(BaseModel):
    """Collection intervals. A zero or negative interval disables a collector."""

    time: Duration = Field(default=timedelta(hours=12), description="Default scrape interval")
    time_docker: Optional[Duration] = Field(default=None, description="Docker scrape interval")
    time_github: Optional[Duration] = Field(default=None, description="GitHub scrape interval")

    @computed_field
    @property
    def docker_interval(self) -> timedelta:
        return self.time_docker if self.time_docker is not None else self.time

    @computed_field
    @property
    def github_interval(self) -> timedelta:
        return self.time_github if self.time_github is not None else self.time


class CveConfig(BaseModel):
    """cve-search configuration."""

    url: Optional[str] = Field(
        default=None,
        description="Base URL of a cve-search instance (unset disables CVE correlation)",
    )

    @field_validator("url")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class GitHubConfig(BaseModel):
    """GitHub configuration."""

    token: Optional[str] = Field(default=None, description="GitHub personal access token")
    scrape_wait: Duration = Field(default=timedelta(seconds=2), description="Pause between projects")
    limit: int = Field(default=25, ge=0, description="Default number of releases per project")


class DockerConfig(BaseModel):
    """Container registry configuration."""

    limit: int = Field(default=25, ge=0, description="Default number of tags per project")


class CacheConfig(BaseModel):
    """CVE report cache configuration."""

    enabled: bool = Field(default=True, description="Persist CVE reports on disk")
    path: Path = Field(default_factory=_default_cache_dir, description="Cache directory")
    ttl: Duration = Field(default=timedelta(hours=24), description="Age after which a report is refetched")


class ServerConfig(BaseModel):
    bind: str = Field(default=":8080", description="Server address for /metrics")


class HttpConfig(BaseModel):
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")


class CollectorConfig(BaseModel):
    max_workers: int = Field(default=8, ge=1, description="Concurrent projects per collection cycle")


class AppConfig(BaseSettings):
    """Root application configuration.

    All configuration is loaded from environment variables with APPRELEASE_EXPORTER_ prefix.
    Use double underscore for nested config: APPRELEASE_EXPORTER_SCRAPE__TIME

    Example env vars:
        export APPRELEASE_EXPORTER_CONFIG_PATH=/etc/apprelease-exporter/config.yaml
        export APPRELEASE_EXPORTER_SCRAPE__TIME=6h
        export APPRELEASE_EXPORTER_SCRAPE__TIME_GITHUB=1h
        export APPRELEASE_EXPORTER_CVE__URL=https://cve.example.org
        export APPRELEASE_EXPORTER_GITHUB__TOKEN=ghp_xxxxxxxxxxxxx
        export APPRELEASE_EXPORTER_SERVER__BIND=:9140
    """

    model_config = SettingsConfigDict(
        env_prefix="APPRELEASE_EXPORTER_",
        env_nested_delimiter="__",
        frozen=True,
        extra="forbid",
    )

    config_path: Optional[Path] = Field(default=None, description="YAML project file")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scrape: ScrapeConfig = Field(default_factory=ScrapeConfig)
    cve: CveConfig = Field(default_factory=CveConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
