"""Tests for Pydantic BaseSettings configuration."""
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from apprelease_exporter.app.config import AppConfig, CacheConfig, LoggingConfig, ScrapeConfig


def test_defaults(monkeypatch):
    monkeypatch.delenv("APPRELEASE_EXPORTER_CACHE__PATH", raising=False)

    config = AppConfig()

    assert config.config_path is None
    assert config.scrape.time == timedelta(hours=12)
    assert config.scrape.docker_interval == timedelta(hours=12)
    assert config.scrape.github_interval == timedelta(hours=12)
    assert config.cve.url is None
    assert config.github.token is None
    assert config.github.scrape_wait == timedelta(seconds=2)
    assert config.github.limit == 25
    assert config.docker.limit == 25
    assert config.cache.enabled is True
    assert config.cache.ttl == timedelta(hours=24)
    assert isinstance(config.cache.path, Path)
    assert config.server.bind == ":8080"
    assert config.http.timeout == 30.0
    assert config.collector.max_workers == 8
    assert config.logging.level == "INFO"


def test_nested_environment_variables(monkeypatch, tmp_path):
    monkeypatch.setenv("APPRELEASE_EXPORTER_CONFIG_PATH", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("APPRELEASE_EXPORTER_SCRAPE__TIME", "6h")
    monkeypatch.setenv("APPRELEASE_EXPORTER_SCRAPE__TIME_GITHUB", "30m")
    monkeypatch.setenv("APPRELEASE_EXPORTER_CVE__URL", "https://cve.example.org")
    monkeypatch.setenv("APPRELEASE_EXPORTER_GITHUB__TOKEN", "ghp_x")
    monkeypatch.setenv("APPRELEASE_EXPORTER_CACHE__TTL", "1h")
    monkeypatch.setenv("APPRELEASE_EXPORTER_SERVER__BIND", ":9140")
    monkeypatch.setenv("APPRELEASE_EXPORTER_LOGGING__DEBUG", "true")

    config = AppConfig()

    assert config.config_path == tmp_path / "config.yaml"
    assert config.scrape.docker_interval == timedelta(hours=6)
    assert config.scrape.github_interval == timedelta(minutes=30)
    assert config.cve.url == "https://cve.example.org"
    assert config.github.token == "ghp_x"
    assert config.cache.ttl == timedelta(hours=1)
    assert config.server.bind == ":9140"
    assert config.logging.level == "DEBUG"


def test_zero_interval_disables_a_source():
    scrape = ScrapeConfig(time="12h", time_docker="0")

    assert scrape.docker_interval == timedelta(0)
    assert scrape.github_interval == timedelta(hours=12)


def test_blank_cve_url_disables_correlation():
    config = AppConfig(cve={"url": "  "})

    assert config.cve.url is None


def test_verbose_lowers_level():
    assert LoggingConfig(verbose=True).level == "DEBUG"


def test_invalid_duration_is_rejected():
    with pytest.raises(ValidationError):
        CacheConfig(ttl="soon")


def test_unknown_top_level_setting_is_rejected():
    with pytest.raises(ValidationError):
        AppConfig(unknown=True)


def test_config_is_frozen():
    config = AppConfig()

    with pytest.raises(ValidationError):
        config.config_path = Path("other.yaml")
