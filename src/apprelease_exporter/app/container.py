from __future__ import annotations

from dependency_injector import containers, providers

from ..core.collectors import RegistryCollector, ReleaseCollector
from ..core.usecases.clear_cache import ClearCacheUseCase
from ..core.usecases.collect_once import CollectOnceUseCase
from ..core.usecases.serve import ServeUseCase
from ..infra.cache import CveReportCache
from ..infra.config_loader import load_exporter_config
from ..infra.cve import CveClient
from ..infra.github import GitHubClient
from ..infra.http_server import MetricsHttpServer
from ..infra.logging import ExporterLogger
from ..infra.metrics_store import MetricsSnapshotStore, build_registry
from ..infra.registry import RegistryClientPool


class Container(containers.DeclarativeContainer):
    """DI container fed from an AppConfig via ``config.from_pydantic``."""

    config = providers.Configuration()

    # Logger (Resource: manages lifecycle with init/shutdown)
    logger = providers.Resource(
        ExporterLogger,
        logger_name=config.logging.logger_name,
        debug=config.logging.debug,
        verbose=config.logging.verbose,
        json_output=config.logging.json_output,
        log_file=config.logging.file,
    )

    # Project file, loaded once per container
    exporter_config = providers.Singleton(
        load_exporter_config,
        path=config.config_path,
        logger=logger,
    )

    # Metrics exposition
    snapshot_store = providers.Singleton(MetricsSnapshotStore)

    metrics_registry = providers.Singleton(
        build_registry,
        store=snapshot_store,
    )

    http_server = providers.Factory(
        MetricsHttpServer,
        bind=config.server.bind,
        registry=metrics_registry,
        logger=logger,
    )

    # Adapters
    cve_cache = providers.Singleton(
        CveReportCache,
        cache_dir=config.cache.path,
        ttl=config.cache.ttl,
        logger=logger,
        enabled=config.cache.enabled,
    )

    cve_client = providers.Singleton(
        CveClient,
        base_url=config.cve.url,
        cache=cve_cache,
        logger=logger,
        timeout=config.http.timeout,
    )

    github_client = providers.Singleton(
        GitHubClient,
        token=config.github.token,
        timeout=config.http.timeout,
    )

    registry_pool = providers.Singleton(
        RegistryClientPool,
        timeout=config.http.timeout,
    )

    # Collectors
    registry_collector = providers.Singleton(
        RegistryCollector,
        projects=exporter_config.provided.projects.docker,
        registries=registry_pool,
        cve=cve_client,
        logger=logger,
        default_limit=config.docker.limit,
        max_workers=config.collector.max_workers,
    )

    release_collector = providers.Singleton(
        ReleaseCollector,
        projects=exporter_config.provided.projects.github,
        client=github_client,
        cve=cve_client,
        logger=logger,
        default_limit=config.github.limit,
        scrape_wait=config.github.scrape_wait,
        max_workers=config.collector.max_workers,
    )

    collectors = providers.List(registry_collector, release_collector)

    # Use cases
    serve_uc = providers.Factory(
        ServeUseCase,
        collectors=collectors,
        intervals=providers.Dict(
            docker=config.scrape.docker_interval,
            github=config.scrape.github_interval,
        ),
        sink=snapshot_store,
        server=http_server,
        logger=logger,
        release_client=github_client,
    )

    collect_once_uc = providers.Factory(
        CollectOnceUseCase,
        collectors=collectors,
        sink=snapshot_store,
        logger=logger,
    )

    clear_cache_uc = providers.Factory(
        ClearCacheUseCase,
        cache=cve_cache,
        logger=logger,
    )
