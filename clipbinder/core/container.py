"""Dependency Injection Container.

This module provides a centralized DI container using dependency-injector.
Lifecycles:
- Singleton: One instance for the entire application (HTTP client, index,
  provider clients, which keep rate-limit state)
- Factory: New instance every time (pipeline, orchestrator)

Usage:
    from clipbinder.core.container import container

    orchestrator = container.orchestrator()
    scenes, summary = await orchestrator.run(scenes)

    # In tests
    with container.services.pexels_client.override(mock_pexels):
        ...
"""

from dependency_injector import containers, providers

from clipbinder.core.config import Config, get_config
from clipbinder.core.config_loader import load_acquisition_config


class InfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure layer dependencies (external clients)."""

    global_config = providers.Dependency(instance_of=Config)

    # ============================================
    # HTTP Client
    # ============================================

    http_client = providers.Singleton(
        "clipbinder.infrastructure.http_client.HTTPClient",
        timeout=global_config.provided.http_timeout,
        max_connections=global_config.provided.http_max_connections,
    )


class ConfigContainer(containers.DeclarativeContainer):
    """Configuration models container.

    Provides typed Pydantic config models for services. The acquisition
    config is loaded once (YAML override if configured, defaults otherwise).
    """

    global_config = providers.Dependency(instance_of=Config)

    acquisition_config = providers.Singleton(
        load_acquisition_config,
        path=global_config.provided.acquisition_config_path,
    )

    constraints_config = providers.Singleton(
        lambda cfg: cfg.constraints,
        cfg=acquisition_config,
    )

    retry_config = providers.Singleton(
        lambda cfg: cfg.retry,
        cfg=acquisition_config,
    )

    orchestrator_config = providers.Singleton(
        lambda cfg: cfg.orchestrator,
        cfg=acquisition_config,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Service layer dependencies.

    Provider clients are Singletons so that every pipeline shares their
    rate-limit state. Pipelines and orchestrators are Factories.
    """

    global_config = providers.Dependency(instance_of=Config)
    infrastructure = providers.DependenciesContainer()
    configs = providers.DependenciesContainer()

    # ============================================
    # Local Assets & Matching
    # ============================================

    asset_index = providers.Singleton(
        "clipbinder.services.assets.index.LocalAssetIndex",
        media_root=global_config.provided.media_root,
    )

    matching_engine = providers.Factory(
        "clipbinder.services.matching.engine.MatchingEngine",
    )

    # ============================================
    # Provider Clients
    # ============================================

    pexels_rate_limiter = providers.Singleton(
        "clipbinder.services.providers.rate_limit.RateLimiter",
        provider="pexels",
        base_delay=configs.retry_config.provided.backoff_base,
        max_delay=configs.retry_config.provided.backoff_max,
        max_retries=configs.retry_config.provided.rate_limit_retries,
    )

    pixabay_rate_limiter = providers.Singleton(
        "clipbinder.services.providers.rate_limit.RateLimiter",
        provider="pixabay",
        base_delay=configs.retry_config.provided.backoff_base,
        max_delay=configs.retry_config.provided.backoff_max,
        max_retries=configs.retry_config.provided.rate_limit_retries,
    )

    pexels_client = providers.Singleton(
        "clipbinder.services.providers.pexels.PexelsClient",
        api_key=global_config.provided.pexels_api_key,
        config=configs.acquisition_config.provided.pexels,
        http_client=infrastructure.http_client,
        rate_limiter=pexels_rate_limiter,
    )

    pixabay_client = providers.Singleton(
        "clipbinder.services.providers.pixabay.PixabayClient",
        api_key=global_config.provided.pixabay_api_key,
        config=configs.acquisition_config.provided.pixabay,
        http_client=infrastructure.http_client,
        rate_limiter=pixabay_rate_limiter,
    )

    dalle_generator = providers.Singleton(
        "clipbinder.services.providers.dall_e.DALLEGenerator",
        api_key=global_config.provided.openai_api_key,
        config=configs.acquisition_config.provided.dalle,
        http_client=infrastructure.http_client,
    )

    sd_generator = providers.Singleton(
        "clipbinder.services.providers.stable_diffusion.StableDiffusionGenerator",
        service_url=global_config.provided.sd_service_url,
        enabled=global_config.provided.sd_enabled,
        config=configs.acquisition_config.provided.stable_diffusion,
        http_client=infrastructure.http_client,
    )

    # Order = consultation order inside a tier
    stock_providers = providers.List(pexels_client, pixabay_client)

    # Local generation first when enabled
    image_generators = providers.List(sd_generator, dalle_generator)

    # ============================================
    # Acquisition
    # ============================================

    acquisition_pipeline = providers.Factory(
        "clipbinder.services.acquisition.pipeline.AcquisitionPipeline",
        index=asset_index,
        providers=stock_providers,
        generators=image_generators,
        config=configs.acquisition_config,
    )

    job_orchestrator = providers.Factory(
        "clipbinder.services.acquisition.orchestrator.JobOrchestrator",
        index=asset_index,
        pipeline=acquisition_pipeline,
        engine=matching_engine,
        config=configs.orchestrator_config,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Root application container.

    Composes all sub-containers and provides the main entry point.
    """

    # Global Config singleton (environment variables)
    # Uses get_config() to ensure same instance across the app
    config = providers.Singleton(get_config)

    # Sub-containers
    infrastructure = providers.Container(
        InfrastructureContainer,
        global_config=config,
    )

    configs = providers.Container(
        ConfigContainer,
        global_config=config,
    )

    services = providers.Container(
        ServiceContainer,
        global_config=config,
        infrastructure=infrastructure,
        configs=configs,
    )

    # ============================================
    # Convenience accessors (shortcuts)
    # ============================================

    http_client = providers.Singleton(
        lambda client: client,
        client=infrastructure.http_client,
    )

    acquisition_config = providers.Singleton(
        lambda cfg: cfg,
        cfg=configs.acquisition_config,
    )

    asset_index = providers.Singleton(
        lambda svc: svc,
        svc=services.asset_index,
    )

    matching_engine = providers.Factory(
        lambda svc: svc,
        svc=services.matching_engine,
    )

    pipeline = providers.Factory(
        lambda svc: svc,
        svc=services.acquisition_pipeline,
    )

    orchestrator = providers.Factory(
        lambda svc: svc,
        svc=services.job_orchestrator,
    )


def create_container() -> ApplicationContainer:
    """Create and configure the application container.

    Returns:
        Configured ApplicationContainer instance
    """
    return ApplicationContainer()


# Global container instance
container = create_container()


def get_container() -> ApplicationContainer:
    """Get the global container."""
    return container


async def shutdown(app_container: ApplicationContainer | None = None) -> None:
    """Close shared network resources held by the container."""
    target = app_container or container
    await target.http_client().close()


__all__ = [
    "ApplicationContainer",
    "ConfigContainer",
    "InfrastructureContainer",
    "ServiceContainer",
    "container",
    "create_container",
    "get_config",
    "get_container",
    "shutdown",
]
