"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from services.cache import CacheStore
from services.filters import DateResolver, FilterCompiler
from services.records import RecordQueryService
from services.refill import HttpRefillProvider


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Filter compilation
    date_resolver = providers.Singleton(
        DateResolver,
        timezone_setting=settings.provided.timezone
    )

    filter_compiler = providers.Singleton(
        FilterCompiler,
        resolver=date_resolver,
        strict=settings.provided.filter_strict_validation,
        unknown_operator=settings.provided.unknown_operator_policy
    )

    # Cache
    cache_store = providers.Singleton(
        CacheStore,
        database=database,
        settings=settings
    )

    refill_provider = providers.Singleton(
        HttpRefillProvider,
        settings=settings
    )

    # Services
    record_service = providers.Factory(
        RecordQueryService,
        store=cache_store,
        compiler=filter_compiler,
        refill_provider=refill_provider
    )


# Global container instance
container = Container()
