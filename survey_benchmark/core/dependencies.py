"""
FastAPI dependency injection module for the Survey Benchmark backend.

Provides the configuration and the process-wide service graph to endpoint
handlers:

- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_benchmark_service / BenchmarkServiceDep: benchmark lookups
- get_mapping_service / MappingServiceDep: specialty taxonomy maintenance

Both services share one SurveyRepository, one BenchmarkCache and one
LearnedMappingStore, so a mapping edit invalidates exactly the cache the
benchmark lookups read from.

Testing:
    Override any provider with FastAPI's mechanism:

        app.dependency_overrides[get_benchmark_service] = lambda: fake_service

    and call reset_services() between tests that use the real graph.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from survey_benchmark.core.config import Settings, get_settings
from survey_benchmark.services.benchmark_cache import BenchmarkCache
from survey_benchmark.services.benchmark_service import BenchmarkService
from survey_benchmark.services.learned_mappings import LearnedMappingStore
from survey_benchmark.services.mapping_service import SpecialtyMappingService
from survey_benchmark.services.repository import SurveyRepository


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


# =============================================================================
# Service Graph
# =============================================================================

@lru_cache()
def get_repository() -> SurveyRepository:
    return SurveyRepository()


@lru_cache()
def get_benchmark_cache() -> BenchmarkCache:
    return BenchmarkCache(ttl_seconds=get_settings().cache_ttl_seconds)


@lru_cache()
def get_learned_store() -> LearnedMappingStore:
    return LearnedMappingStore()


@lru_cache()
def get_benchmark_service() -> BenchmarkService:
    """Process-wide BenchmarkService sharing the cache and learned store."""
    return BenchmarkService(
        repository=get_repository(),
        cache=get_benchmark_cache(),
        learned_store=get_learned_store(),
        settings=get_settings(),
    )


@lru_cache()
def get_mapping_service() -> SpecialtyMappingService:
    """Process-wide SpecialtyMappingService sharing the cache and learned store."""
    return SpecialtyMappingService(
        repository=get_repository(),
        cache=get_benchmark_cache(),
        learned_store=get_learned_store(),
        settings=get_settings(),
    )


def reset_services() -> None:
    """Drop the cached service graph (tests, settings reloads)."""
    for provider in (
        get_repository,
        get_benchmark_cache,
        get_learned_store,
        get_benchmark_service,
        get_mapping_service,
    ):
        provider.cache_clear()


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(service: BenchmarkServiceDep)
BenchmarkServiceDep = Annotated[BenchmarkService, Depends(get_benchmark_service)]

# Usage: async def endpoint(service: MappingServiceDep)
MappingServiceDep = Annotated[SpecialtyMappingService, Depends(get_mapping_service)]
