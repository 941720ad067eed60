"""
Pytest Configuration and Shared Fixtures for Survey Benchmark Tests.

This module provides fixtures and configuration for all backend tests, supporting:
- Async test execution with pytest-asyncio
- Mock survey repository fixtures for testing services without a database
- Zero-delay settings so retry paths run instantly
- Sample specialty mappings, surveys and canonical survey rows

Builders for ad-hoc data live in survey_benchmark/tests/factories.py.

Dependencies:
- pytest
- pytest-asyncio
- httpx (FastAPI TestClient)
"""

from typing import List
from unittest.mock import AsyncMock, Mock

import pytest

from survey_benchmark.core.config import Settings
from survey_benchmark.models import CanonicalRow, SpecialtyMapping, Survey
from survey_benchmark.services.benchmark_cache import BenchmarkCache
from survey_benchmark.services.learned_mappings import LearnedMappingStore
from survey_benchmark.tests.factories import FakeClock, make_mapping, make_row


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - slow: Marks tests as slow (deselect with -m "not slow")
    - integration: Marks integration tests requiring a real survey store
    - api: Marks FastAPI endpoint contract tests

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests requiring a real PostgreSQL survey store'
    )
    config.addinivalue_line(
        'markers',
        'api: marks FastAPI endpoint contract tests'
    )


# ============================================================
# SETTINGS & CACHE FIXTURES
# ============================================================

@pytest.fixture
def test_settings() -> Settings:
    """
    Settings with retry delays disabled and small page sizes.

    Returns:
        Settings: Isolated settings instance (not the cached singleton)
    """
    return Settings(
        database_url=None,
        cache_ttl_seconds=60,
        default_confidence_threshold=0.8,
        auto_map_batch_size=50,
        persistence_max_attempts=3,
        retry_base_delay_seconds=0.0,
        retry_max_delay_seconds=0.0,
        survey_page_size=2,
        survey_fetch_batch_size=2,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def benchmark_cache(fake_clock: FakeClock) -> BenchmarkCache:
    return BenchmarkCache(ttl_seconds=60, clock=fake_clock)


@pytest.fixture
def learned_store() -> LearnedMappingStore:
    return LearnedMappingStore()


# ============================================================
# SPECIALTY MAPPING FIXTURES
# ============================================================

@pytest.fixture
def sample_mappings() -> List[SpecialtyMapping]:
    """
    A small taxonomy covering the specialties used across tests.

    - Cardiology: mapped from MGMA and SullivanCotter spellings
    - Critical Care: mapped from the Gallagher intensivist label
    - Family Medicine: no source specialties yet
    """
    return [
        make_mapping(
            "Cardiology",
            [("Cardiology - General", "MGMA"), ("Cardiovascular Disease", "SullivanCotter")],
        ),
        make_mapping("Critical Care", [("Critical Care: Intensivist", "Gallagher")]),
        make_mapping("Family Medicine"),
    ]


# ============================================================
# SURVEY & ROW FIXTURES
# ============================================================

@pytest.fixture
def sample_survey() -> Survey:
    return Survey(
        id="survey-mgma-2024",
        name="MGMA 2024.csv",
        surveySource="MGMA",
        year="2024",
        providerType="Physician",
        rowCount=3,
    )


@pytest.fixture
def canonical_rows() -> List[CanonicalRow]:
    """
    Five canonical rows across sources, regions, years and provider types.
    """
    return [
        make_row(
            "Cardiology", region="National", survey_source="MGMA", year="2024",
            tcc={'p25': 400000, 'p50': 500000, 'p75': 600000, 'p90': 700000, 'n_orgs': 20, 'n_incumbents': 100},
            wrvu={'p25': 6000, 'p50': 7500, 'p75': 9000, 'p90': 11000},
            cf={'p25': 60, 'p50': 70, 'p75': 80, 'p90': 90},
            call_pay={'p25': 1000, 'p50': 1500, 'p75': 2000, 'p90': 2500},
            original_specialty="Cardiology - General",
        ),
        make_row(
            "Cardiology", region="Northeast", survey_source="SullivanCotter", year="2024",
            tcc={'p25': 420000, 'p50': 520000, 'p75': 620000, 'p90': 720000, 'n_orgs': 10, 'n_incumbents': 50},
            original_specialty="Cardiovascular Disease",
        ),
        make_row(
            "Critical Care", region="West", survey_source="Gallagher", year="2023",
            tcc={'p25': 300000, 'p50': 350000, 'p75': 400000, 'p90': 450000, 'n_orgs': 5, 'n_incumbents': 25},
            original_specialty="Critical Care: Intensivist",
        ),
        make_row(
            "Family Medicine", region="National", survey_source="MGMA", year="2023",
            tcc={'p25': 220000, 'p50': 260000, 'p75': 300000, 'p90': 340000, 'n_orgs': 40, 'n_incumbents': 400},
        ),
        make_row(
            "Family Medicine", provider_type="APP", region="Midwest", survey_source="MGMA", year="2024",
            tcc={'p25': 110000, 'p50': 125000, 'p75': 140000, 'p90': 155000, 'n_orgs': 15, 'n_incumbents': 60},
        ),
    ]


# ============================================================
# REPOSITORY MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_repository(sample_mappings: List[SpecialtyMapping]) -> Mock:
    """
    Mock SurveyRepository with every coroutine method as an AsyncMock.

    Defaults: no surveys, no column mappings, the sample mappings, no
    learned mappings. save_mapping echoes the mapping it was given.

    Usage:
        mock_repository.list_surveys.return_value = [survey]
        mock_repository.get_survey_data.side_effect = paged_rows({...})
    """
    repository = Mock()
    repository.ensure_schema = AsyncMock(return_value=None)
    repository.list_surveys = AsyncMock(return_value=[])
    repository.get_survey_data = AsyncMock(return_value=[])
    repository.get_all_column_mappings = AsyncMock(return_value=[])
    repository.get_all_mappings = AsyncMock(return_value=sample_mappings)
    repository.save_mapping = AsyncMock(side_effect=lambda mapping: mapping)
    repository.delete_mapping = AsyncMock(return_value=True)
    repository.save_learned_mapping = AsyncMock(return_value=None)
    repository.get_learned_mappings = AsyncMock(return_value={})
    repository.delete_learned_mapping = AsyncMock(return_value=True)
    return repository
