"""
Core infrastructure package for the Survey Benchmark backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- FastAPI dependency injection utilities (survey_benchmark.core.dependencies)

Configuration and the database pool are re-exported here:

    from survey_benchmark.core import get_settings, get_db_pool

The dependency module builds the service graph and is imported directly by
the API layer, since the services themselves depend on this package:

    from survey_benchmark.core.dependencies import BenchmarkServiceDep
"""

# =============================================================================
# Re-exports from survey_benchmark.core.config
# =============================================================================
from survey_benchmark.core.config import (
    Settings,
    get_settings,
    MIN_AUTO_MAP_BATCH_SIZE,
    MAX_AUTO_MAP_BATCH_SIZE,
)

# =============================================================================
# Re-exports from survey_benchmark.core.database
# =============================================================================
from survey_benchmark.core.database import (
    init_db,
    close_db,
    get_db_pool,
    DatabaseNotConfiguredError,
)


__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    'MIN_AUTO_MAP_BATCH_SIZE',
    'MAX_AUTO_MAP_BATCH_SIZE',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    'DatabaseNotConfiguredError',
]
