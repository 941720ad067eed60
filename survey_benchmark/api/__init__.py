"""
Survey Benchmark API package initialization.

This package contains FastAPI router modules:
- benchmarks: Filter options, market data, FMV percentiles and blending
- mappings: Specialty mapping CRUD, auto-mapping and learned corrections
"""

from fastapi import APIRouter

# Import router modules
from survey_benchmark.api.benchmarks import router as benchmarks_router
from survey_benchmark.api.mappings import router as mappings_router

# Create main API router
api_router = APIRouter()

# Both routers carry their own prefix
api_router.include_router(benchmarks_router)
api_router.include_router(mappings_router)

__all__ = [
    "api_router",
    "benchmarks_router",
    "mappings_router",
]
