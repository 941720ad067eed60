"""
FastAPI application entry point for the Survey Benchmark API.

Configures logging and CORS, registers the API routers and manages the
survey store pool across the application lifespan. Learned specialty
corrections are loaded at startup so the first auto-mapping run already
benefits from them.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from survey_benchmark import __version__
from survey_benchmark.api import api_router
from survey_benchmark.core.config import get_settings
from survey_benchmark.core.database import init_db, close_db
from survey_benchmark.core.dependencies import get_mapping_service, get_repository

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Initialize database connection pool
        - Create the survey store tables when missing
        - Load learned specialty mappings

    On shutdown:
        - Close database connection pool
    """
    logger.info("Survey Benchmark API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
        await get_repository().ensure_schema()
        await get_mapping_service().load_learned_mappings()
    except Exception as e:
        logger.error(f"Failed to initialize survey store: {e}")
        # Continue startup; pure computation endpoints do not need the store

    yield

    logger.info("Survey Benchmark API shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Survey Benchmark API",
    version=__version__,
    description=(
        "Compensation survey benchmark aggregator. "
        "Provides endpoints for filter options, market percentiles, "
        "fair-market-value lookups, specialty blending and specialty mapping."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer health checks.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Survey Benchmark API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "survey_benchmark.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
