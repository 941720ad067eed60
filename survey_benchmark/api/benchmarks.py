"""
FastAPI router module for benchmark lookups.

Key Endpoints:
- GET  /benchmarks/filters      - Cascading option lists for the filter bar
- POST /benchmarks/market-data  - Market percentiles for a filter set
- POST /benchmarks/percentiles  - Fair-market-value lookup (user percentile ranks)
- POST /benchmarks/blend        - Blended market data across specialties
- POST /benchmarks/cache/clear  - Drop the cached dataset

An empty filtered dataset is not an error: market-data and percentile
responses carry hasData=false with zeroed percentiles.

Dependencies:
- survey_benchmark/core/dependencies.py: BenchmarkServiceDep
- survey_benchmark/services/benchmark_service.py: BenchmarkService
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import BaseModel, Field

from survey_benchmark.core.dependencies import BenchmarkServiceDep
from survey_benchmark.models import (
    AggregationMethod,
    BenchmarkFilters,
    BlendedMarketData,
    BlendRequest,
    FMVRequest,
    FMVResult,
    MarketData,
    UniqueFilterValues,
)


# =============================================================================
# Module Configuration
# =============================================================================

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/benchmarks", tags=["benchmarks"])


# =============================================================================
# Response Models
# =============================================================================


class MarketDataResponse(BaseModel):
    """Market data plus an explicit data-availability flag."""
    hasData: bool
    marketData: MarketData


class BlendResponse(BaseModel):
    """Blend result; blended is None when the blend was rejected."""
    success: bool
    blended: Optional[BlendedMarketData] = None
    errors: List[str] = Field(default_factory=list)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/filters", response_model=UniqueFilterValues)
async def get_filter_options(
    service: BenchmarkServiceDep,
    specialty: str = Query(default=""),
    providerType: str = Query(default=""),
    region: str = Query(default=""),
    surveySource: str = Query(default=""),
    year: str = Query(default=""),
) -> UniqueFilterValues:
    """
    Option lists for every filter dimension given the current selection.
    """
    filters = BenchmarkFilters(
        specialty=specialty,
        providerType=providerType,
        region=region,
        surveySource=surveySource,
        year=year,
    )
    try:
        return await service.get_unique_filter_values(filters)
    except Exception as e:
        logger.exception("Error deriving filter options")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load filter options: {str(e)}"
        )


@router.post("/market-data", response_model=MarketDataResponse)
async def get_market_data(
    service: BenchmarkServiceDep,
    filters: BenchmarkFilters = Body(...),
    aggregationMethod: Optional[AggregationMethod] = Query(default=None),
) -> MarketDataResponse:
    """
    Aggregated market percentiles for the rows matching the filters.
    """
    try:
        market = await service.get_market_data(filters, aggregationMethod)
        return MarketDataResponse(hasData=not market.is_empty, marketData=market)
    except Exception as e:
        logger.exception("Error computing market data")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute market data: {str(e)}"
        )


@router.post("/percentiles", response_model=FMVResult)
async def calculate_percentiles(
    service: BenchmarkServiceDep,
    request: FMVRequest = Body(...),
) -> FMVResult:
    """
    Fair-market-value lookup: where the user's TCC, wRVU, CF and call pay
    rank against the filtered market.
    """
    try:
        return await service.calculate_fmv(request)
    except Exception as e:
        logger.exception("Error calculating user percentiles")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to calculate percentiles: {str(e)}"
        )


@router.post("/blend", response_model=BlendResponse)
async def blend_specialties(
    service: BenchmarkServiceDep,
    request: BlendRequest = Body(...),
) -> BlendResponse:
    """
    Blend several specialties into one market view.

    Invalid blends (bad percentages, unknown specialties) return
    success=false with the reasons instead of an error status.
    """
    try:
        blended, errors = await service.blend_specialties(request)
    except Exception as e:
        logger.exception("Error blending specialties")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to blend specialties: {str(e)}"
        )

    if blended is None:
        return BlendResponse(success=False, errors=errors)
    return BlendResponse(success=True, blended=blended)


@router.post("/cache/clear")
async def clear_cache(service: BenchmarkServiceDep) -> dict:
    """Drop the cached dataset; the next lookup reloads every survey."""
    service.clear_cache()
    return {"success": True}
