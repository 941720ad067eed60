"""
Benchmark Service

Controller-facing orchestration of the benchmark core:

    survey store -> row normalizer -> benchmark cache -> filter engine
                 -> market data engine -> percentile ranks / blending

The full canonical dataset is loaded once (all surveys, paged), normalized
against the current specialty and column mappings, and cached until the TTL
expires or a mutation event invalidates it. Every read path then works
against the cached rows.

Loads accept an asyncio.Event abort signal. The cache write is the final step
of a load, so an aborted or cancelled load never leaves partial data behind.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from survey_benchmark.core.config import Settings, get_settings
from survey_benchmark.models import (
    AggregationMethod,
    BenchmarkFilters,
    BlendedMarketData,
    BlendRequest,
    CanonicalRow,
    FMVRequest,
    FMVResult,
    InvalidationEvent,
    MarketData,
    MarketPercentiles,
    SpecialtyBlendItem,
    SpecialtyMapping,
    UniqueFilterValues,
)
from survey_benchmark.services.benchmark_cache import BenchmarkCache
from survey_benchmark.services.blending import blend_market_data, validate_blend
from survey_benchmark.services.filter_engine import apply_filters, get_unique_filter_values
from survey_benchmark.services.learned_mappings import LearnedMappingStore
from survey_benchmark.services.market_data import (
    calculate_total_tcc,
    calculate_user_percentiles,
    compute_market_data,
)
from survey_benchmark.services.percentiles import percentile_rank
from survey_benchmark.services.repository import SurveyRepository, gather_survey_rows
from survey_benchmark.services.row_normalizer import normalize_rows
from survey_benchmark.services.specialty_matcher import SpecialtyIndex


logger = logging.getLogger(__name__)


# =============================================================================
# SERVICE
# =============================================================================

class BenchmarkService:
    """
    Benchmark lookups over the cached canonical dataset.

    Args:
        repository: Survey store client
        cache: Benchmark cache (shared with the mapping service)
        learned_store: Learned corrections used when standardizing specialties
        settings: Page sizes and fetch concurrency
    """

    def __init__(
        self,
        repository: SurveyRepository,
        cache: Optional[BenchmarkCache] = None,
        learned_store: Optional[LearnedMappingStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.repository = repository
        self.cache = cache if cache is not None else BenchmarkCache(self.settings.cache_ttl_seconds)
        self.learned_store = learned_store if learned_store is not None else LearnedMappingStore()
        self._mappings: List[SpecialtyMapping] = []

    # =========================================================================
    # Dataset Loading
    # =========================================================================

    async def load_dataset(
        self,
        abort: Optional[asyncio.Event] = None,
        include_call_pay: bool = True,
    ) -> Optional[List[CanonicalRow]]:
        """
        Fetch and normalize every survey, then cache the result.

        Args:
            abort: Set to abandon the load; checked between pages and batches
            include_call_pay: Normalize the callPay metric group

        Returns:
            Canonical rows, or None when aborted (nothing is cached)
        """
        surveys = await self.repository.list_surveys()
        column_mappings = await self.repository.get_all_column_mappings()
        mappings = await self.repository.get_all_mappings()
        index = SpecialtyIndex(mappings, self.learned_store)

        rows: List[CanonicalRow] = []
        batch_size = self.settings.survey_fetch_batch_size
        for start in range(0, len(surveys), batch_size):
            if abort is not None and abort.is_set():
                logger.info("Benchmark dataset load aborted")
                return None

            batch = surveys[start:start + batch_size]
            pages = await gather_survey_rows(
                self.repository,
                [survey.id for survey in batch],
                self.settings.survey_page_size,
                abort,
            )
            if any(page is None for page in pages):
                logger.info("Benchmark dataset load aborted")
                return None

            for survey, raw_rows in zip(batch, pages):
                rows.extend(normalize_rows(
                    raw_rows,
                    survey,
                    column_mappings=column_mappings,
                    specialty_index=index,
                    include_call_pay=include_call_pay,
                ))

        if abort is not None and abort.is_set():
            logger.info("Benchmark dataset load aborted")
            return None

        self._mappings = mappings
        self.cache.set_cached_data(rows)
        logger.info(f"Loaded {len(rows)} canonical rows from {len(surveys)} surveys")
        return rows

    async def get_rows(
        self,
        require_call_pay: bool = False,
        abort: Optional[asyncio.Event] = None,
    ) -> Tuple[List[CanonicalRow], Sequence[SpecialtyMapping]]:
        """Cached rows, reloading on a miss. Empty when a reload is aborted."""
        cached = self.cache.get_cached_data(require_call_pay=require_call_pay)
        if cached is not None:
            return cached.rows, self._mappings

        rows = await self.load_dataset(abort=abort)
        return rows or [], self._mappings

    # =========================================================================
    # Filters & Market Data
    # =========================================================================

    async def get_unique_filter_values(self, filters: Optional[BenchmarkFilters] = None) -> UniqueFilterValues:
        filters = filters or BenchmarkFilters()
        key = filters.cache_key()
        memoized = self.cache.get_filter_values(key)
        if memoized is not None:
            return memoized

        rows, mappings = await self.get_rows()
        values = get_unique_filter_values(rows, filters, mappings)
        self.cache.set_filter_values(key, values)
        return values

    async def get_market_data(
        self,
        filters: BenchmarkFilters,
        aggregation_method: Optional[AggregationMethod] = None,
    ) -> MarketData:
        """Market percentiles for the rows matching the filters."""
        method = aggregation_method or filters.aggregationMethod
        rows, mappings = await self.get_rows(require_call_pay=True)
        filtered = apply_filters(rows, filters, mappings)
        market = compute_market_data(filtered, method)
        if market.is_empty:
            logger.info(f"No market data for filters {filters.cache_key()}")
        return market

    @staticmethod
    def get_user_percentile(market: Optional[MarketPercentiles], value: Optional[float]) -> Optional[float]:
        return percentile_rank(market, value)

    async def calculate_fmv(self, request: FMVRequest) -> FMVResult:
        """
        Rank user compensation against the filtered market.

        TCC comes from the itemized components when any are given.
        """
        market = await self.get_market_data(request.filters)
        total_tcc = calculate_total_tcc(request.tccComponents) if request.tccComponents else request.tcc

        if market.is_empty:
            return FMVResult(hasData=False, marketData=market, totalTcc=total_tcc)

        percentiles = calculate_user_percentiles(
            market,
            tcc=total_tcc,
            wrvu=request.wrvu,
            cf=request.cf,
            call_pay=request.callPay,
            fte=request.filters.fte,
            call_pay_adjustments=request.callPayAdjustments,
        )
        return FMVResult(hasData=True, marketData=market, percentiles=percentiles, totalTcc=total_tcc)

    async def blend_specialties(self, request: BlendRequest) -> Tuple[Optional[BlendedMarketData], List[str]]:
        """
        Blend specialties, fetching market data for items that carry none.

        Returns:
            (blended market data, validation errors); blended is None exactly
            when errors is non-empty.
        """
        items: List[SpecialtyBlendItem] = []
        for item in request.items:
            if item.marketData is None:
                filters = request.filters.model_copy(update={'specialty': item.specialty})
                market = await self.get_market_data(filters)
                item = item.model_copy(update={'marketData': None if market.is_empty else market})
            items.append(item)
        errors = validate_blend(items, request.method)
        if errors:
            return None, errors
        return blend_market_data(items, request.method), []

    # =========================================================================
    # Invalidation Hooks
    # =========================================================================

    def on_survey_uploaded(self, survey_id: str) -> None:
        logger.info(f"Survey {survey_id} uploaded")
        self.cache.invalidate(InvalidationEvent.SURVEY_UPLOADED)

    def on_survey_deleted(self, survey_id: str) -> None:
        logger.info(f"Survey {survey_id} deleted")
        self.cache.invalidate(InvalidationEvent.SURVEY_DELETED)

    def clear_cache(self) -> None:
        self.cache.invalidate(InvalidationEvent.DATA_CLEARED)


__all__ = ['BenchmarkService']
