"""
Test suite for the benchmark service.

The tests verify:
1. Dataset loading: paging, normalization and specialty standardization
2. Aborted loads never write the cache
3. Cache hits, memoized filter options and structural refetches
4. Market data, FMV lookups and blending over the cached dataset
5. Invalidation hooks
"""

import asyncio
from typing import Any, Dict, List
from unittest.mock import Mock

import pytest

from survey_benchmark.core.config import Settings
from survey_benchmark.models import (
    AggregationMethod,
    BenchmarkFilters,
    BlendRequest,
    CompensationComponent,
    FMVRequest,
    SpecialtyBlendItem,
    Survey,
)
from survey_benchmark.services.benchmark_cache import BenchmarkCache
from survey_benchmark.services.benchmark_service import BenchmarkService
from survey_benchmark.services.learned_mappings import LearnedMappingStore
from survey_benchmark.tests.factories import make_row, paged_rows


pytestmark = pytest.mark.asyncio


SURVEY_ROWS: Dict[str, List[Dict[str, Any]]] = {
    "mgma-2024": [
        {
            "Specialty": "Cardiology - General",
            "Geographic Region": "National",
            "tcc_p25": "$400,000", "tcc_p50": "500,000", "tcc_p75": 600000, "tcc_p90": 700000,
            "tcc_n_incumbents": 10,
            "call_pay_p50": 1500,
        },
        {
            "Specialty": "Cardiovascular Disease",
            "Geographic Region": "West",
            "tcc_p25": 420000, "tcc_p50": 520000, "tcc_p75": 620000, "tcc_p90": 720000,
            "tcc_n_incumbents": 5,
        },
        {
            "Specialty": "Family Medicine",
            "Geographic Region": "National",
            "tcc_p25": 220000, "tcc_p50": 260000, "tcc_p75": 300000, "tcc_p90": 340000,
        },
    ],
    "gallagher-2023": [
        {
            "specialty": "Critical Care: Intensivist",
            "region": "Northeast",
            "tcc_p50": 350000,
        },
    ],
}


@pytest.fixture
def surveys() -> List[Survey]:
    return [
        Survey(id="mgma-2024", surveySource="MGMA", year="2024", providerType="Physician"),
        Survey(id="gallagher-2023", surveySource="Gallagher", year="2023", providerType="Physician"),
    ]


@pytest.fixture
def service(
    mock_repository: Mock,
    benchmark_cache: BenchmarkCache,
    learned_store: LearnedMappingStore,
    test_settings: Settings,
    surveys: List[Survey],
) -> BenchmarkService:
    mock_repository.list_surveys.return_value = surveys
    mock_repository.get_survey_data.side_effect = paged_rows(SURVEY_ROWS)
    return BenchmarkService(mock_repository, benchmark_cache, learned_store, test_settings)


# =============================================================================
# DATASET LOADING
# =============================================================================


class TestLoadDataset:

    async def test_normalizes_every_survey(self, service: BenchmarkService, benchmark_cache: BenchmarkCache):
        rows = await service.load_dataset()

        assert len(rows) == 4
        assert [row.specialty for row in rows] == [
            "Cardiology", "Cardiology", "Family Medicine", "Critical Care",
        ]
        assert rows[0].originalSpecialty == "Cardiology - General"
        assert rows[0].metrics.tcc.p25 == 400000
        assert rows[3].surveySource == "Gallagher"
        assert rows[3].year == "2023"
        assert benchmark_cache.get_cached_data().rows == rows

    async def test_pages_through_large_surveys(self, service: BenchmarkService, mock_repository: Mock):
        await service.load_dataset()

        mgma_pages = [
            call.kwargs["page"] for call in mock_repository.get_survey_data.await_args_list
            if call.args[0] == "mgma-2024"
        ]
        assert mgma_pages == [1, 2]

    async def test_abort_before_start(self, service: BenchmarkService, benchmark_cache: BenchmarkCache):
        abort = asyncio.Event()
        abort.set()

        assert await service.load_dataset(abort=abort) is None
        assert benchmark_cache.get_cached_data() is None

    async def test_abort_mid_load_leaves_cache_untouched(
        self,
        service: BenchmarkService,
        mock_repository: Mock,
        benchmark_cache: BenchmarkCache,
    ):
        abort = asyncio.Event()
        fetch = paged_rows(SURVEY_ROWS)

        async def abort_after_first_page(survey_id: str, page: int = 1, limit: int = 10000):
            abort.set()
            return await fetch(survey_id, page=page, limit=limit)

        mock_repository.get_survey_data.side_effect = abort_after_first_page

        assert await service.load_dataset(abort=abort) is None
        assert benchmark_cache.get_cached_data() is None
        assert benchmark_cache.version == 0

    async def test_cache_hit_skips_reload(self, service: BenchmarkService, mock_repository: Mock):
        await service.get_rows()
        await service.get_rows()

        assert mock_repository.list_surveys.await_count == 1

    async def test_rows_without_call_pay_are_refetched(
        self,
        service: BenchmarkService,
        mock_repository: Mock,
        benchmark_cache: BenchmarkCache,
    ):
        stale = make_row("Cardiology")
        stale.metrics.callPay = None
        benchmark_cache.set_cached_data([stale])

        rows, _ = await service.get_rows(require_call_pay=True)

        assert len(rows) == 4
        mock_repository.list_surveys.assert_awaited_once()


# =============================================================================
# LOOKUPS
# =============================================================================


class TestLookups:

    async def test_filter_options_memoized(self, service: BenchmarkService, benchmark_cache: BenchmarkCache):
        filters = BenchmarkFilters(specialty="Cardiology")

        values = await service.get_unique_filter_values(filters)

        assert values.regions == ["National", "West"]
        assert values.surveySources == ["Gallagher", "MGMA"]
        assert benchmark_cache.get_filter_values(filters.cache_key()) == values

    async def test_market_data_for_standardized_specialty(self, service: BenchmarkService):
        market = await service.get_market_data(BenchmarkFilters(specialty="Cardiology"))

        assert market.rowCount == 2
        assert market.tcc.p50 == 520000
        assert market.tcc.p25 == 400000
        assert market.nIncumbents == 15

    async def test_weighted_override(self, service: BenchmarkService):
        market = await service.get_market_data(
            BenchmarkFilters(specialty="Cardiology"), AggregationMethod.WEIGHTED
        )

        assert market.aggregationMethod == AggregationMethod.WEIGHTED
        assert market.tcc.p50 == pytest.approx((500000 * 10 + 520000 * 5) / 15)

    async def test_no_matching_rows(self, service: BenchmarkService):
        market = await service.get_market_data(BenchmarkFilters(specialty="Dermatology"))
        assert market.is_empty

    async def test_fmv_from_components(self, service: BenchmarkService):
        result = await service.calculate_fmv(FMVRequest(
            filters=BenchmarkFilters(specialty="Cardiology"),
            tcc=1.0,
            tccComponents=[
                CompensationComponent(type="Base Salary", amount=250000),
                CompensationComponent(type="Bonus", amount="$200,000"),
            ],
        ))

        assert result.hasData
        assert result.totalTcc == 450000
        assert result.percentiles.tcc == pytest.approx(25 + 50000 / 120000 * 25)
        assert result.percentiles.wrvu is None

    async def test_fmv_without_data(self, service: BenchmarkService):
        result = await service.calculate_fmv(FMVRequest(
            filters=BenchmarkFilters(specialty="Dermatology"),
            tcc=300000,
        ))

        assert not result.hasData
        assert result.percentiles.tcc is None
        assert result.totalTcc == 300000

    async def test_blend_fetches_market_data(self, service: BenchmarkService):
        blended, errors = await service.blend_specialties(BlendRequest(items=[
            SpecialtyBlendItem(specialty="Cardiology", percentage=50),
            SpecialtyBlendItem(specialty="Family Medicine", percentage=50),
        ]))

        assert errors == []
        assert blended.marketData.tcc.p50 == pytest.approx((520000 + 260000) / 2)
        assert blended.totalSampleSize == 3

    async def test_blend_reports_missing_specialty(self, service: BenchmarkService):
        blended, errors = await service.blend_specialties(BlendRequest(items=[
            SpecialtyBlendItem(specialty="Cardiology", percentage=50),
            SpecialtyBlendItem(specialty="Dermatology", percentage=50),
        ]))

        assert blended is None
        assert errors == ["No market data for: Dermatology"]


class TestInvalidationHooks:

    async def test_upload_and_delete_clear_cache(self, service: BenchmarkService, benchmark_cache: BenchmarkCache):
        await service.load_dataset()
        service.on_survey_uploaded("new-survey")
        assert benchmark_cache.get_cached_data() is None

        await service.load_dataset()
        service.on_survey_deleted("mgma-2024")
        assert benchmark_cache.get_cached_data() is None

    async def test_clear_cache_forces_reload(self, service: BenchmarkService, mock_repository: Mock):
        await service.get_rows()
        service.clear_cache()
        await service.get_rows()

        assert mock_repository.list_surveys.await_count == 2
