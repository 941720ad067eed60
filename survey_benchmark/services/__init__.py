"""
Survey Benchmark Services Module

Business logic of the benchmark core. The matcher, normalizer, filter engine,
percentile engine and blending are pure synchronous functions; the mapping
and benchmark services orchestrate them around the async repository and the
injected benchmark cache.

Services:
- learned_mappings: learned correction store consulted by the matcher
- specialty_matcher: exact -> learned -> synonym -> fuzzy specialty resolution
- row_normalizer: raw survey rows -> CanonicalRow
- filter_engine: filter application and cascading option lists
- percentiles: nearest-rank percentile, weighted average, percentile rank
- market_data: market aggregation, FTE and call-pay adjustments
- blending: multi-specialty blended market data
- benchmark_cache: TTL dataset cache with explicit invalidation
- retry: bounded jittered retry (tenacity)
- repository: asyncpg survey store client
- mapping_service: auto-mapping, corrections and mapping CRUD
- benchmark_service: controller-facing orchestration

All services are consumed by the API layer (survey_benchmark/api/).
"""

# =============================================================================
# Specialty Matching
# =============================================================================

from survey_benchmark.services.learned_mappings import LearnedMappingStore, learned_key
from survey_benchmark.services.specialty_matcher import (
    SPECIALTY_SYNONYMS,
    SpecialtyIndex,
    SpecialtyMatcher,
    expand_specialty,
    find_unmapped,
    normalize_specialty_name,
    string_similarity,
    token_similarity,
)

# =============================================================================
# Normalization & Filtering
# =============================================================================

from survey_benchmark.services.row_normalizer import (
    classify_variable,
    coerce_number,
    normalize_row,
    normalize_rows,
)
from survey_benchmark.services.filter_engine import (
    apply_filters,
    derive_options,
    get_unique_filter_values,
)

# =============================================================================
# Aggregation
# =============================================================================

from survey_benchmark.services.percentiles import (
    calculate_percentile,
    percentile_rank,
    weighted_average,
)
from survey_benchmark.services.market_data import (
    apply_fte_adjustment,
    calculate_total_tcc,
    calculate_user_percentiles,
    call_pay_multiplier,
    compute_market_data,
)
from survey_benchmark.services.blending import blend_market_data, validate_blend

# =============================================================================
# Infrastructure & Orchestration
# =============================================================================

from survey_benchmark.services.benchmark_cache import BenchmarkCache, CachedDataset
from survey_benchmark.services.retry import RetryExhaustedError, retry_async
from survey_benchmark.services.repository import SurveyRepository
from survey_benchmark.services.mapping_service import (
    DuplicateMappingError,
    MappingNotFoundError,
    SpecialtyMappingService,
)
from survey_benchmark.services.benchmark_service import BenchmarkService


__all__ = [
    # Specialty matching
    'LearnedMappingStore',
    'learned_key',
    'SPECIALTY_SYNONYMS',
    'SpecialtyIndex',
    'SpecialtyMatcher',
    'expand_specialty',
    'find_unmapped',
    'normalize_specialty_name',
    'string_similarity',
    'token_similarity',
    # Normalization & filtering
    'classify_variable',
    'coerce_number',
    'normalize_row',
    'normalize_rows',
    'apply_filters',
    'derive_options',
    'get_unique_filter_values',
    # Aggregation
    'calculate_percentile',
    'percentile_rank',
    'weighted_average',
    'apply_fte_adjustment',
    'calculate_total_tcc',
    'calculate_user_percentiles',
    'call_pay_multiplier',
    'compute_market_data',
    'blend_market_data',
    'validate_blend',
    # Infrastructure & orchestration
    'BenchmarkCache',
    'CachedDataset',
    'RetryExhaustedError',
    'retry_async',
    'SurveyRepository',
    'DuplicateMappingError',
    'MappingNotFoundError',
    'SpecialtyMappingService',
    'BenchmarkService',
]
