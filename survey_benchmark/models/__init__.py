"""
Package initialization file for survey benchmark models.

Re-exports the Pydantic schemas and enumerations so other modules can import
them from survey_benchmark.models directly.

Usage:
    from survey_benchmark.models import (
        CanonicalRow,
        BenchmarkFilters,
        MarketData,
        MetricType,
    )
"""

# =============================================================================
# Enums
# =============================================================================

from survey_benchmark.models.enums import (
    AggregationMethod,
    BlendingMethod,
    CallPayAdjustmentMode,
    FilterDimension,
    InvalidationEvent,
    MappingStatus,
    MatchMethod,
    MetricType,
)


# =============================================================================
# Schemas
# =============================================================================

from survey_benchmark.models.schemas import (
    # Survey store records
    RawSurveyRow,
    Survey,
    ColumnMapping,
    SourceSpecialty,
    SpecialtyMapping,
    # Canonical rows
    MetricPercentiles,
    RowMetrics,
    CanonicalRow,
    # Filters
    BenchmarkFilters,
    UniqueFilterValues,
    # Market data
    MarketPercentiles,
    MarketData,
    UserPercentiles,
    CompensationComponent,
    CallPayAdjustments,
    SpecialtyBlendItem,
    BlendedMarketData,
    # Specialty matching
    MatchResult,
    MatchSuggestion,
    UnmappedSpecialty,
    AutoMappingConfig,
    MappingResult,
    MappingFailure,
    AutoMappingReport,
    MappingSuggestionGroup,
    # Requests / responses
    FMVRequest,
    FMVResult,
    BlendRequest,
)


__all__ = [
    # Enums
    'AggregationMethod',
    'BlendingMethod',
    'CallPayAdjustmentMode',
    'FilterDimension',
    'InvalidationEvent',
    'MappingStatus',
    'MatchMethod',
    'MetricType',
    # Survey store records
    'RawSurveyRow',
    'Survey',
    'ColumnMapping',
    'SourceSpecialty',
    'SpecialtyMapping',
    # Canonical rows
    'MetricPercentiles',
    'RowMetrics',
    'CanonicalRow',
    # Filters
    'BenchmarkFilters',
    'UniqueFilterValues',
    # Market data
    'MarketPercentiles',
    'MarketData',
    'UserPercentiles',
    'CompensationComponent',
    'CallPayAdjustments',
    'SpecialtyBlendItem',
    'BlendedMarketData',
    # Specialty matching
    'MatchResult',
    'MatchSuggestion',
    'UnmappedSpecialty',
    'AutoMappingConfig',
    'MappingResult',
    'MappingFailure',
    'AutoMappingReport',
    'MappingSuggestionGroup',
    # Requests / responses
    'FMVRequest',
    'FMVResult',
    'BlendRequest',
]
