"""
Pydantic models for the Survey Benchmark backend.

This module provides type-safe data validation and serialization for the
benchmark core and its API contracts:

- Survey store records (surveys, column mappings, specialty mappings)
- Canonical survey rows produced by the row normalizer
- Filter state, market percentiles and user percentile ranks
- Specialty matching and auto-mapping results
- Call-pay adjustments and specialty blending requests

Raw survey rows are plain dicts and never leave the row normalizer; everything
downstream of it works with CanonicalRow.

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field, ConfigDict, field_validator

from survey_benchmark.models.coercion import coerce_number
from survey_benchmark.models.enums import (
    AggregationMethod,
    BlendingMethod,
    MappingStatus,
    MatchMethod,
    MetricType,
)


# Raw uploaded record with arbitrary column names
RawSurveyRow = Dict[str, Any]


def _normalize_key(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


# =============================================================================
# Survey Store Models
# =============================================================================


class Survey(BaseModel):
    """Metadata for one uploaded survey dataset."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Survey identifier")
    name: str = Field(default="", description="Display name or file name")
    surveySource: str = Field(
        default="",
        description="Survey provider (e.g. MGMA, SullivanCotter, Gallagher)"
    )
    year: str = Field(default="", description="Survey year")
    providerType: str = Field(default="", description="Provider type the survey covers")
    rowCount: int = Field(default=0, ge=0, description="Number of uploaded rows")


class ColumnMapping(BaseModel):
    """
    Maps one canonical field to the column names a survey actually uses.

    A mapping without surveyId/surveySource applies to every survey.
    """
    id: Optional[str] = None
    surveyId: Optional[str] = None
    surveySource: Optional[str] = None
    standardName: str = Field(..., description="Canonical field name, e.g. 'tcc_p50'")
    mappedColumns: List[str] = Field(default_factory=list)


class SourceSpecialty(BaseModel):
    """One survey-specific spelling attached to a standardized specialty."""
    id: Optional[str] = None
    specialty: str = Field(..., description="Specialty label as it appears in the survey")
    surveySource: str = Field(default="", description="Survey provider the label comes from")
    originalName: str = Field(default="", description="Label before any cleanup")

    def key(self) -> tuple:
        return (_normalize_key(self.surveySource), _normalize_key(self.specialty))


class SpecialtyMapping(BaseModel):
    """
    A canonical specialty and every survey label mapped onto it.

    Invariant: no duplicate (surveySource, specialty) pair, compared on
    normalized text. Uniqueness of standardizedName across mappings is
    enforced by the mapping service.
    """
    id: str = Field(..., description="Mapping identifier")
    standardizedName: str = Field(..., min_length=1)
    sourceSpecialties: List[SourceSpecialty] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    def has_source(self, specialty: str, survey_source: str) -> bool:
        key = (_normalize_key(survey_source), _normalize_key(specialty))
        return any(source.key() == key for source in self.sourceSpecialties)

    def add_source(self, source: SourceSpecialty) -> bool:
        """Append a source specialty; returns False when the pair already exists."""
        if self.has_source(source.specialty, source.surveySource):
            return False
        self.sourceSpecialties.append(source)
        return True


# =============================================================================
# Canonical Row Models
# =============================================================================


class MetricPercentiles(BaseModel):
    """Percentile columns and sample counts for one metric group of one row."""
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    n_orgs: float = 0.0
    n_incumbents: float = 0.0

    def has_data(self) -> bool:
        return any((self.p25, self.p50, self.p75, self.p90))


class RowMetrics(BaseModel):
    """
    Metric groups of a canonical row.

    callPay is None when the row was normalized without call-pay support;
    the benchmark cache uses that to detect structurally incompatible data.
    """
    tcc: MetricPercentiles = Field(default_factory=MetricPercentiles)
    wrvu: MetricPercentiles = Field(default_factory=MetricPercentiles)
    cf: MetricPercentiles = Field(default_factory=MetricPercentiles)
    callPay: Optional[MetricPercentiles] = Field(default_factory=MetricPercentiles)

    def get(self, metric: MetricType) -> Optional[MetricPercentiles]:
        return getattr(self, metric.value)


class CanonicalRow(BaseModel):
    """
    A survey row in the fixed benchmark schema.

    Derived on demand from raw rows plus the current mapping tables; never
    persisted.
    """
    id: str = ""
    specialty: str = Field(default="", description="Standardized specialty, or the raw label when unresolved")
    originalSpecialty: str = Field(default="", description="Specialty label as uploaded")
    providerType: str = ""
    geographicRegion: str = ""
    surveySource: str = ""
    year: str = ""
    variable: Optional[str] = Field(default=None, description="Source variable for variable-keyed rows")
    metrics: RowMetrics = Field(default_factory=RowMetrics)

    def metric(self, metric: MetricType) -> Optional[MetricPercentiles]:
        return self.metrics.get(metric)

    def has_metric_data(self, metric: MetricType) -> bool:
        group = self.metric(metric)
        return group is not None and group.has_data()


# =============================================================================
# Filter Models
# =============================================================================


class BenchmarkFilters(BaseModel):
    """
    Filter state for market lookups.

    Empty strings and 'All ...' sentinels mean no filtering on that dimension.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    specialty: str = ""
    providerType: str = ""
    region: str = ""
    surveySource: str = ""
    year: str = ""
    fte: float = Field(default=1.0, ge=0.0, le=1.0)
    aggregationMethod: AggregationMethod = AggregationMethod.SIMPLE

    @field_validator('fte', mode='before')
    @classmethod
    def coerce_fte(cls, v):
        # Non-numeric FTE is 0 (no adjustment); out-of-range values are clamped
        return min(1.0, max(0.0, coerce_number(v)))

    def cache_key(self) -> str:
        """Key for memoized option lists; FTE and aggregation do not affect options."""
        return "|".join(
            _normalize_key(value)
            for value in (self.specialty, self.providerType, self.region, self.surveySource, self.year)
        )


class UniqueFilterValues(BaseModel):
    """Available option lists per filter dimension."""
    specialties: List[str] = Field(default_factory=list)
    providerTypes: List[str] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    surveySources: List[str] = Field(default_factory=list)
    years: List[str] = Field(default_factory=list)


# =============================================================================
# Market Data Models
# =============================================================================


class MarketPercentiles(BaseModel):
    """
    Market distribution for one metric.

    p0 and p100 are optional explicit bounds used by percentile-rank
    interpolation; when absent they are synthesized.
    """
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    p0: Optional[float] = None
    p100: Optional[float] = None

    def is_empty(self) -> bool:
        return not any((self.p25, self.p50, self.p75, self.p90))

    def scaled(self, multiplier: float) -> "MarketPercentiles":
        return MarketPercentiles(
            p25=self.p25 * multiplier,
            p50=self.p50 * multiplier,
            p75=self.p75 * multiplier,
            p90=self.p90 * multiplier,
            p0=self.p0 * multiplier if self.p0 is not None else None,
            p100=self.p100 * multiplier if self.p100 is not None else None,
        )


class MarketData(BaseModel):
    """Aggregated market percentiles across all rows matching a filter set."""
    tcc: MarketPercentiles = Field(default_factory=MarketPercentiles)
    wrvu: MarketPercentiles = Field(default_factory=MarketPercentiles)
    cf: MarketPercentiles = Field(default_factory=MarketPercentiles)
    callPay: MarketPercentiles = Field(default_factory=MarketPercentiles)
    aggregationMethod: AggregationMethod = AggregationMethod.SIMPLE
    rowCount: int = Field(default=0, ge=0)
    nOrgs: float = 0.0
    nIncumbents: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.rowCount == 0

    def get(self, metric: MetricType) -> MarketPercentiles:
        return getattr(self, metric.value)


class UserPercentiles(BaseModel):
    """Interpolated percentile rank per metric; None when not computable."""
    tcc: Optional[float] = None
    wrvu: Optional[float] = None
    cf: Optional[float] = None
    callPay: Optional[float] = None


class CompensationComponent(BaseModel):
    """One line of a compensation itemization (base, bonus, stipend...)."""
    type: str = "Base Salary"
    amount: Any = 0
    notes: str = ""


class CallPayAdjustments(BaseModel):
    """
    Call-pay premiums and multipliers, expressed as percentages.

    applyToMarketData selects where the combined multiplier lands: the
    market percentiles (True) or the user's rate (False). Never both.
    """
    weekendPremium: float = Field(default=0.0, ge=0.0, le=100.0)
    majorHolidayPremium: float = Field(default=0.0, ge=0.0, le=200.0)
    highValueHolidayPremium: float = Field(default=0.0, ge=0.0, le=300.0)
    frequencyMultiplier: float = Field(default=0.0, ge=0.0, le=50.0)
    acuityMultiplier: float = Field(default=0.0, ge=0.0, le=50.0)
    applyToMarketData: bool = False


class SpecialtyBlendItem(BaseModel):
    """One specialty contribution to a blended market view."""
    specialty: str
    marketData: Optional[MarketData] = None
    percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    weight: float = Field(default=1.0, ge=0.0)


class BlendedMarketData(BaseModel):
    """Result of blending several specialties into one market view."""
    marketData: MarketData
    method: BlendingMethod
    recommendedMethod: BlendingMethod = BlendingMethod.PERCENTAGE
    confidence: float = Field(..., ge=0.0, le=1.0)
    totalSampleSize: int = Field(default=0, ge=0)
    qualityWarnings: List[str] = Field(default_factory=list)
    sourceData: Dict[str, MarketData] = Field(default_factory=dict)


# =============================================================================
# Specialty Matching Models
# =============================================================================


class MatchResult(BaseModel):
    """Outcome of resolving one raw specialty label."""
    rawName: str
    surveySource: str = ""
    standardizedName: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: MatchMethod = MatchMethod.UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.method != MatchMethod.UNRESOLVED


class MatchSuggestion(BaseModel):
    """A candidate mapping offered for manual correction."""
    standardizedName: str
    confidence: float = Field(..., ge=0.0, le=1.0)


class UnmappedSpecialty(BaseModel):
    """A survey specialty label no mapping covers yet."""
    id: str
    name: str
    surveySource: str = ""
    frequency: int = Field(default=0, ge=0)


class AutoMappingConfig(BaseModel):
    """Caller options for an auto-mapping run."""
    confidenceThreshold: float = Field(default=0.8, ge=0.0, le=1.0)
    useFuzzyMatching: bool = True
    useExistingMappings: bool = True


class MappingResult(BaseModel):
    """Per-specialty outcome of an auto-mapping run."""
    specialty: str
    surveySource: str = ""
    standardizedName: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    method: MatchMethod = MatchMethod.UNRESOLVED
    status: MappingStatus = MappingStatus.UNRESOLVED


class MappingFailure(BaseModel):
    """A specialty whose mapping could not be persisted."""
    specialty: str
    surveySource: str = ""
    error: str
    attempts: int = Field(default=0, ge=0)


class AutoMappingReport(BaseModel):
    """
    Aggregate auto-mapping outcome.

    results holds every specialty that was processed without a persistence
    failure (mapped or left unresolved); failures holds the rest.
    """
    results: List[MappingResult] = Field(default_factory=list)
    failures: List[MappingFailure] = Field(default_factory=list)
    processed: int = Field(default=0, ge=0)

    @property
    def mapped(self) -> List[MappingResult]:
        return [result for result in self.results if result.status == MappingStatus.MAPPED]


class MappingSuggestionGroup(BaseModel):
    """Unmapped specialties grouped under a proposed standardized name."""
    standardizedName: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    specialties: List[UnmappedSpecialty] = Field(default_factory=list)


# =============================================================================
# Request / Response Models
# =============================================================================


class FMVRequest(BaseModel):
    """Fair-market-value lookup: user compensation against filtered market data."""
    filters: BenchmarkFilters = Field(default_factory=BenchmarkFilters)
    tcc: Optional[float] = None
    tccComponents: List[CompensationComponent] = Field(default_factory=list)
    wrvu: Optional[float] = None
    cf: Optional[float] = None
    callPay: Optional[float] = None
    callPayAdjustments: Optional[CallPayAdjustments] = None

    @field_validator('tcc', 'wrvu', 'cf', 'callPay', mode='before')
    @classmethod
    def coerce_compensation(cls, v):
        if v is None:
            return None
        return coerce_number(v)


class FMVResult(BaseModel):
    """Market data and user percentile ranks for one FMV lookup."""
    hasData: bool
    marketData: MarketData
    percentiles: UserPercentiles = Field(default_factory=UserPercentiles)
    totalTcc: Optional[float] = None


class BlendRequest(BaseModel):
    """Specialties to blend under shared filters."""
    filters: BenchmarkFilters = Field(default_factory=BenchmarkFilters)
    items: List[SpecialtyBlendItem] = Field(default_factory=list)
    method: BlendingMethod = BlendingMethod.PERCENTAGE
