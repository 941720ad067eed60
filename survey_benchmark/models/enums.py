"""
Enumeration definitions for the Survey Benchmark backend.

All enums inherit from both `str` and `Enum` so they serialize cleanly through
Pydantic models and JSON responses.
"""

from enum import Enum


class MetricType(str, Enum):
    """
    Metric groups carried by every canonical survey row.

    - tcc: Total Cash Compensation (annualized)
    - wrvu: work Relative Value Units (productivity)
    - cf: Conversion Factor, compensation per wRVU
    - callPay: On-call compensation rate
    """
    TCC = "tcc"
    WRVU = "wrvu"
    CF = "cf"
    CALL_PAY = "callPay"


class AggregationMethod(str, Enum):
    """
    How per-row survey percentiles are pooled into one market view.

    - simple: nearest-rank percentile of the pooled row values
    - weighted: incumbent-weighted average of the pooled row values
    """
    SIMPLE = "simple"
    WEIGHTED = "weighted"


class MatchMethod(str, Enum):
    """
    Which matching stage produced a specialty resolution.

    Stages are tried in declaration order; UNRESOLVED means no stage reached
    the caller's confidence threshold.
    """
    EXACT = "exact"
    LEARNED = "learned"
    SYNONYM = "synonym"
    FUZZY = "fuzzy"
    UNRESOLVED = "unresolved"


class MappingStatus(str, Enum):
    """Outcome of one auto-mapping item."""
    MAPPED = "mapped"
    ALREADY_MAPPED = "already_mapped"
    UNRESOLVED = "unresolved"


class FilterDimension(str, Enum):
    """Dimensions that carry cascading option lists."""
    SPECIALTY = "specialty"
    PROVIDER_TYPE = "providerType"
    REGION = "region"
    SURVEY_SOURCE = "surveySource"
    YEAR = "year"


class CallPayAdjustmentMode(str, Enum):
    """
    Where call-pay premiums are applied.

    - input: multiply the user's call-pay rate before rank lookup
    - market: multiply the market percentiles instead
    """
    INPUT = "input"
    MARKET = "market"


class BlendingMethod(str, Enum):
    """
    Specialty blending strategies.

    - percentage: user percentages (must total 100) weight each specialty
    - weighted: user weight multiplied by each specialty's sample size
    """
    PERCENTAGE = "percentage"
    WEIGHTED = "weighted"


class InvalidationEvent(str, Enum):
    """Mutation events that clear the benchmark cache."""
    SURVEY_UPLOADED = "survey_uploaded"
    SURVEY_DELETED = "survey_deleted"
    MAPPING_CHANGED = "mapping_changed"
    DATA_CLEARED = "data_cleared"
