"""
Specialty Blending

Combines the market data of several specialties into one synthesized market
view, for providers whose work spans specialties (e.g. 60% cardiology,
40% internal medicine).

Methods:
    percentage: Sum(v * pct / 100); percentages must total 100 (+/- 0.1)
    weighted:   Sum(v * w * n) / Sum(w * n) with n the specialty's row count

Every blend carries a confidence score and human-readable quality warnings:

    confidence = 0.5 * sample_size_confidence
               + 0.3 * distribution_confidence
               + 0.2 * specialty_count_confidence

    sample_size_confidence     = min(1, total_rows / (30 * k))
    distribution_confidence    = 1 if max pct <= 80 else max(0.5, 1 - (max - 80) / 20)
    specialty_count_confidence = 1 if k <= 3 else max(0.7, 1 - (k - 3) * 0.1)

Invalid blends (no items, bad percentages, missing market data) return None
rather than raising; validate_blend() explains why.
"""

import logging
from typing import Dict, List, Optional, Sequence

from survey_benchmark.models import (
    AggregationMethod,
    BlendedMarketData,
    BlendingMethod,
    MarketData,
    MarketPercentiles,
    MetricType,
    SpecialtyBlendItem,
)
from survey_benchmark.services.percentiles import PERCENTILE_KEYS


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PERCENTAGE_TOLERANCE: float = 0.1
MIN_SAMPLE_SIZE: int = 30
DOMINANT_PERCENTAGE: float = 80.0
MAX_SIMPLE_BLEND: int = 3
COMPLEX_BLEND_WARNING_COUNT: int = 4
LOW_CONFIDENCE_THRESHOLD: float = 0.6

SAMPLE_SIZE_WEIGHT: float = 0.5
DISTRIBUTION_WEIGHT: float = 0.3
SPECIALTY_COUNT_WEIGHT: float = 0.2


def _sample_size(item: SpecialtyBlendItem) -> int:
    return item.marketData.rowCount if item.marketData is not None else 0


# =============================================================================
# VALIDATION
# =============================================================================

def validate_blend(items: Sequence[SpecialtyBlendItem], method: BlendingMethod) -> List[str]:
    """
    Reasons a blend cannot be computed; empty when it is valid.
    """
    errors: List[str] = []
    if not items:
        errors.append("At least one specialty must be selected")
        return errors

    names = [item.specialty for item in items]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        errors.append(f"Duplicate specialties: {', '.join(duplicates)}")

    if BlendingMethod(method) == BlendingMethod.PERCENTAGE:
        total = sum(item.percentage for item in items)
        if abs(total - 100.0) > PERCENTAGE_TOLERANCE:
            errors.append(f"Total percentage must equal 100%, got {total:g}%")
    else:
        if any(item.weight <= 0 for item in items):
            errors.append("Weights must be greater than 0")
        if sum(item.weight * _sample_size(item) for item in items) == 0:
            errors.append("Weighted blending requires at least one specialty with data")

    missing = [item.specialty for item in items if item.marketData is None]
    if missing:
        errors.append(f"No market data for: {', '.join(missing)}")
    return errors


# =============================================================================
# CONFIDENCE & WARNINGS
# =============================================================================

def calculate_blending_confidence(items: Sequence[SpecialtyBlendItem]) -> float:
    if not items:
        return 0.0

    count = len(items)
    total_sample = sum(_sample_size(item) for item in items)
    sample_size_confidence = min(1.0, total_sample / (MIN_SAMPLE_SIZE * count))

    max_percentage = max(item.percentage for item in items)
    if max_percentage <= DOMINANT_PERCENTAGE:
        distribution_confidence = 1.0
    else:
        distribution_confidence = max(0.5, 1 - (max_percentage - DOMINANT_PERCENTAGE) / 20)

    if count <= MAX_SIMPLE_BLEND:
        count_confidence = 1.0
    else:
        count_confidence = max(0.7, 1 - (count - MAX_SIMPLE_BLEND) * 0.1)

    return (
        sample_size_confidence * SAMPLE_SIZE_WEIGHT
        + distribution_confidence * DISTRIBUTION_WEIGHT
        + count_confidence * SPECIALTY_COUNT_WEIGHT
    )


def generate_quality_warnings(items: Sequence[SpecialtyBlendItem], confidence: float) -> List[str]:
    warnings: List[str] = []
    if confidence < LOW_CONFIDENCE_THRESHOLD:
        warnings.append("Low confidence in blended results due to data quality issues")

    low_sample = [item.specialty for item in items if _sample_size(item) < MIN_SAMPLE_SIZE]
    if low_sample:
        warnings.append(f"Low sample sizes for: {', '.join(low_sample)}")

    if items and max(item.percentage for item in items) > DOMINANT_PERCENTAGE:
        warnings.append("One specialty dominates the blend (>80%), results may be skewed")

    if len(items) > COMPLEX_BLEND_WARNING_COUNT:
        warnings.append("Complex blending with many specialties may reduce reliability")
    return warnings


# =============================================================================
# BLENDING
# =============================================================================

def _blend_percentiles(
    groups: Sequence[MarketPercentiles],
    items: Sequence[SpecialtyBlendItem],
    method: BlendingMethod,
) -> MarketPercentiles:
    values: Dict[str, float] = {}
    if method == BlendingMethod.PERCENTAGE:
        for key in PERCENTILE_KEYS:
            values[key] = sum(
                getattr(group, key) * item.percentage / 100.0
                for group, item in zip(groups, items)
            )
    else:
        weights = [item.weight * _sample_size(item) for item in items]
        total_weight = sum(weights)
        for key in PERCENTILE_KEYS:
            values[key] = sum(
                getattr(group, key) * weight for group, weight in zip(groups, weights)
            ) / total_weight
    return MarketPercentiles(**values)


def blend_market_data(
    items: Sequence[SpecialtyBlendItem],
    method: BlendingMethod = BlendingMethod.PERCENTAGE,
) -> Optional[BlendedMarketData]:
    """
    Blend several specialties into one market view.

    Args:
        items: Specialties with their market data, percentage and weight
        method: Percentage or weighted blending

    Returns:
        BlendedMarketData, or None when the blend is invalid
    """
    method = BlendingMethod(method)
    errors = validate_blend(items, method)
    if errors:
        logger.warning(f"Specialty blend rejected: {'; '.join(errors)}")
        return None

    blended = MarketData(
        aggregationMethod=items[0].marketData.aggregationMethod if items else AggregationMethod.SIMPLE,
        rowCount=sum(_sample_size(item) for item in items),
        nOrgs=sum(item.marketData.nOrgs for item in items),
        nIncumbents=sum(item.marketData.nIncumbents for item in items),
    )
    for metric in MetricType:
        groups = [item.marketData.get(metric) for item in items]
        setattr(blended, metric.value, _blend_percentiles(groups, items, method))

    confidence = calculate_blending_confidence(items)
    return BlendedMarketData(
        marketData=blended,
        method=method,
        recommendedMethod=recommend_blending_method(items),
        confidence=confidence,
        totalSampleSize=blended.rowCount,
        qualityWarnings=generate_quality_warnings(items, confidence),
        sourceData={item.specialty: item.marketData for item in items},
    )


def recommend_blending_method(items: Sequence[SpecialtyBlendItem]) -> BlendingMethod:
    """Weighted when sample sizes differ by more than 3x or one specialty dominates."""
    sizes = [_sample_size(item) for item in items]
    if sizes and min(sizes) > 0 and max(sizes) / min(sizes) > 3:
        return BlendingMethod.WEIGHTED
    if items and max(item.percentage for item in items) > 70:
        return BlendingMethod.WEIGHTED
    return BlendingMethod.PERCENTAGE


__all__ = [
    'validate_blend',
    'calculate_blending_confidence',
    'generate_quality_warnings',
    'blend_market_data',
    'recommend_blending_method',
]
