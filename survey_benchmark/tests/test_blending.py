"""
Test suite for specialty blending.

The tests verify:
1. Percentage and weighted blends of market percentiles
2. Validation: empty blends, duplicates, percentage totals, weights, missing data
3. Confidence scoring and quality warnings
4. Blending method recommendation
"""

from typing import List, Optional

import pytest

from survey_benchmark.models import (
    BlendingMethod,
    MarketData,
    MarketPercentiles,
    SpecialtyBlendItem,
)
from survey_benchmark.services.blending import (
    blend_market_data,
    calculate_blending_confidence,
    generate_quality_warnings,
    recommend_blending_method,
    validate_blend,
)


def blend_item(
    specialty: str,
    p50: float = 300000,
    row_count: int = 30,
    percentage: float = 50,
    weight: float = 1.0,
    with_data: bool = True,
) -> SpecialtyBlendItem:
    market: Optional[MarketData] = None
    if with_data:
        market = MarketData(
            tcc=MarketPercentiles(p25=p50 * 0.8, p50=p50, p75=p50 * 1.2, p90=p50 * 1.4),
            rowCount=row_count,
            nIncumbents=row_count * 10,
        )
    return SpecialtyBlendItem(specialty=specialty, marketData=market, percentage=percentage, weight=weight)


@pytest.fixture
def two_specialties() -> List[SpecialtyBlendItem]:
    return [
        blend_item("Cardiology", p50=300000, row_count=40, percentage=60),
        blend_item("Internal Medicine", p50=200000, row_count=20, percentage=40),
    ]


class TestValidateBlend:

    def test_valid(self, two_specialties: List[SpecialtyBlendItem]):
        assert validate_blend(two_specialties, BlendingMethod.PERCENTAGE) == []

    def test_empty(self):
        assert validate_blend([], BlendingMethod.PERCENTAGE) == ["At least one specialty must be selected"]

    def test_percentages_must_total_100(self):
        items = [blend_item("Cardiology", percentage=50), blend_item("Neurology", percentage=40)]
        assert "Total percentage must equal 100%, got 90%" in validate_blend(items, BlendingMethod.PERCENTAGE)

    def test_percentage_tolerance(self):
        items = [blend_item("Cardiology", percentage=33.33), blend_item("Neurology", percentage=66.7)]
        assert validate_blend(items, BlendingMethod.PERCENTAGE) == []

    def test_duplicates(self):
        items = [blend_item("Cardiology"), blend_item("Cardiology")]
        assert "Duplicate specialties: Cardiology" in validate_blend(items, BlendingMethod.PERCENTAGE)

    def test_missing_market_data(self):
        items = [blend_item("Cardiology"), blend_item("Neurology", with_data=False)]
        assert "No market data for: Neurology" in validate_blend(items, BlendingMethod.PERCENTAGE)

    def test_weights_must_be_positive(self):
        items = [blend_item("Cardiology", weight=0), blend_item("Neurology")]
        assert "Weights must be greater than 0" in validate_blend(items, BlendingMethod.WEIGHTED)

    def test_weighted_ignores_percentages(self):
        items = [blend_item("Cardiology", percentage=10), blend_item("Neurology", percentage=10)]
        assert validate_blend(items, BlendingMethod.WEIGHTED) == []


class TestBlendMarketData:

    def test_percentage_blend(self, two_specialties: List[SpecialtyBlendItem]):
        blended = blend_market_data(two_specialties, BlendingMethod.PERCENTAGE)

        assert blended.marketData.tcc.p50 == pytest.approx(260000)
        assert blended.totalSampleSize == 60
        assert blended.method == BlendingMethod.PERCENTAGE
        assert set(blended.sourceData) == {"Cardiology", "Internal Medicine"}

    def test_weighted_blend_uses_sample_sizes(self, two_specialties: List[SpecialtyBlendItem]):
        blended = blend_market_data(two_specialties, BlendingMethod.WEIGHTED)
        assert blended.marketData.tcc.p50 == pytest.approx(266666.67, abs=0.01)

    def test_user_weights_scale_sample_sizes(self, two_specialties: List[SpecialtyBlendItem]):
        two_specialties[1].weight = 2.0
        blended = blend_market_data(two_specialties, BlendingMethod.WEIGHTED)
        # (300000*40 + 200000*40) / 80
        assert blended.marketData.tcc.p50 == pytest.approx(250000)

    def test_invalid_blend_returns_none(self):
        items = [blend_item("Cardiology", percentage=50)]
        assert blend_market_data(items, BlendingMethod.PERCENTAGE) is None

    def test_single_specialty(self):
        blended = blend_market_data([blend_item("Cardiology", percentage=100)], BlendingMethod.PERCENTAGE)
        assert blended.marketData.tcc.p50 == pytest.approx(300000)


class TestConfidenceAndWarnings:

    def test_balanced_blend_full_confidence(self, two_specialties: List[SpecialtyBlendItem]):
        assert calculate_blending_confidence(two_specialties) == pytest.approx(1.0)

    def test_low_sample_warning(self, two_specialties: List[SpecialtyBlendItem]):
        warnings = generate_quality_warnings(two_specialties, 1.0)
        assert warnings == ["Low sample sizes for: Internal Medicine"]

    def test_dominant_specialty(self):
        items = [blend_item("Cardiology", percentage=90), blend_item("Neurology", percentage=10)]
        confidence = calculate_blending_confidence(items)

        assert confidence == pytest.approx(0.85)
        assert "One specialty dominates the blend (>80%), results may be skewed" in (
            generate_quality_warnings(items, confidence)
        )

    def test_many_specialties(self):
        items = [blend_item(f"Specialty {i}", percentage=20) for i in range(5)]
        confidence = calculate_blending_confidence(items)

        assert confidence == pytest.approx(0.96)
        assert "Complex blending with many specialties may reduce reliability" in (
            generate_quality_warnings(items, confidence)
        )

    def test_low_confidence_warning(self):
        items = [blend_item("Cardiology", row_count=3), blend_item("Neurology", row_count=3)]
        confidence = calculate_blending_confidence(items)

        assert confidence == pytest.approx(0.55)
        assert generate_quality_warnings(items, confidence)[0] == (
            "Low confidence in blended results due to data quality issues"
        )

    def test_empty(self):
        assert calculate_blending_confidence([]) == 0.0


class TestRecommendBlendingMethod:

    def test_uneven_samples_prefer_weighted(self):
        items = [blend_item("Cardiology", row_count=40), blend_item("Neurology", row_count=10)]
        assert recommend_blending_method(items) == BlendingMethod.WEIGHTED

    def test_dominant_percentage_prefers_weighted(self):
        items = [blend_item("Cardiology", percentage=75), blend_item("Neurology", percentage=25)]
        assert recommend_blending_method(items) == BlendingMethod.WEIGHTED

    def test_balanced_prefers_percentage(self, two_specialties: List[SpecialtyBlendItem]):
        assert recommend_blending_method(two_specialties) == BlendingMethod.PERCENTAGE

    def test_blend_result_carries_recommendation(self):
        items = [
            blend_item("Cardiology", row_count=40, percentage=50),
            blend_item("Neurology", row_count=10, percentage=50),
        ]
        blended = blend_market_data(items, BlendingMethod.PERCENTAGE)

        assert blended.method == BlendingMethod.PERCENTAGE
        assert blended.recommendedMethod == BlendingMethod.WEIGHTED
