"""
Test suite for the market data aggregation engine.

The tests verify:
1. Simple (pooled nearest-rank) and weighted (incumbent-weighted) aggregation
2. Zero values are excluded from pooling
3. FTE normalization of TCC, wRVU and call pay (never CF)
4. Call-pay premiums applied to exactly one side of the comparison
5. TCC totals from itemized compensation components
"""

import pytest

from survey_benchmark.models import (
    AggregationMethod,
    CallPayAdjustments,
    CompensationComponent,
    MarketData,
    MarketPercentiles,
)
from survey_benchmark.services.market_data import (
    apply_call_pay_adjustments,
    apply_fte_adjustment,
    calculate_total_tcc,
    calculate_user_percentiles,
    call_pay_multiplier,
    compute_market_data,
)
from survey_benchmark.tests.factories import make_row


@pytest.fixture
def two_rows():
    return [
        make_row("Cardiology", tcc={'p50': 300000, 'n_incumbents': 10, 'n_orgs': 3}),
        make_row("Cardiology", region="West", tcc={'p50': 320000, 'n_incumbents': 5, 'n_orgs': 2}),
    ]


@pytest.fixture
def market() -> MarketData:
    return MarketData(
        tcc=MarketPercentiles(p25=200000, p50=300000, p75=400000, p90=500000),
        wrvu=MarketPercentiles(p25=4000, p50=5000, p75=6000, p90=7000),
        cf=MarketPercentiles(p25=40, p50=50, p75=60, p90=70),
        callPay=MarketPercentiles(p25=1000, p50=1500, p75=2000, p90=2500),
        rowCount=4,
    )


# =============================================================================
# AGGREGATION
# =============================================================================


class TestComputeMarketData:

    def test_simple_uses_nearest_rank(self, two_rows):
        market = compute_market_data(two_rows, AggregationMethod.SIMPLE)

        assert market.tcc.p50 == 320000
        assert market.aggregationMethod == AggregationMethod.SIMPLE

    def test_weighted_uses_incumbents(self, two_rows):
        market = compute_market_data(two_rows, AggregationMethod.WEIGHTED)
        assert market.tcc.p50 == pytest.approx(306666.67, abs=0.01)

    def test_counts(self, two_rows):
        market = compute_market_data(two_rows)

        assert market.rowCount == 2
        assert market.nIncumbents == 15
        assert market.nOrgs == 5
        assert not market.is_empty

    def test_zero_values_excluded(self):
        rows = [
            make_row("Urology", tcc={'p25': 0, 'p50': 100}),
            make_row("Urology", region="West", tcc={'p25': 80, 'p50': 0}),
        ]
        market = compute_market_data(rows)

        assert market.tcc.p25 == 80
        assert market.tcc.p50 == 100
        assert market.wrvu.is_empty()

    def test_method_accepts_string(self, two_rows):
        assert compute_market_data(two_rows, "weighted").aggregationMethod == AggregationMethod.WEIGHTED

    def test_empty_rows(self):
        market = compute_market_data([], AggregationMethod.WEIGHTED)

        assert market.is_empty
        assert market.tcc.p50 == 0.0

    def test_rows_without_call_pay_group(self, two_rows):
        for row in two_rows:
            row.metrics.callPay = None
        assert compute_market_data(two_rows).callPay.is_empty()


# =============================================================================
# USER-SIDE ADJUSTMENTS
# =============================================================================


class TestFteAdjustment:

    def test_part_time_annualized(self):
        assert apply_fte_adjustment(100000, 0.5) == 200000

    def test_zero_fte_leaves_value(self):
        assert apply_fte_adjustment(100000, 0) == 100000

    @pytest.mark.parametrize("value", [0.0, 1.0, 187500.0, 6200.5])
    def test_full_time_is_identity(self, value):
        assert apply_fte_adjustment(value, 1.0) == value

    def test_missing_value(self):
        assert apply_fte_adjustment(None, 0.5) is None


class TestCallPayAdjustments:

    def test_multiplier_compounds_positive_premiums(self):
        adjustments = CallPayAdjustments(weekendPremium=10, majorHolidayPremium=20)
        assert call_pay_multiplier(adjustments) == pytest.approx(1.32)

    def test_no_adjustments(self):
        assert call_pay_multiplier(None) == 1.0

    def test_applied_to_user_value(self, market: MarketData):
        adjusted_market, value = apply_call_pay_adjustments(
            market.callPay, 1000, CallPayAdjustments(weekendPremium=50)
        )

        assert value == pytest.approx(1500)
        assert adjusted_market == market.callPay

    def test_applied_to_market(self, market: MarketData):
        adjusted_market, value = apply_call_pay_adjustments(
            market.callPay, 1000, CallPayAdjustments(weekendPremium=50, applyToMarketData=True)
        )

        assert value == 1000
        assert adjusted_market.p50 == pytest.approx(2250)


class TestUserPercentiles:

    def test_fte_adjusts_tcc_but_not_cf(self, market: MarketData):
        ranks = calculate_user_percentiles(market, tcc=125000, cf=50, fte=0.5)

        assert ranks.tcc == pytest.approx(37.5)
        assert ranks.cf == 50.0
        assert ranks.wrvu is None

    def test_call_pay_premium_on_user_side(self, market: MarketData):
        ranks = calculate_user_percentiles(
            market, call_pay=1000, call_pay_adjustments=CallPayAdjustments(weekendPremium=50)
        )
        assert ranks.callPay == 50.0

    def test_call_pay_premium_on_market_side(self, market: MarketData):
        ranks = calculate_user_percentiles(
            market,
            call_pay=1500,
            call_pay_adjustments=CallPayAdjustments(weekendPremium=50, applyToMarketData=True),
        )
        assert ranks.callPay == 25.0

    def test_empty_market(self):
        ranks = calculate_user_percentiles(MarketData(), tcc=300000)
        assert ranks.tcc is None

    def test_total_tcc_from_components(self):
        components = [
            CompensationComponent(type="Base Salary", amount="$250,000"),
            CompensationComponent(type="Bonus", amount=50000),
            CompensationComponent(type="Stipend", amount="pending"),
        ]
        assert calculate_total_tcc(components) == 300000
