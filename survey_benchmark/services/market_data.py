"""
Market Data Aggregation Engine

Pools filtered canonical rows into one market distribution per metric and
ranks user values against it.

Aggregation methods:
    simple:   every percentile column is pooled independently across rows
              (non-zero values only) and reduced with the nearest-rank
              percentile at the same level, so market p50 is the pooled
              median of the row p50 values
    weighted: every percentile column is the n_incumbents-weighted average
              of the non-zero row values

User-side adjustments:
    - FTE: TCC, wRVU and call pay are divided by FTE before ranking; CF is a
      rate and never adjusted
    - Call pay: the combined premium multiplier is applied either to the
      user's rate or to the market percentiles, never both
"""

import logging
from typing import Any, Iterable, Optional, Sequence, Tuple

from survey_benchmark.models import (
    AggregationMethod,
    CallPayAdjustments,
    CanonicalRow,
    CompensationComponent,
    MarketData,
    MarketPercentiles,
    MetricType,
    UserPercentiles,
)
from survey_benchmark.services.percentiles import (
    PERCENTILE_KEYS,
    PERCENTILE_LEVELS,
    calculate_percentile,
    percentile_rank,
    weighted_average,
)
from survey_benchmark.services.row_normalizer import coerce_number


logger = logging.getLogger(__name__)


CALL_PAY_ADJUSTMENT_FIELDS: Tuple[str, ...] = (
    'weekendPremium',
    'majorHolidayPremium',
    'highValueHolidayPremium',
    'frequencyMultiplier',
    'acuityMultiplier',
)


# =============================================================================
# AGGREGATION
# =============================================================================

def _pool_metric(
    rows: Sequence[CanonicalRow],
    metric: MetricType,
    method: AggregationMethod,
) -> MarketPercentiles:
    groups = [row.metric(metric) for row in rows]
    groups = [group for group in groups if group is not None]

    values = {}
    for key in PERCENTILE_KEYS:
        pairs = [
            (getattr(group, key), group.n_incumbents)
            for group in groups
            if getattr(group, key) != 0
        ]
        if method == AggregationMethod.WEIGHTED:
            values[key] = weighted_average([v for v, _ in pairs], [w for _, w in pairs])
        else:
            values[key] = calculate_percentile([v for v, _ in pairs], PERCENTILE_LEVELS[key])
    return MarketPercentiles(**values)


def compute_market_data(
    rows: Sequence[CanonicalRow],
    method: AggregationMethod = AggregationMethod.SIMPLE,
) -> MarketData:
    """
    Aggregate rows into market percentiles for every metric.

    Args:
        rows: Canonical rows already narrowed by the filter engine
        method: Simple (pooled nearest-rank) or weighted (incumbent-weighted)

    Returns:
        MarketData; is_empty when no rows contributed
    """
    method = AggregationMethod(method)
    if not rows:
        return MarketData(aggregationMethod=method)

    market = MarketData(
        aggregationMethod=method,
        rowCount=len(rows),
        nOrgs=float(sum(row.metrics.tcc.n_orgs for row in rows)),
        nIncumbents=float(sum(row.metrics.tcc.n_incumbents for row in rows)),
    )
    for metric in MetricType:
        setattr(market, metric.value, _pool_metric(rows, metric, method))
    logger.debug(f"Computed {method.value} market data from {len(rows)} rows")
    return market


# =============================================================================
# USER-SIDE ADJUSTMENTS
# =============================================================================

def apply_fte_adjustment(value: Optional[float], fte: Optional[float]) -> Optional[float]:
    """Annualize a part-time value to 1.0 FTE; FTE of 0/None leaves it unchanged."""
    if value is None or not fte:
        return value
    return value / fte


def call_pay_multiplier(adjustments: Optional[CallPayAdjustments]) -> float:
    """Product of (1 + pct/100) over every positive premium and multiplier."""
    if adjustments is None:
        return 1.0
    multiplier = 1.0
    for field in CALL_PAY_ADJUSTMENT_FIELDS:
        percent = getattr(adjustments, field)
        if percent > 0:
            multiplier *= 1.0 + percent / 100.0
    return multiplier


def apply_call_pay_adjustments(
    market: MarketPercentiles,
    user_value: Optional[float],
    adjustments: Optional[CallPayAdjustments],
) -> Tuple[MarketPercentiles, Optional[float]]:
    """
    Apply the call-pay multiplier to exactly one side of the comparison.

    Returns:
        (market, user_value) with the multiplier applied to the market when
        applyToMarketData is set, otherwise to the user value.
    """
    multiplier = call_pay_multiplier(adjustments)
    if multiplier == 1.0:
        return market, user_value
    if adjustments.applyToMarketData:
        return market.scaled(multiplier), user_value
    if user_value is None:
        return market, None
    return market, user_value * multiplier


# =============================================================================
# PERCENTILE RANKS
# =============================================================================

def calculate_user_percentiles(
    market: Optional[MarketData],
    tcc: Optional[float] = None,
    wrvu: Optional[float] = None,
    cf: Optional[float] = None,
    call_pay: Optional[float] = None,
    fte: Optional[float] = 1.0,
    call_pay_adjustments: Optional[CallPayAdjustments] = None,
) -> UserPercentiles:
    """
    Rank user values against market data.

    TCC, wRVU and call pay are FTE-adjusted first; call pay then receives the
    premium multiplier on the side selected by the adjustments. Metrics whose
    market is empty or whose value is missing rank as None.
    """
    if market is None or market.is_empty:
        return UserPercentiles()

    call_pay_market, adjusted_call_pay = apply_call_pay_adjustments(
        market.callPay,
        apply_fte_adjustment(call_pay, fte),
        call_pay_adjustments,
    )

    return UserPercentiles(
        tcc=percentile_rank(market.tcc, apply_fte_adjustment(tcc, fte)),
        wrvu=percentile_rank(market.wrvu, apply_fte_adjustment(wrvu, fte)),
        cf=percentile_rank(market.cf, cf),
        callPay=percentile_rank(call_pay_market, adjusted_call_pay),
    )


def calculate_total_tcc(components: Iterable[Any]) -> float:
    """Sum compensation components; non-numeric amounts count as 0."""
    total = 0.0
    for component in components:
        amount = component.amount if isinstance(component, CompensationComponent) else component
        total += coerce_number(amount)
    return total


__all__ = [
    'compute_market_data',
    'apply_fte_adjustment',
    'call_pay_multiplier',
    'apply_call_pay_adjustments',
    'calculate_user_percentiles',
    'calculate_total_tcc',
]
