"""
Percentile primitives.

Low-level statistics shared by the market-data engine and specialty blending:

- calculate_percentile: nearest-rank percentile of a value list
- weighted_average: weight-normalized mean with a zero-weight guard
- percentile_rank: piecewise-linear rank of a value against market percentiles

Nearest-rank selection (index = floor(p/100 * n), clamped to n-1) matches the
way survey vendors publish their own percentile tables, so pooled results are
always an observed value rather than an interpolated one.

Dependencies:
    - numpy: array sorting and weighted sums
"""

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from survey_benchmark.models import MarketPercentiles


# =============================================================================
# Constants
# =============================================================================

# Percentile labels carried by market data, in ascending order
PERCENTILE_KEYS: Tuple[str, ...] = ('p25', 'p50', 'p75', 'p90')

PERCENTILE_LEVELS = {'p25': 25.0, 'p50': 50.0, 'p75': 75.0, 'p90': 90.0}


# =============================================================================
# Pooled Statistics
# =============================================================================

def calculate_percentile(values: Sequence[float], percentile: float) -> float:
    """
    Nearest-rank percentile.

    Args:
        values: Values to rank; callers drop zero and missing entries first
        percentile: Percentile level in [0, 100]

    Returns:
        sorted(values)[floor(percentile/100 * n)], clamped to the last
        element; 0.0 for an empty list.
    """
    if len(values) == 0:
        return 0.0

    ordered = np.sort(np.asarray(values, dtype=np.float64))
    index = int(math.floor(percentile / 100.0 * len(ordered)))
    index = max(0, min(index, len(ordered) - 1))
    return float(ordered[index])


def weighted_average(values: Sequence[float], weights: Sequence[float]) -> float:
    """Sum(v*w) / Sum(w); 0.0 when the weights sum to zero."""
    if len(values) == 0:
        return 0.0

    values_array = np.asarray(values, dtype=np.float64)
    weights_array = np.asarray(weights, dtype=np.float64)
    total_weight = float(np.sum(weights_array))
    if total_weight == 0:
        return 0.0
    return float(np.sum(values_array * weights_array) / total_weight)


# =============================================================================
# Percentile Rank
# =============================================================================

def _is_missing(value: Optional[float]) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


def _control_points(market: MarketPercentiles) -> List[Tuple[float, float]]:
    p0 = market.p0 if market.p0 is not None else 0.0
    p100 = market.p100 if market.p100 is not None else market.p90 + (market.p90 - market.p75)
    return [
        (0.0, p0),
        (25.0, market.p25),
        (50.0, market.p50),
        (75.0, market.p75),
        (90.0, market.p90),
        (100.0, p100),
    ]


def _interpolate(value: float, lower: Tuple[float, float], upper: Tuple[float, float]) -> float:
    lower_pct, lower_value = lower
    upper_pct, upper_value = upper
    if upper_value == lower_value:
        return lower_pct
    return lower_pct + (value - lower_value) / (upper_value - lower_value) * (upper_pct - lower_pct)


def percentile_rank(market: Optional[MarketPercentiles], value: Optional[float]) -> Optional[float]:
    """
    Interpolate where a value falls within a market distribution.

    Control points are p0 (explicit or 0), p25, p50, p75, p90 and p100
    (explicit or p90 + (p90 - p75)). Values below p25 interpolate between p0
    and p25, values above p90 between p90 and p100, and anything in between
    uses the bracketing pair. The result is not clamped, so values beyond the
    synthesized p100 rank above 100.

    Args:
        market: Market percentiles for one metric
        value: User value, already FTE and call-pay adjusted

    Returns:
        Percentile rank, or None when the market is missing or all zero or the
        value is missing/NaN.
    """
    if market is None or market.is_empty() or _is_missing(value):
        return None

    value = float(value)
    points = _control_points(market)

    # Exact hits on a published percentile return that level
    for level, point_value in points[1:5]:
        if value == point_value:
            return level

    if value < market.p25:
        return _interpolate(value, points[0], points[1])
    if value > market.p90:
        return _interpolate(value, points[4], points[5])

    for lower, upper in zip(points[1:4], points[2:5]):
        if lower[1] <= value <= upper[1]:
            return _interpolate(value, lower, upper)

    # Non-monotonic market: fall back to the first bracket the value exceeds
    for lower, upper in zip(points[1:4], points[2:5]):
        if value >= lower[1]:
            return _interpolate(value, lower, upper)
    return None


__all__ = [
    'PERCENTILE_KEYS',
    'PERCENTILE_LEVELS',
    'calculate_percentile',
    'weighted_average',
    'percentile_rank',
]
