"""
Benchmark Cache

Holds the most recently loaded canonical dataset plus memoized filter option
lists, with a TTL and explicit invalidation.

The cache is an ordinary object owned by the benchmark service and handed to
the mapping service, so tests can construct one with an injected clock. It is
used from a single asyncio event loop and needs no locking.

Consistency rules:
    - An entry is fresh while its age is below the TTL
    - Every store bumps a monotonically increasing version stamp
    - Uploads, deletions, mapping edits and explicit clears drop the entry and
      every memoized filter list
    - A dataset missing a metric group a computation needs (rows normalized
      without call pay, for instance) is reported as a miss so the caller
      refetches
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from survey_benchmark.models import CanonicalRow, InvalidationEvent, MetricType, UniqueFilterValues


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: int = 24 * 60 * 60


class CachedDataset(NamedTuple):
    """A cached dataset snapshot."""
    rows: List[CanonicalRow]
    version: int
    stored_at: float


class BenchmarkCache:
    """
    TTL cache for canonical survey rows.

    Args:
        ttl_seconds: Entry lifetime
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CachedDataset] = None
        self._filter_values: Dict[str, UniqueFilterValues] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def _is_fresh(self, entry: Optional[CachedDataset]) -> bool:
        return entry is not None and (self._clock() - entry.stored_at) < self.ttl_seconds

    def has_fresh_data(self) -> bool:
        return self._is_fresh(self._entry)

    def set_cached_data(self, rows: Iterable[CanonicalRow]) -> int:
        """Store a dataset and return its version stamp."""
        self._version += 1
        self._entry = CachedDataset(rows=list(rows), version=self._version, stored_at=self._clock())
        self._filter_values.clear()
        logger.info(f"Benchmark cache stored {len(self._entry.rows)} rows (version {self._version})")
        return self._version

    def get_cached_data(
        self,
        require_call_pay: bool = False,
        required_metrics: Iterable[MetricType] = (),
    ) -> Optional[CachedDataset]:
        """
        Fresh, structurally complete dataset or None.

        Args:
            require_call_pay: Rows must carry the callPay metric group
            required_metrics: Any further metric groups rows must carry
        """
        entry = self._entry
        if entry is None:
            return None
        if not self._is_fresh(entry):
            logger.info(f"Benchmark cache entry version {entry.version} expired")
            self.clear()
            return None

        required = set(required_metrics)
        if require_call_pay:
            required.add(MetricType.CALL_PAY)
        if required and any(row.metric(metric) is None for row in entry.rows for metric in required):
            logger.warning(
                f"Cached dataset version {entry.version} lacks "
                f"{', '.join(sorted(metric.value for metric in required))}; refetching"
            )
            return None
        return entry

    # -------------------------------------------------------------------------
    # Memoized filter option lists
    # -------------------------------------------------------------------------

    def get_filter_values(self, key: str) -> Optional[UniqueFilterValues]:
        if not self.has_fresh_data():
            return None
        return self._filter_values.get(key)

    def set_filter_values(self, key: str, values: UniqueFilterValues) -> None:
        if self._entry is not None:
            self._filter_values[key] = values

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def clear(self) -> None:
        self._entry = None
        self._filter_values.clear()

    def invalidate(self, event: InvalidationEvent) -> None:
        """Drop cached data in response to a mutation event."""
        had_data = self._entry is not None
        self.clear()
        logger.info(f"Benchmark cache invalidated by {InvalidationEvent(event).value} (had data: {had_data})")


__all__ = ['DEFAULT_TTL_SECONDS', 'CachedDataset', 'BenchmarkCache']
