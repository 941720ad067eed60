"""
Test package for the Survey Benchmark backend.

Test modules:
- test_specialty_matcher: staged specialty resolution and suggestions
- test_row_normalizer: raw row -> CanonicalRow conversion
- test_filter_engine: filter application and cascading option lists
- test_percentiles: nearest-rank percentiles and percentile ranks
- test_market_data: market aggregation and user-side adjustments
- test_blending: specialty blending, confidence and warnings
- test_benchmark_cache: TTL, versioning and invalidation
- test_retry: bounded jittered retries
- test_repository: asyncpg repository against a mocked pool
- test_mapping_service: auto-mapping, corrections and mapping CRUD
- test_benchmark_service: dataset loading and benchmark lookups
- test_api: FastAPI endpoint contracts
"""
