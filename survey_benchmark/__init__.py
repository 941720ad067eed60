"""
Survey Benchmark Backend Package.

FastAPI service layer that turns heterogeneous compensation survey uploads
into comparable market benchmarks: specialty resolution, row normalization,
cascading filters, percentile aggregation and specialty blending.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Benchmark core and orchestration services
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
