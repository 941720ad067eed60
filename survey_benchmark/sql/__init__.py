"""
SQL Query Module for the Survey Benchmark backend.

Re-exports the parameterized survey-store queries so the repository can import
them from survey_benchmark.sql directly.
"""

from survey_benchmark.sql.survey_queries import (
    SCHEMA_DDL,
    LIST_SURVEYS,
    GET_SURVEY_ROWS,
    LIST_COLUMN_MAPPINGS,
    LIST_SPECIALTY_MAPPINGS,
    UPSERT_SPECIALTY_MAPPING,
    DELETE_SPECIALTY_MAPPING,
    LIST_LEARNED_MAPPINGS,
    UPSERT_LEARNED_MAPPING,
    DELETE_LEARNED_MAPPING,
)


__all__ = [
    'SCHEMA_DDL',
    'LIST_SURVEYS',
    'GET_SURVEY_ROWS',
    'LIST_COLUMN_MAPPINGS',
    'LIST_SPECIALTY_MAPPINGS',
    'UPSERT_SPECIALTY_MAPPING',
    'DELETE_SPECIALTY_MAPPING',
    'LIST_LEARNED_MAPPINGS',
    'UPSERT_LEARNED_MAPPING',
    'DELETE_LEARNED_MAPPING',
]
