"""
Survey Store Repository

asyncpg-backed access to surveys, raw survey rows, column mappings, specialty
mappings and learned corrections. This is the only I/O boundary of the
benchmark core; every other service receives a SurveyRepository (or a mock in
tests) and stays free of SQL.

JSONB columns are written as JSON text and decoded here, so callers only see
Pydantic models and plain dicts.

Usage:
    repository = SurveyRepository()
    surveys = await repository.list_surveys()
    rows = await repository.get_survey_data(surveys[0].id, page=1, limit=10000)
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from asyncpg import Pool, Record

from survey_benchmark.core.database import get_db_pool
from survey_benchmark.models import (
    ColumnMapping,
    RawSurveyRow,
    SourceSpecialty,
    SpecialtyMapping,
    Survey,
)
from survey_benchmark.services.learned_mappings import learned_key
from survey_benchmark.sql import (
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


logger = logging.getLogger(__name__)


def _decode_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _record_to_mapping(record: Record) -> SpecialtyMapping:
    sources = _decode_json(record['source_specialties'], [])
    return SpecialtyMapping(
        id=record['id'],
        standardizedName=record['standardized_name'],
        sourceSpecialties=[SourceSpecialty(**source) for source in sources],
        createdAt=record['created_at'],
        updatedAt=record['updated_at'],
    )


class SurveyRepository:
    """
    Survey store client.

    Args:
        pool_provider: Coroutine returning the asyncpg pool; defaults to the
            process-wide pool from survey_benchmark.core.database
    """

    def __init__(self, pool_provider: Callable[[], Awaitable[Pool]] = get_db_pool) -> None:
        self._pool_provider = pool_provider

    async def ensure_schema(self) -> None:
        """Create survey store tables when missing."""
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            await conn.execute(SCHEMA_DDL)

    # =========================================================================
    # Surveys
    # =========================================================================

    async def list_surveys(self) -> List[Survey]:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            records = await conn.fetch(LIST_SURVEYS)

        return [
            Survey(
                id=record['id'],
                name=record['name'] or '',
                surveySource=record['survey_source'] or '',
                year=record['year'] or '',
                providerType=record['provider_type'] or '',
                rowCount=record['row_count'] or 0,
            )
            for record in records
        ]

    async def get_survey_data(self, survey_id: str, page: int = 1, limit: int = 10000) -> List[RawSurveyRow]:
        """
        One page of raw rows for a survey.

        Args:
            survey_id: Survey identifier
            page: 1-based page number
            limit: Rows per page

        Returns:
            Raw row dicts in upload order; shorter than limit on the last page
        """
        offset = max(0, page - 1) * limit
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            records = await conn.fetch(GET_SURVEY_ROWS, survey_id, limit, offset)
        return [_decode_json(record['data'], {}) for record in records]

    # =========================================================================
    # Column Mappings
    # =========================================================================

    async def get_all_column_mappings(self) -> List[ColumnMapping]:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            records = await conn.fetch(LIST_COLUMN_MAPPINGS)

        return [
            ColumnMapping(
                id=record['id'],
                surveyId=record['survey_id'],
                surveySource=record['survey_source'],
                standardName=record['standard_name'],
                mappedColumns=_decode_json(record['mapped_columns'], []),
            )
            for record in records
        ]

    # =========================================================================
    # Specialty Mappings
    # =========================================================================

    async def get_all_mappings(self) -> List[SpecialtyMapping]:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            records = await conn.fetch(LIST_SPECIALTY_MAPPINGS)
        return [_record_to_mapping(record) for record in records]

    async def save_mapping(self, mapping: SpecialtyMapping) -> SpecialtyMapping:
        """Insert or update a mapping; returns the stored version."""
        sources = json.dumps([source.model_dump() for source in mapping.sourceSpecialties])
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            record = await conn.fetchrow(
                UPSERT_SPECIALTY_MAPPING,
                mapping.id,
                mapping.standardizedName,
                sources,
                mapping.createdAt,
            )
        logger.debug(f"Saved specialty mapping {mapping.id} ({mapping.standardizedName})")
        return _record_to_mapping(record)

    async def delete_mapping(self, mapping_id: str) -> bool:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            status = await conn.execute(DELETE_SPECIALTY_MAPPING, mapping_id)
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return status.endswith(" 1")

    # =========================================================================
    # Learned Mappings
    # =========================================================================

    async def save_learned_mapping(self, original_name: str, corrected_name: str) -> None:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            await conn.execute(UPSERT_LEARNED_MAPPING, learned_key(original_name), corrected_name)

    async def get_learned_mappings(self) -> Dict[str, str]:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            records = await conn.fetch(LIST_LEARNED_MAPPINGS)
        return {record['original_name']: record['corrected_name'] for record in records}

    async def delete_learned_mapping(self, original_name: str) -> bool:
        pool = await self._pool_provider()
        async with pool.acquire() as conn:
            status = await conn.execute(DELETE_LEARNED_MAPPING, learned_key(original_name))
        return status.endswith(" 1")


async def fetch_all_survey_rows(
    repository: SurveyRepository,
    survey_id: str,
    page_size: int,
    abort: Optional[asyncio.Event] = None,
) -> Optional[List[RawSurveyRow]]:
    """
    Page through every raw row of a survey.

    Returns:
        All rows in upload order, or None when the abort event was set
        between pages.
    """
    rows: List[RawSurveyRow] = []
    page = 1
    while True:
        if abort is not None and abort.is_set():
            return None
        batch = await repository.get_survey_data(survey_id, page=page, limit=page_size)
        rows.extend(batch)
        if len(batch) < page_size:
            return rows
        page += 1


async def gather_survey_rows(
    repository: SurveyRepository,
    survey_ids: Sequence[str],
    page_size: int,
    abort: Optional[asyncio.Event] = None,
) -> List[Optional[List[RawSurveyRow]]]:
    """
    Fetch several surveys concurrently, results in survey_ids order.

    When one fetch fails the others are cancelled and awaited before the
    error propagates.
    """
    tasks = [
        asyncio.create_task(fetch_all_survey_rows(repository, survey_id, page_size, abort))
        for survey_id in survey_ids
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


__all__ = ['SurveyRepository', 'fetch_all_survey_rows', 'gather_survey_rows']
