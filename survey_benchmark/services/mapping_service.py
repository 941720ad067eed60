"""
Specialty Mapping Service

Owns every write to the specialty taxonomy: auto-mapping of unmapped survey
specialties, manual corrections, mapping CRUD and the learned-mapping table.
The pure SpecialtyMatcher decides; this service appends source specialties,
persists mappings and learned corrections, and invalidates the benchmark
cache so normalized rows are rebuilt against the new taxonomy.

Auto-mapping flow:
    1. Discover unmapped specialties across all surveys (surveys fetched
       survey_fetch_batch_size at a time)
    2. Split them into chunks of auto_map_batch_size (clamped 10-50)
    3. Resolve every item of a chunk concurrently; accepted matches add a
       source specialty and persist through retry_async (bounded attempts,
       jittered exponential backoff). Writes to one mapping are serialized
       and a source joins the in-memory mapping only once it is saved
    4. Settle the chunk with asyncio.gather(return_exceptions=True) so one
       failing item never aborts its siblings; failures land in the report

Usage:
    service = SpecialtyMappingService(repository, cache, learned_store, settings)
    report = await service.auto_map_specialties(AutoMappingConfig(confidenceThreshold=0.8))
    print(len(report.mapped), len(report.failures))
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from survey_benchmark.core.config import Settings, get_settings
from survey_benchmark.models import (
    AutoMappingConfig,
    AutoMappingReport,
    InvalidationEvent,
    MappingFailure,
    MappingResult,
    MappingStatus,
    MappingSuggestionGroup,
    MatchMethod,
    MatchSuggestion,
    SourceSpecialty,
    SpecialtyMapping,
    UnmappedSpecialty,
)
from survey_benchmark.services.benchmark_cache import BenchmarkCache
from survey_benchmark.services.learned_mappings import LearnedMappingStore
from survey_benchmark.services.repository import SurveyRepository, gather_survey_rows
from survey_benchmark.services.retry import RetryExhaustedError, retry_async
from survey_benchmark.services.row_normalizer import build_column_map, distinct_specialties
from survey_benchmark.services.specialty_matcher import (
    SpecialtyMatcher,
    find_mapping,
    find_unmapped,
    normalize_specialty_name,
    string_similarity,
)


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class MappingNotFoundError(LookupError):
    """Raised when a specialty mapping id does not exist."""

    def __init__(self, mapping_id: str) -> None:
        self.mapping_id = mapping_id
        super().__init__(f"Specialty mapping {mapping_id} not found")


class DuplicateMappingError(ValueError):
    """Raised when a standardized name is already used by another mapping."""

    def __init__(self, standardized_name: str) -> None:
        self.standardized_name = standardized_name
        super().__init__(f"A mapping named '{standardized_name}' already exists")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _chunks(items: Sequence[UnmappedSpecialty], size: int) -> List[Sequence[UnmappedSpecialty]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


# =============================================================================
# SERVICE
# =============================================================================

class SpecialtyMappingService:
    """
    Specialty taxonomy maintenance.

    Args:
        repository: Survey store client
        cache: Benchmark cache invalidated after every taxonomy change
        learned_store: In-memory learned corrections shared with the matcher
        settings: Batch sizes, thresholds and retry policy
    """

    def __init__(
        self,
        repository: SurveyRepository,
        cache: BenchmarkCache,
        learned_store: Optional[LearnedMappingStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.learned_store = learned_store if learned_store is not None else LearnedMappingStore()
        self.settings = settings or get_settings()
        self.matcher = SpecialtyMatcher(self.learned_store)
        self._mapping_locks: Dict[str, asyncio.Lock] = {}

    # =========================================================================
    # Learned Mappings
    # =========================================================================

    async def load_learned_mappings(self) -> int:
        """Refresh the learned store from the survey store."""
        mappings = await self.repository.get_learned_mappings()
        self.learned_store.load(mappings)
        logger.info(f"Loaded {len(self.learned_store)} learned specialty mappings")
        return len(self.learned_store)

    def get_learned_mappings(self) -> Dict[str, str]:
        return self.learned_store.as_dict()

    async def remove_learned_mapping(self, original_name: str) -> bool:
        removed = await self.repository.delete_learned_mapping(original_name)
        self.learned_store.remove(original_name)
        if removed:
            self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)
        return removed

    def _mapping_lock(self, mapping_id: str) -> asyncio.Lock:
        lock = self._mapping_locks.get(mapping_id)
        if lock is None:
            lock = self._mapping_locks[mapping_id] = asyncio.Lock()
        return lock

    async def _persist(self, description: str, mapping: SpecialtyMapping, learned: Optional[Tuple[str, str]]) -> None:
        async def write() -> None:
            await self.repository.save_mapping(mapping)
            if learned is not None:
                await self.repository.save_learned_mapping(*learned)

        await retry_async(
            write,
            description=description,
            max_attempts=self.settings.persistence_max_attempts,
            base_delay=self.settings.retry_base_delay_seconds,
            max_delay=self.settings.retry_max_delay_seconds,
        )

    # =========================================================================
    # Unmapped Discovery
    # =========================================================================

    async def get_unmapped_specialties(
        self,
        mappings: Optional[List[SpecialtyMapping]] = None,
    ) -> List[UnmappedSpecialty]:
        """
        Specialty labels across all surveys that no mapping covers.

        Returns:
            One entry per (survey source, label) with its row count, most
            frequent first.
        """
        if mappings is None:
            mappings = await self.repository.get_all_mappings()
        surveys = await self.repository.list_surveys()
        column_mappings = await self.repository.get_all_column_mappings()

        counts: Dict[Tuple[str, str], int] = {}
        batch_size = self.settings.survey_fetch_batch_size
        for start in range(0, len(surveys), batch_size):
            batch = surveys[start:start + batch_size]
            pages = await gather_survey_rows(
                self.repository,
                [survey.id for survey in batch],
                self.settings.survey_page_size,
            )
            for survey, rows in zip(batch, pages):
                column_map = build_column_map(column_mappings, survey)
                for label, count in distinct_specialties(rows or [], column_map).items():
                    key = (survey.surveySource, label)
                    counts[key] = counts.get(key, 0) + count

        unmapped = find_unmapped(counts, mappings)
        unmapped.sort(key=lambda item: -item.frequency)
        logger.info(f"Found {len(unmapped)} unmapped specialties across {len(surveys)} surveys")
        return unmapped

    # =========================================================================
    # Auto-Mapping
    # =========================================================================

    async def _map_one(
        self,
        specialty: UnmappedSpecialty,
        mappings: List[SpecialtyMapping],
        existing: List[SpecialtyMapping],
        config: AutoMappingConfig,
    ) -> MappingResult:
        match = self.matcher.resolve(
            specialty.name,
            specialty.surveySource,
            mappings,
            config.confidenceThreshold,
            use_fuzzy_matching=config.useFuzzyMatching,
        )
        result = MappingResult(
            specialty=specialty.name,
            surveySource=specialty.surveySource,
            standardizedName=match.standardizedName,
            confidence=match.confidence,
            method=match.method,
        )
        if not match.is_resolved:
            return result

        mapping = find_mapping(match.standardizedName, mappings)
        if mapping is None:
            mapping = find_mapping(match.standardizedName, existing)
        if mapping is None:
            # Learned correction whose target mapping no longer exists
            mapping = SpecialtyMapping(id=str(uuid4()), standardizedName=match.standardizedName, createdAt=_now())
            mappings.append(mapping)

        source = SourceSpecialty(
            id=str(uuid4()),
            specialty=specialty.name,
            surveySource=specialty.surveySource,
            originalName=specialty.name,
        )
        learned = None
        if match.method in (MatchMethod.SYNONYM, MatchMethod.FUZZY):
            learned = (specialty.name, mapping.standardizedName)

        # Writes to one mapping are serialized (the upsert replaces the whole
        # source list); the shared mapping only holds saved sources
        async with self._mapping_lock(mapping.id):
            if mapping.has_source(source.specialty, source.surveySource):
                return result.model_copy(update={'status': MappingStatus.ALREADY_MAPPED})

            candidate = mapping.model_copy(deep=True)
            candidate.add_source(source)
            candidate.updatedAt = _now()
            await self._persist(f"Mapping '{specialty.name}' -> '{mapping.standardizedName}'", candidate, learned)

            mapping.add_source(source)
            mapping.updatedAt = candidate.updatedAt

        if learned is not None:
            self.learned_store.set(*learned)
        return result.model_copy(update={'status': MappingStatus.MAPPED})

    async def auto_map_specialties(
        self,
        config: Optional[AutoMappingConfig] = None,
        unmapped: Optional[List[UnmappedSpecialty]] = None,
    ) -> AutoMappingReport:
        """
        Map every unmapped specialty the matcher can resolve.

        Args:
            config: Threshold and matching options; defaults from settings
            unmapped: Specialties to process; discovered from the surveys
                when omitted

        Returns:
            AutoMappingReport with one result per processed specialty and one
            failure per specialty whose mapping could not be persisted. Never
            raises for per-item failures.
        """
        config = config or AutoMappingConfig(confidenceThreshold=self.settings.default_confidence_threshold)
        existing = await self.repository.get_all_mappings()
        if unmapped is None:
            unmapped = await self.get_unmapped_specialties(existing)
        mappings = existing if config.useExistingMappings else []

        report = AutoMappingReport()
        chunk_size = self.settings.effective_auto_map_batch_size
        chunks = _chunks(unmapped, chunk_size)

        for index, chunk in enumerate(chunks, start=1):
            logger.info(f"Processing auto-mapping batch {index}/{len(chunks)} ({len(chunk)} specialties)")
            outcomes = await asyncio.gather(
                *(self._map_one(specialty, mappings, existing, config) for specialty in chunk),
                return_exceptions=True,
            )
            for specialty, outcome in zip(chunk, outcomes):
                report.processed += 1
                if isinstance(outcome, MappingResult):
                    report.results.append(outcome)
                    continue
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                attempts = outcome.attempts if isinstance(outcome, RetryExhaustedError) else 1
                error = outcome.last_error if isinstance(outcome, RetryExhaustedError) else outcome
                report.failures.append(MappingFailure(
                    specialty=specialty.name,
                    surveySource=specialty.surveySource,
                    error=str(error) or type(error).__name__,
                    attempts=attempts,
                ))

        logger.info(
            f"Auto-mapping completed: {len(report.mapped)} mapped, "
            f"{len(report.results) - len(report.mapped)} unchanged, {len(report.failures)} failed"
        )
        if report.failures:
            logger.warning(f"Failed mappings: {[failure.specialty for failure in report.failures]}")
        if report.mapped:
            self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)
        return report

    # =========================================================================
    # Suggestions
    # =========================================================================

    async def suggest_matches(self, raw_name: str) -> List[MatchSuggestion]:
        mappings = await self.repository.get_all_mappings()
        return self.matcher.suggest_matches(raw_name, mappings)

    async def generate_mapping_suggestions(
        self,
        config: Optional[AutoMappingConfig] = None,
    ) -> List[MappingSuggestionGroup]:
        """
        Group unmapped specialties under proposed standardized names.

        Each unmapped label joins the first existing mapping (when
        useExistingMappings) or earlier group whose name is similar enough,
        otherwise it starts a new group named after itself. Group confidence
        is the mean pairwise similarity of its members (1.0 for singletons).
        """
        config = config or AutoMappingConfig(confidenceThreshold=self.settings.default_confidence_threshold)
        existing = await self.repository.get_all_mappings()
        unmapped = await self.get_unmapped_specialties(existing)

        def similarity(first: str, second: str) -> float:
            if not config.useFuzzyMatching:
                return 1.0 if normalize_specialty_name(first) == normalize_specialty_name(second) else 0.0
            return string_similarity(first, second)

        groups: Dict[str, List[UnmappedSpecialty]] = {}
        for specialty in unmapped:
            target = None
            if config.useExistingMappings:
                target = next(
                    (
                        mapping.standardizedName for mapping in existing
                        if similarity(specialty.name, mapping.standardizedName) >= config.confidenceThreshold
                    ),
                    None,
                )
            if target is None:
                target = next(
                    (key for key in groups if similarity(specialty.name, key) >= config.confidenceThreshold),
                    specialty.name,
                )
            groups.setdefault(target, []).append(specialty)

        suggestions: List[MappingSuggestionGroup] = []
        for name, members in groups.items():
            pairs = [
                similarity(members[i].name, members[j].name)
                for i in range(len(members))
                for j in range(i + 1, len(members))
            ]
            confidence = sum(pairs) / len(pairs) if pairs else 1.0
            suggestions.append(MappingSuggestionGroup(standardizedName=name, confidence=confidence, specialties=members))

        suggestions.sort(key=lambda group: -group.confidence)
        return suggestions

    # =========================================================================
    # Mapping CRUD
    # =========================================================================

    async def list_mappings(self) -> List[SpecialtyMapping]:
        return await self.repository.get_all_mappings()

    @staticmethod
    def _get_mapping(mapping_id: str, mappings: List[SpecialtyMapping]) -> SpecialtyMapping:
        for mapping in mappings:
            if mapping.id == mapping_id:
                return mapping
        raise MappingNotFoundError(mapping_id)

    @staticmethod
    def _ensure_unique(name: str, mappings: Sequence[SpecialtyMapping], exclude_id: Optional[str] = None) -> None:
        existing = find_mapping(name, [m for m in mappings if m.id != exclude_id])
        if existing is not None:
            raise DuplicateMappingError(name)

    async def create_mapping(
        self,
        standardized_name: str,
        source_specialties: Sequence[SourceSpecialty] = (),
    ) -> SpecialtyMapping:
        mappings = await self.repository.get_all_mappings()
        self._ensure_unique(standardized_name, mappings)

        mapping = SpecialtyMapping(
            id=str(uuid4()),
            standardizedName=standardized_name.strip(),
            createdAt=_now(),
            updatedAt=_now(),
        )
        for source in source_specialties:
            mapping.add_source(source)

        saved = await self.repository.save_mapping(mapping)
        logger.info(f"Created specialty mapping '{mapping.standardizedName}' with {len(mapping.sourceSpecialties)} sources")
        self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)
        return saved

    async def update_mapping(
        self,
        mapping_id: str,
        standardized_name: Optional[str] = None,
        source_specialties: Optional[Sequence[SourceSpecialty]] = None,
    ) -> SpecialtyMapping:
        """
        Rename a mapping and/or replace its source specialties.

        A rename is learned for every source label so later uploads resolve
        straight to the new name.
        """
        mappings = await self.repository.get_all_mappings()
        mapping = self._get_mapping(mapping_id, mappings)

        renamed = False
        if standardized_name is not None and standardized_name.strip() != mapping.standardizedName:
            self._ensure_unique(standardized_name, mappings, exclude_id=mapping_id)
            mapping.standardizedName = standardized_name.strip()
            renamed = True

        if source_specialties is not None:
            mapping.sourceSpecialties = []
            for source in source_specialties:
                mapping.add_source(source)

        mapping.updatedAt = _now()
        saved = await self.repository.save_mapping(mapping)

        if renamed:
            for source in mapping.sourceSpecialties:
                await self.repository.save_learned_mapping(source.specialty, mapping.standardizedName)
                self.learned_store.set(source.specialty, mapping.standardizedName)

        self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)
        return saved

    async def delete_mapping(self, mapping_id: str) -> None:
        deleted = await self.repository.delete_mapping(mapping_id)
        if not deleted:
            raise MappingNotFoundError(mapping_id)
        logger.info(f"Deleted specialty mapping {mapping_id}")
        self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)

    async def correct_specialty(
        self,
        specialty: str,
        survey_source: str,
        standardized_name: str,
    ) -> SpecialtyMapping:
        """
        Manually map a survey label to a standardized specialty.

        The label is detached from any other mapping, attached to the target
        (created when missing) and remembered as a learned correction.
        """
        mappings = await self.repository.get_all_mappings()

        for other in mappings:
            if normalize_specialty_name(other.standardizedName) == normalize_specialty_name(standardized_name):
                continue
            if other.has_source(specialty, survey_source):
                key = SourceSpecialty(specialty=specialty, surveySource=survey_source).key()
                other.sourceSpecialties = [s for s in other.sourceSpecialties if s.key() != key]
                other.updatedAt = _now()
                await self.repository.save_mapping(other)

        target = find_mapping(standardized_name, mappings)
        if target is None:
            target = SpecialtyMapping(id=str(uuid4()), standardizedName=standardized_name.strip(), createdAt=_now())

        target.add_source(SourceSpecialty(
            id=str(uuid4()),
            specialty=specialty,
            surveySource=survey_source,
            originalName=specialty,
        ))
        target.updatedAt = _now()
        saved = await self.repository.save_mapping(target)

        await self.repository.save_learned_mapping(specialty, target.standardizedName)
        self.learned_store.set(specialty, target.standardizedName)

        logger.info(f"Corrected '{specialty}' ({survey_source}) -> '{target.standardizedName}'")
        self.cache.invalidate(InvalidationEvent.MAPPING_CHANGED)
        return saved


__all__ = [
    'MappingNotFoundError',
    'DuplicateMappingError',
    'SpecialtyMappingService',
]
