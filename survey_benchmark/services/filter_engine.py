"""
Filter Engine

Applies benchmark filter state to canonical rows and derives the cascading
option lists shown for each filter dimension.

Matching rules:
    - Empty strings, None and the 'All ...' sentinels mean no filtering
    - specialty: the selected standardized specialty is expanded to every
      source label mapped onto it; a row matches when its specialty or its
      original label falls in that set
    - providerType / region / surveySource: case-insensitive, trimmed,
      internal whitespace collapsed
    - year: string equality

Option lists are derived purely from the full row set: for each dimension the
rows are re-filtered with every *other* selected filter and the distinct
values collected. surveySource options are never narrowed by other filters so
that switching sources is always possible.
"""

from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from survey_benchmark.models import (
    BenchmarkFilters,
    CanonicalRow,
    FilterDimension,
    SpecialtyMapping,
    UniqueFilterValues,
)
from survey_benchmark.services.specialty_matcher import expand_specialty, normalize_specialty_name


# =============================================================================
# CONSTANTS
# =============================================================================

ALL_SENTINELS: FrozenSet[str] = frozenset({
    'all specialties',
    'all types',
    'all provider types',
    'all regions',
    'all sources',
    'all years',
})

# Filter field on BenchmarkFilters per dimension
FILTER_FIELDS: Dict[FilterDimension, str] = {
    FilterDimension.SPECIALTY: 'specialty',
    FilterDimension.PROVIDER_TYPE: 'providerType',
    FilterDimension.REGION: 'region',
    FilterDimension.SURVEY_SOURCE: 'surveySource',
    FilterDimension.YEAR: 'year',
}

# Row attribute per dimension
ROW_FIELDS: Dict[FilterDimension, str] = {
    FilterDimension.SPECIALTY: 'specialty',
    FilterDimension.PROVIDER_TYPE: 'providerType',
    FilterDimension.REGION: 'geographicRegion',
    FilterDimension.SURVEY_SOURCE: 'surveySource',
    FilterDimension.YEAR: 'year',
}


def is_unfiltered(value: Optional[str]) -> bool:
    """True when a filter value means 'no filtering'."""
    if value is None:
        return True
    normalized = normalize_specialty_name(str(value))
    return not normalized or normalized in ALL_SENTINELS


# =============================================================================
# PREDICATES
# =============================================================================

RowPredicate = Callable[[CanonicalRow], bool]


def _text_predicate(attribute: str, selected: str) -> RowPredicate:
    target = normalize_specialty_name(selected)
    return lambda row: normalize_specialty_name(getattr(row, attribute)) == target


def _specialty_predicate(selected: str, mappings: Sequence[SpecialtyMapping]) -> RowPredicate:
    expanded: Set[str] = expand_specialty(selected, mappings)

    def matches(row: CanonicalRow) -> bool:
        return (
            normalize_specialty_name(row.specialty) in expanded
            or normalize_specialty_name(row.originalSpecialty) in expanded
        )
    return matches


def _year_predicate(selected: str) -> RowPredicate:
    target = str(selected).strip()
    return lambda row: str(row.year).strip() == target


def build_predicates(
    filters: BenchmarkFilters,
    mappings: Optional[Sequence[SpecialtyMapping]] = None,
    exclude: Optional[FilterDimension] = None,
) -> List[RowPredicate]:
    """Predicates for every active filter, optionally leaving one dimension out."""
    predicates: List[RowPredicate] = []
    for dimension, field in FILTER_FIELDS.items():
        if dimension == exclude:
            continue
        selected = getattr(filters, field)
        if is_unfiltered(selected):
            continue
        if dimension == FilterDimension.SPECIALTY:
            predicates.append(_specialty_predicate(selected, mappings or []))
        elif dimension == FilterDimension.YEAR:
            predicates.append(_year_predicate(selected))
        else:
            predicates.append(_text_predicate(ROW_FIELDS[dimension], selected))
    return predicates


# =============================================================================
# PUBLIC API
# =============================================================================

def apply_filters(
    rows: Iterable[CanonicalRow],
    filters: BenchmarkFilters,
    mappings: Optional[Sequence[SpecialtyMapping]] = None,
) -> List[CanonicalRow]:
    """Rows satisfying every active filter."""
    predicates = build_predicates(filters, mappings)
    return [row for row in rows if all(predicate(row) for predicate in predicates)]


def _sort_options(dimension: FilterDimension, values: Iterable[str]) -> List[str]:
    if dimension == FilterDimension.YEAR:
        return sorted(values, reverse=True)
    return sorted(values, key=lambda value: value.lower())


def derive_options(
    rows: Sequence[CanonicalRow],
    filters: BenchmarkFilters,
    dimension: FilterDimension,
    mappings: Optional[Sequence[SpecialtyMapping]] = None,
) -> List[str]:
    """
    Distinct values for one dimension given the other selected filters.

    Args:
        rows: Full canonical row set
        filters: Current filter state
        dimension: Dimension whose options are requested
        mappings: Specialty mappings for specialty expansion

    Returns:
        Sorted distinct values; years newest first, others alphabetical
    """
    if dimension == FilterDimension.SURVEY_SOURCE:
        candidates: Iterable[CanonicalRow] = rows
    else:
        predicates = build_predicates(filters, mappings, exclude=dimension)
        candidates = (row for row in rows if all(predicate(row) for predicate in predicates))

    attribute = ROW_FIELDS[dimension]
    values = {str(getattr(row, attribute)).strip() for row in candidates}
    values.discard('')
    return _sort_options(dimension, values)


def get_unique_filter_values(
    rows: Sequence[CanonicalRow],
    filters: Optional[BenchmarkFilters] = None,
    mappings: Optional[Sequence[SpecialtyMapping]] = None,
) -> UniqueFilterValues:
    """Option lists for every filter dimension."""
    filters = filters or BenchmarkFilters()
    return UniqueFilterValues(
        specialties=derive_options(rows, filters, FilterDimension.SPECIALTY, mappings),
        providerTypes=derive_options(rows, filters, FilterDimension.PROVIDER_TYPE, mappings),
        regions=derive_options(rows, filters, FilterDimension.REGION, mappings),
        surveySources=derive_options(rows, filters, FilterDimension.SURVEY_SOURCE, mappings),
        years=derive_options(rows, filters, FilterDimension.YEAR, mappings),
    )


__all__ = [
    'ALL_SENTINELS',
    'is_unfiltered',
    'build_predicates',
    'apply_filters',
    'derive_options',
    'get_unique_filter_values',
]
