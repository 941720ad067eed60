"""
Survey Row Normalizer

Converts raw uploaded survey rows (arbitrary column names, string or numeric
cells) into CanonicalRow objects with a fixed schema. This is the only place
untyped row dicts are handled; every downstream component works on
CanonicalRow.

Column resolution order for each canonical field:
    1. The survey's column mappings (canonical field -> uploaded column names)
    2. A fixed list of conventional spellings (providerType, provider_type,
       'Provider Type', ...)
    3. Default: '' for text, 0 for numbers

Two row shapes are supported:
    - Wide rows with tcc_p25..tcc_p90, wrvu_*, cf_*, call_pay_* columns and
      *_n_orgs / *_n_incumbents counts
    - Variable-keyed rows carrying a `variable` label plus generic
      p25/p50/p75/p90/n_orgs/n_incumbents columns; the label decides which
      metric group receives the values

Numeric cells go through coerce_number() (pandas.to_numeric(errors='coerce')) after
stripping currency symbols and thousands separators; anything non-numeric,
NaN or infinite becomes 0.

Dependencies:
    - pandas: NaN checks on text cells
    - numpy: finiteness checks
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from survey_benchmark.models import (
    CanonicalRow,
    ColumnMapping,
    MetricPercentiles,
    MetricType,
    RawSurveyRow,
    RowMetrics,
    Survey,
)
from survey_benchmark.models.coercion import coerce_number
from survey_benchmark.services.specialty_matcher import SpecialtyIndex


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Column Conventions
# =============================================================================

# Conventional column spellings tried after the survey's own column mappings
FIELD_VARIANTS: Dict[str, Tuple[str, ...]] = {
    'providerType': (
        'providerType', 'provider_type', 'ProviderType', 'Provider_Type',
        'Provider Type', 'Type',
    ),
    'geographicRegion': (
        'geographicRegion', 'geographic_region', 'GeographicRegion',
        'Geographic Region', 'region', 'Region',
    ),
    'specialty': (
        'specialty', 'Specialty', 'SPECIALTY', 'normalizedSpecialty',
        'specialty_name', 'specialtyName', 'SpecialtyName', 'Specialty Name',
        'specialty_type', 'Specialty Type', 'Provider Specialty',
    ),
    'year': ('year', 'Year', 'surveyYear', 'survey_year'),
    'variable': ('variable', 'Variable', 'metric', 'Metric'),
    'id': ('id', 'ID', '_id'),
}

# Column prefix per metric group in wide rows
METRIC_PREFIXES: Dict[MetricType, str] = {
    MetricType.TCC: 'tcc',
    MetricType.WRVU: 'wrvu',
    MetricType.CF: 'cf',
    MetricType.CALL_PAY: 'call_pay',
}

PERCENTILE_FIELDS: Tuple[str, ...] = ('p25', 'p50', 'p75', 'p90')
COUNT_FIELDS: Tuple[str, ...] = ('n_orgs', 'n_incumbents')

# Substring rules for variable-keyed rows, first match wins. Call pay comes
# first so "on-call total" stays out of TCC; CF and wRVU come before TCC so
# "TCC per Work RVU" is a conversion factor and "Total Work RVUs" is wRVU.
VARIABLE_RULES: Tuple[Tuple[MetricType, Tuple[str, ...]], ...] = (
    (MetricType.CALL_PAY, ('on-call', 'on call', 'call')),
    (MetricType.CF, ('per work rvu', 'per wrvu', 'per rvu', 'conversion', 'cf')),
    (MetricType.WRVU, ('wrvu', 'rvu', 'work')),
    (MetricType.TCC, ('tcc', 'total', 'cash')),
)


# =============================================================================
# VALUE COERCION
# =============================================================================

def coerce_text(value: Any) -> str:
    """String cell with missing/NaN mapped to ''."""
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    return str(value).strip()


def coerce_year(value: Any) -> str:
    """Survey years are compared as strings; 2024.0 becomes '2024'."""
    if isinstance(value, float) and np.isfinite(value) and value.is_integer():
        return str(int(value))
    return coerce_text(value)


# =============================================================================
# COLUMN RESOLUTION
# =============================================================================

def build_column_map(
    column_mappings: Iterable[ColumnMapping],
    survey: Optional[Survey] = None,
) -> Dict[str, List[str]]:
    """
    Collapse column mappings into canonical field -> candidate columns.

    Mappings scoped to the survey (by id or source) take precedence over
    global ones; mappings scoped to another survey are ignored.
    """
    scoped: Dict[str, List[str]] = {}
    global_map: Dict[str, List[str]] = {}

    for mapping in column_mappings:
        if mapping.surveyId or mapping.surveySource:
            if survey is None:
                continue
            if mapping.surveyId and mapping.surveyId != survey.id:
                continue
            if mapping.surveySource and mapping.surveySource.lower() != survey.surveySource.lower():
                continue
            target = scoped
        else:
            target = global_map
        target.setdefault(mapping.standardName, []).extend(mapping.mappedColumns)

    for field, columns in global_map.items():
        scoped.setdefault(field, []).extend(columns)
    return scoped


def _lookup(row: RawSurveyRow, candidates: Iterable[str]) -> Any:
    for column in candidates:
        if column in row:
            value = row[column]
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            if isinstance(value, float) and pd.isna(value):
                continue
            return value
    return None


def resolve_field(
    row: RawSurveyRow,
    field: str,
    column_map: Dict[str, List[str]],
) -> Any:
    """Value of a canonical field: mapped columns first, then conventional spellings."""
    candidates: List[str] = list(column_map.get(field, []))
    candidates.extend(FIELD_VARIANTS.get(field, (field,)))
    return _lookup(row, candidates)


# =============================================================================
# VARIABLE CLASSIFICATION
# =============================================================================

def classify_variable(variable: Optional[str]) -> Optional[MetricType]:
    """
    Metric group named by a variable label, or None when unclassifiable.

    Examples:
        'TCC' -> tcc, 'Total Cash Compensation' -> tcc,
        'Daily On-Call Rate' -> callPay, 'TCC per Work RVU' -> cf,
        'tcc_per_work_rvu' -> cf, 'Total Work RVUs' -> wrvu,
        'Conversion Factor' -> cf, 'Work RVUs' -> wrvu
    """
    label = coerce_text(variable).lower().replace('_', ' ')
    if not label:
        return None
    for metric, keywords in VARIABLE_RULES:
        if any(keyword in label for keyword in keywords):
            return metric
    return None


# =============================================================================
# ROW NORMALIZATION
# =============================================================================

def _wide_metric(row: RawSurveyRow, prefix: str, column_map: Dict[str, List[str]]) -> MetricPercentiles:
    values = {
        name: coerce_number(resolve_field(row, f"{prefix}_{name}", column_map))
        for name in PERCENTILE_FIELDS + COUNT_FIELDS
    }
    return MetricPercentiles(**values)


def _variable_metric(row: RawSurveyRow, column_map: Dict[str, List[str]]) -> MetricPercentiles:
    values = {
        name: coerce_number(resolve_field(row, name, column_map))
        for name in PERCENTILE_FIELDS + COUNT_FIELDS
    }
    return MetricPercentiles(**values)


def normalize_row(
    row: RawSurveyRow,
    survey: Survey,
    column_map: Optional[Dict[str, List[str]]] = None,
    specialty_index: Optional[SpecialtyIndex] = None,
    include_call_pay: bool = True,
    row_index: int = 0,
) -> CanonicalRow:
    """
    Normalize one raw survey row.

    Args:
        row: Raw uploaded row
        survey: Survey metadata; supplies surveySource and fallback year
            and provider type
        column_map: Canonical field -> uploaded column names
        specialty_index: Mapping index used to standardize the specialty;
            unresolved labels pass through unchanged
        include_call_pay: When False the callPay group is omitted (None)
        row_index: Position in the survey, used when the row carries no id

    Returns:
        CanonicalRow with every metric group populated (zeros where absent)
    """
    column_map = column_map or {}

    original_specialty = coerce_text(resolve_field(row, 'specialty', column_map))
    specialty = original_specialty
    if specialty_index is not None and original_specialty:
        specialty = specialty_index.lookup(original_specialty, survey.surveySource) or original_specialty

    provider_type = coerce_text(resolve_field(row, 'providerType', column_map)) or survey.providerType
    year = coerce_year(resolve_field(row, 'year', column_map)) or coerce_year(survey.year)
    row_id = coerce_text(resolve_field(row, 'id', column_map)) or f"{survey.id}-{row_index}"

    variable_value = resolve_field(row, 'variable', column_map)
    variable = coerce_text(variable_value) or None

    if variable is not None:
        metrics = RowMetrics()
        metric = classify_variable(variable)
        if metric is not None:
            setattr(metrics, metric.value, _variable_metric(row, column_map))
    else:
        metrics = RowMetrics(**{
            metric.value: _wide_metric(row, prefix, column_map)
            for metric, prefix in METRIC_PREFIXES.items()
        })

    if not include_call_pay:
        metrics.callPay = None

    return CanonicalRow(
        id=row_id,
        specialty=specialty,
        originalSpecialty=original_specialty,
        providerType=provider_type,
        geographicRegion=coerce_text(resolve_field(row, 'geographicRegion', column_map)),
        surveySource=survey.surveySource,
        year=year,
        variable=variable,
        metrics=metrics,
    )


def normalize_rows(
    rows: Sequence[RawSurveyRow],
    survey: Survey,
    column_mappings: Iterable[ColumnMapping] = (),
    specialty_index: Optional[SpecialtyIndex] = None,
    include_call_pay: bool = True,
    start_index: int = 0,
) -> List[CanonicalRow]:
    """Normalize a page of rows from one survey."""
    column_map = build_column_map(column_mappings, survey)
    normalized = [
        normalize_row(
            row,
            survey,
            column_map=column_map,
            specialty_index=specialty_index,
            include_call_pay=include_call_pay,
            row_index=start_index + offset,
        )
        for offset, row in enumerate(rows)
    ]
    logger.debug(f"Normalized {len(normalized)} rows for survey {survey.id}")
    return normalized


def distinct_specialties(
    rows: Iterable[RawSurveyRow],
    column_map: Optional[Dict[str, List[str]]] = None,
) -> Dict[str, int]:
    """Raw specialty label -> row count, in first-seen order."""
    counts: Dict[str, int] = {}
    for row in rows:
        label = coerce_text(resolve_field(row, 'specialty', column_map or {}))
        if label:
            counts[label] = counts.get(label, 0) + 1
    return counts


__all__ = [
    'FIELD_VARIANTS',
    'coerce_number',
    'coerce_text',
    'coerce_year',
    'build_column_map',
    'resolve_field',
    'classify_variable',
    'normalize_row',
    'normalize_rows',
    'distinct_specialties',
]
