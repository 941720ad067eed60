"""
Test suite for the survey row normalizer.

The tests verify:
1. Numeric coercion of currency strings, blanks, NaN and garbage
2. Column resolution: survey-scoped mappings, global mappings, conventional spellings
3. Wide rows (tcc_p50, call_pay_p90, ...) and variable-keyed rows
4. Specialty standardization through the SpecialtyIndex
5. Optional call-pay support
"""

import math
from typing import List

import numpy as np
import pytest

from survey_benchmark.models import ColumnMapping, MetricType, SpecialtyMapping, Survey
from survey_benchmark.services.row_normalizer import (
    build_column_map,
    classify_variable,
    coerce_number,
    coerce_year,
    distinct_specialties,
    normalize_row,
    normalize_rows,
)
from survey_benchmark.services.specialty_matcher import SpecialtyIndex


# =============================================================================
# VALUE COERCION
# =============================================================================


class TestCoerceNumber:

    @pytest.mark.parametrize("raw, expected", [
        ("$1,234.50", 1234.5),
        (" 250000 ", 250000.0),
        (42, 42.0),
        (3.5, 3.5),
        ("", 0.0),
        ("n/a", 0.0),
        (None, 0.0),
        (float("nan"), 0.0),
        (math.inf, 0.0),
        (np.int64(7), 7.0),
    ])
    def test_coercion(self, raw, expected):
        assert coerce_number(raw) == expected

    def test_booleans_are_not_numbers(self):
        assert coerce_number(True) == 0.0


class TestCoerceYear:

    def test_float_year(self):
        assert coerce_year(2024.0) == "2024"

    def test_string_year(self):
        assert coerce_year(" 2023 ") == "2023"

    def test_missing(self):
        assert coerce_year(None) == ""


# =============================================================================
# COLUMN RESOLUTION
# =============================================================================


class TestBuildColumnMap:

    def test_scoped_before_global(self, sample_survey: Survey):
        column_map = build_column_map(
            [
                ColumnMapping(standardName="tcc_p50", mappedColumns=["TCC Median"]),
                ColumnMapping(surveySource="mgma", standardName="tcc_p50", mappedColumns=["Total Cash 50th"]),
                ColumnMapping(surveyId="other-survey", standardName="tcc_p50", mappedColumns=["Ignored"]),
            ],
            sample_survey,
        )

        assert column_map["tcc_p50"] == ["Total Cash 50th", "TCC Median"]

    def test_scoped_mappings_ignored_without_survey(self):
        column_map = build_column_map(
            [ColumnMapping(surveyId="survey-1", standardName="specialty", mappedColumns=["Spec"])]
        )
        assert column_map == {}


# =============================================================================
# VARIABLE CLASSIFICATION
# =============================================================================


class TestClassifyVariable:

    @pytest.mark.parametrize("label, metric", [
        ("TCC", MetricType.TCC),
        ("Total Cash Compensation", MetricType.TCC),
        ("Daily On-Call Rate", MetricType.CALL_PAY),
        ("Conversion Factor", MetricType.CF),
        ("Work RVUs", MetricType.WRVU),
        ("wRVU", MetricType.WRVU),
        ("TCC per Work RVU", MetricType.CF),
        ("tcc_per_work_rvu", MetricType.CF),
        ("TCC per wRVU", MetricType.CF),
        ("Total Work RVUs", MetricType.WRVU),
        ("On-Call Total", MetricType.CALL_PAY),
    ])
    def test_known_labels(self, label, metric):
        assert classify_variable(label) == metric

    def test_unknown_label(self):
        assert classify_variable("Panel Size") is None

    def test_blank_label(self):
        assert classify_variable("  ") is None


# =============================================================================
# ROW NORMALIZATION
# =============================================================================


class TestNormalizeWideRow:

    def test_conventional_columns(self, sample_survey: Survey):
        row = {
            "Specialty": "Cardiology - General",
            "Provider Type": "Physician",
            "Geographic Region": "National",
            "tcc_p25": "$400,000",
            "tcc_p50": 500000,
            "tcc_p75": "600000",
            "tcc_p90": 700000,
            "tcc_n_orgs": 20,
            "tcc_n_incumbents": "100",
            "call_pay_p50": "1,500",
        }

        canonical = normalize_row(row, sample_survey, row_index=4)

        assert canonical.id == "survey-mgma-2024-4"
        assert canonical.specialty == "Cardiology - General"
        assert canonical.originalSpecialty == "Cardiology - General"
        assert canonical.geographicRegion == "National"
        assert canonical.surveySource == "MGMA"
        assert canonical.year == "2024"
        assert canonical.metrics.tcc.p25 == 400000
        assert canonical.metrics.tcc.n_incumbents == 100
        assert canonical.metrics.callPay.p50 == 1500
        assert canonical.metrics.wrvu.p50 == 0
        assert canonical.variable is None

    def test_survey_fallbacks(self, sample_survey: Survey):
        canonical = normalize_row({"specialty": "Urology"}, sample_survey)

        assert canonical.providerType == "Physician"
        assert canonical.year == "2024"
        assert canonical.geographicRegion == ""

    def test_mapped_columns_win(self, sample_survey: Survey):
        row = {"Spec Name": "Urology", "specialty": "Ignored", "Median TCC": "350000"}
        column_map = {"specialty": ["Spec Name"], "tcc_p50": ["Median TCC"]}

        canonical = normalize_row(row, sample_survey, column_map=column_map)

        assert canonical.specialty == "Urology"
        assert canonical.metrics.tcc.p50 == 350000

    def test_blank_mapped_column_falls_through(self, sample_survey: Survey):
        row = {"Spec Name": "  ", "specialty": "Urology"}
        canonical = normalize_row(row, sample_survey, column_map={"specialty": ["Spec Name"]})
        assert canonical.specialty == "Urology"

    def test_specialty_standardized(self, sample_survey: Survey, sample_mappings: List[SpecialtyMapping]):
        canonical = normalize_row(
            {"specialty": "Cardiology - General"},
            sample_survey,
            specialty_index=SpecialtyIndex(sample_mappings),
        )

        assert canonical.specialty == "Cardiology"
        assert canonical.originalSpecialty == "Cardiology - General"

    def test_unresolved_specialty_passes_through(self, sample_survey: Survey, sample_mappings: List[SpecialtyMapping]):
        canonical = normalize_row(
            {"specialty": "Dermatology"},
            sample_survey,
            specialty_index=SpecialtyIndex(sample_mappings),
        )
        assert canonical.specialty == "Dermatology"

    def test_call_pay_optional(self, sample_survey: Survey):
        canonical = normalize_row({"specialty": "Urology", "call_pay_p50": 900}, sample_survey, include_call_pay=False)

        assert canonical.metrics.callPay is None
        assert canonical.metric(MetricType.CALL_PAY) is None


class TestNormalizeVariableRow:

    def test_values_land_in_classified_group(self, sample_survey: Survey):
        row = {
            "specialty": "Cardiology",
            "variable": "Daily On-Call Rate",
            "p25": "1,000",
            "p50": 1500,
            "p75": 2000,
            "p90": 2500,
            "n_incumbents": 12,
        }

        canonical = normalize_row(row, sample_survey)

        assert canonical.variable == "Daily On-Call Rate"
        assert canonical.metrics.callPay.p25 == 1000
        assert canonical.metrics.callPay.n_incumbents == 12
        assert not canonical.has_metric_data(MetricType.TCC)

    def test_tcc_per_wrvu_is_conversion_factor(self, sample_survey: Survey):
        row = {"specialty": "Cardiology", "variable": "tcc_per_work_rvu", "p25": 52.1, "p50": "$61.40"}

        canonical = normalize_row(row, sample_survey)

        assert canonical.metrics.cf.p50 == 61.40
        assert not canonical.has_metric_data(MetricType.TCC)

    def test_unclassified_variable_keeps_zeros(self, sample_survey: Survey):
        canonical = normalize_row({"specialty": "Cardiology", "variable": "Panel Size", "p50": 2000}, sample_survey)

        for metric in MetricType:
            assert not canonical.has_metric_data(metric)


class TestNormalizeRows:

    def test_ids_and_scoped_mappings(self, sample_survey: Survey):
        rows = [{"Spec": "Urology", "id": "row-a"}, {"Spec": "Neurology"}]
        mappings = [ColumnMapping(surveyId=sample_survey.id, standardName="specialty", mappedColumns=["Spec"])]

        canonical = normalize_rows(rows, sample_survey, column_mappings=mappings, start_index=10)

        assert [row.specialty for row in canonical] == ["Urology", "Neurology"]
        assert [row.id for row in canonical] == ["row-a", "survey-mgma-2024-11"]

    def test_distinct_specialties(self):
        counts = distinct_specialties([
            {"specialty": "Urology"},
            {"Specialty": "Urology"},
            {"specialty": "Neurology"},
            {"specialty": ""},
        ])
        assert counts == {"Urology": 2, "Neurology": 1}
