"""Tests for case table filtering."""

from datetime import date

import pytest
from conftest import make_case

from ot_case_log.filters import filter_cases, unique_surgery_types
from ot_case_log.models import CaseFilter


@pytest.fixture
def cases():
    return [
        make_case("a", date="2025-01-10", surgeryType="Laparoscopic Cholecystectomy"),
        make_case(
            "b",
            date="2025-02-01",
            surgeryType="Open Cholecystectomy",
            asaGrade="III",
            anesthesiaTechnique="Epidural",
        ),
        make_case("c", date="2025-02-20", surgeryType="Cystoscopy", asaGrade="III"),
    ]


def ids(cases):
    return [c.id for c in cases]


def test_empty_filter_matches_all(cases):
    assert CaseFilter().is_empty()
    assert ids(filter_cases(cases, CaseFilter())) == ["a", "b", "c"]


def test_surgery_substring_is_case_insensitive(cases):
    assert ids(filter_cases(cases, CaseFilter(surgery_type="CHOLE"))) == ["a", "b"]


def test_asa_grade_exact(cases):
    assert ids(filter_cases(cases, CaseFilter(asa_grade="III"))) == ["b", "c"]


def test_technique_exact(cases):
    assert ids(filter_cases(cases, CaseFilter(technique="Epidural"))) == ["b"]
    assert filter_cases(cases, CaseFilter(technique="Epi")) == []


def test_date_range_is_inclusive(cases):
    case_filter = CaseFilter(date_from=date(2025, 2, 1), date_to=date(2025, 2, 20))
    assert ids(filter_cases(cases, case_filter)) == ["b", "c"]


def test_criteria_combine(cases):
    case_filter = CaseFilter(surgery_type="chole", asa_grade="III")
    assert ids(filter_cases(cases, case_filter)) == ["b"]


def test_unique_surgery_types(cases):
    cases.append(make_case("d", surgeryType="Cystoscopy"))
    assert unique_surgery_types(cases) == [
        "Laparoscopic Cholecystectomy",
        "Open Cholecystectomy",
        "Cystoscopy",
    ]
