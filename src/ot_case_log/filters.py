"""Filtering for the case table."""

from __future__ import annotations

from collections.abc import Iterable

from .domain import CaseLog
from .models import CaseFilter


def matches(case: CaseLog, case_filter: CaseFilter) -> bool:
    """Check a single case against every filter criterion."""
    if (
        case_filter.surgery_type
        and case_filter.surgery_type.lower() not in case.surgery_type.lower()
    ):
        return False
    if case_filter.asa_grade and case.asa_grade.value != case_filter.asa_grade:
        return False
    if case_filter.technique and case.anesthesia_technique != case_filter.technique:
        return False
    # Date bounds are inclusive and compare the surgery date only
    if case_filter.date_from and case.date < case_filter.date_from:
        return False
    return not (case_filter.date_to and case.date > case_filter.date_to)


def filter_cases(cases: Iterable[CaseLog], case_filter: CaseFilter) -> list[CaseLog]:
    """Return the cases matching the filter, keeping their order."""
    if case_filter.is_empty():
        return list(cases)
    return [case for case in cases if matches(case, case_filter)]


def unique_surgery_types(cases: Iterable[CaseLog]) -> list[str]:
    """Distinct surgery types in first-seen order."""
    return list(dict.fromkeys(case.surgery_type for case in cases))
