"""Shared fixtures for case log tests."""

from datetime import UTC, datetime

import pytest

from ot_case_log.domain import CaseLog, validate


def valid_values(**overrides):
    """Form values for a complete GA case, with overrides applied."""
    values = {
        "date": "2025-03-14",
        "location": "Theatre 2",
        "isEmergency": False,
        "patientId": "MRN-1001",
        "age": 45,
        "sex": "Male",
        "asaGrade": "II",
        "comorbidities": ["HTN"],
        "specialty": "General Surgery",
        "surgeryType": "Laparoscopic Cholecystectomy",
        "patientPosition": "Supine",
        "anesthesiaTechnique": "GA",
        "duration": 90,
        "hemodynamicStatus": "Stable",
        "hasAirwayDifficulty": False,
        "complications": [],
        "postOpAnalgesia": "Adequate",
        "rescueAnalgesiaRequired": False,
    }
    values.update(overrides)
    return values


def make_case(case_id="case-1", created_at=None, **overrides):
    """Build a stored CaseLog without going through the store."""
    created_at = created_at or datetime(2025, 3, 14, 9, 30, tzinfo=UTC)
    return CaseLog.from_entry(
        validate(valid_values(**overrides)), case_id=case_id, created_at=created_at
    )


@pytest.fixture
def values():
    return valid_values()
