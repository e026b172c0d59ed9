"""Dashboard statistics derived from a collection of stored cases."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

import pandas as pd
from pydantic import BaseModel, Field

from .domain import AsaGrade, CaseLog
from .models import ANESTHESIA_TECHNIQUES, NOT_AVAILABLE

logger = logging.getLogger(__name__)

MONTHLY_BREAKDOWN_COLUMNS = [
    "Month",
    "Cases",
    "Emergency Cases",
    "Most Common ASA",
    "Most Common Technique",
    "Total Duration (min)",
]


class DistributionEntry(BaseModel):
    """One bar or slice of a dashboard chart."""

    name: str
    value: int = Field(ge=0)


class DashboardStats(BaseModel):
    """Aggregate figures shown on the dashboard."""

    total_cases: int = 0
    monthly_case_count: int = 0
    most_common_asa_grade: str = NOT_AVAILABLE
    most_common_technique: str = NOT_AVAILABLE
    asa_grade_distribution: list[DistributionEntry] = Field(default_factory=list)
    technique_distribution: list[DistributionEntry] = Field(default_factory=list)


def start_of_month(now: datetime) -> datetime:
    """Midnight on the first calendar day of ``now``'s month."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _most_common(counts: dict[str, int]) -> str:
    """Key with the highest count; the earliest key wins a tie."""
    best, best_count = NOT_AVAILABLE, 0
    for key, count in counts.items():
        if count > best_count:
            best, best_count = key, count
    return best


def calculate_dashboard_stats(
    cases: Iterable[CaseLog], now: datetime | None = None
) -> DashboardStats:
    """
    Compute dashboard statistics from stored cases.

    The technique distribution only covers the reference technique
    vocabulary; custom techniques still count towards the total and can be
    the most common technique, but get no bar of their own.

    Args:
        cases: Stored cases, in any order
        now: Wall-clock time for the monthly cutoff (default: current local time)

    Returns:
        DashboardStats, zeroed with N/A labels when there are no cases
    """
    cases = list(cases)
    now = now or datetime.now().astimezone()
    if now.tzinfo is None:
        now = now.astimezone()
    cutoff = start_of_month(now)

    asa_counts = {grade.value: 0 for grade in AsaGrade}
    technique_counts: dict[str, int] = {}
    monthly_case_count = 0

    for case in cases:
        asa_counts[case.asa_grade.value] += 1
        technique = case.anesthesia_technique
        technique_counts[technique] = technique_counts.get(technique, 0) + 1
        created_at = case.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        if created_at >= cutoff:
            monthly_case_count += 1

    most_common_asa = _most_common(asa_counts)

    return DashboardStats(
        total_cases=len(cases),
        monthly_case_count=monthly_case_count,
        most_common_asa_grade=AsaGrade(most_common_asa).label
        if most_common_asa != NOT_AVAILABLE
        else NOT_AVAILABLE,
        most_common_technique=_most_common(technique_counts),
        asa_grade_distribution=[
            DistributionEntry(name=AsaGrade(grade).label, value=count)
            for grade, count in asa_counts.items()
        ],
        technique_distribution=[
            DistributionEntry(name=technique, value=technique_counts.get(technique, 0))
            for technique in ANESTHESIA_TECHNIQUES
        ],
    )


def recent_cases(cases: Iterable[CaseLog], limit: int = 5) -> list[CaseLog]:
    """Most recently created cases, newest first."""
    return sorted(cases, key=lambda case: case.created_at, reverse=True)[:limit]


def monthly_breakdown(cases: Sequence[CaseLog]) -> pd.DataFrame:
    """
    Summarize cases per surgery month.

    Returns:
        DataFrame with MONTHLY_BREAKDOWN_COLUMNS, oldest month first
    """
    if not cases:
        return pd.DataFrame(columns=MONTHLY_BREAKDOWN_COLUMNS)

    df = pd.DataFrame(
        {
            "month": [case.date.strftime("%Y-%m") for case in cases],
            "emergency": [case.is_emergency for case in cases],
            "duration": [case.duration for case in cases],
        }
    )

    rows = []
    for month, group in df.groupby("month", sort=True):
        month_cases = [cases[i] for i in group.index]
        stats = calculate_dashboard_stats(month_cases)
        rows.append(
            {
                "Month": month,
                "Cases": len(group),
                "Emergency Cases": int(group["emergency"].sum()),
                "Most Common ASA": stats.most_common_asa_grade,
                "Most Common Technique": stats.most_common_technique,
                "Total Duration (min)": int(group["duration"].sum()),
            }
        )

    logger.debug("Built monthly breakdown over %d month(s)", len(rows))
    return pd.DataFrame(rows, columns=MONTHLY_BREAKDOWN_COLUMNS)


def cases_in_month(cases: Iterable[CaseLog], year: int, month: int) -> list[CaseLog]:
    """Cases whose surgery date falls in the given month."""
    return [c for c in cases if c.date.year == year and c.date.month == month]
