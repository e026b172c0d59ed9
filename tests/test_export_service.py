"""Tests for case exports."""

import json
from datetime import date

import pandas as pd
import pytest
from conftest import make_case

from ot_case_log.export_service import (
    ExportService,
    _fit,
    cases_to_dataframe,
    default_export_path,
)
from ot_case_log.models import CSV_COLUMNS


@pytest.fixture
def cases():
    return [
        make_case(
            "spinal-1",
            anesthesiaTechnique="Spinal",
            comorbidities=["HTN", "DM"],
            blockDetails={"type": "Subarachnoid", "level": "L3-L4", "side": "Left"},
            notes="Uneventful",
        ),
        make_case("ga-1", date="2025-03-15", isEmergency=True),
    ]


def test_default_export_path():
    assert str(default_export_path("csv", date(2025, 3, 14))) == (
        "ot-case-log-export-2025-03-14.csv"
    )


def test_dataframe_column_order(cases):
    df = cases_to_dataframe(cases)
    assert list(df.columns) == CSV_COLUMNS
    assert len(df) == 2


class TestCsvExport:
    """Tests for CSV export."""

    def test_columns_and_values(self, cases, tmp_path):
        path = ExportService.export_cases_to_csv(cases, tmp_path / "cases.csv")
        df = pd.read_csv(path, dtype=str, keep_default_na=False)

        assert list(df.columns) == CSV_COLUMNS
        spinal, ga = df.iloc[0], df.iloc[1]
        assert spinal["comorbidities"] == "HTN; DM"
        assert spinal["blockType"] == "Subarachnoid"
        assert spinal["blockLevel"] == "L3-L4"
        assert spinal["notes"] == "Uneventful"
        assert ga["blockType"] == ""
        assert ga["isEmergency"] == "Yes"
        assert ga["date"] == "2025-03-15"

    def test_empty_export_has_header(self, tmp_path):
        path = ExportService.export_cases_to_csv([], tmp_path / "empty.csv")
        header = path.read_text(encoding="utf-8").strip()
        assert header == ",".join(CSV_COLUMNS)


class TestPdfExport:
    """Tests for PDF export."""

    def test_writes_pdf(self, cases, tmp_path):
        path = ExportService.export_cases_to_pdf(
            cases, tmp_path / "cases.pdf", today=date(2025, 3, 14)
        )
        assert path.read_bytes().startswith(b"%PDF")

    def test_many_cases_span_pages(self, tmp_path):
        many = [make_case(f"c{i}") for i in range(120)]
        path = ExportService.export_cases_to_pdf(many, tmp_path / "many.pdf")
        assert path.stat().st_size > 0

    def test_long_text_truncated(self):
        fitted = _fit("Coronary Artery Bypass Grafting (CABG) with valve repair", 100)
        assert fitted.endswith("...")
        assert _fit("Cystoscopy", 100) == "Cystoscopy"


def test_excel_export(cases, tmp_path):
    path = ExportService.export_cases_to_excel(cases, tmp_path / "cases.xlsx")
    df = pd.read_excel(path, dtype=str, keep_default_na=False)

    assert list(df.columns) == CSV_COLUMNS
    assert df.iloc[0]["blockType"] == "Subarachnoid"


def test_json_export(cases, tmp_path):
    path = ExportService.export_cases_to_json(cases, tmp_path / "cases.json")
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["total_cases"] == 2
    assert data["cases"][0]["blockDetails"]["type"] == "Subarachnoid"
    assert "blockDetails" not in data["cases"][1]


def test_export_dispatch(cases, tmp_path):
    path = ExportService.export(cases, "csv", tmp_path / "out" / "cases.csv")
    assert path.exists()


def test_export_unknown_format(cases, tmp_path):
    with pytest.raises(ValueError, match="Unsupported format"):
        ExportService.export(cases, "docx", tmp_path / "cases.docx")
