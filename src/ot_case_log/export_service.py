"""Service for exporting stored cases to CSV, PDF, Excel and JSON."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .domain import CaseLog
from .io import ExcelHandler
from .models import CSV_COLUMNS, PDF_COLUMNS

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "pdf", "xlsx", "json")

_PAGE_MARGIN = 30
_ROW_HEIGHT = 16
_FONT = "Helvetica"
_FONT_BOLD = "Helvetica-Bold"
_FONT_SIZE = 8
_HEADER_FILL = colors.Color(99 / 255, 189 / 255, 189 / 255)


def default_export_path(export_format: str, today: date | None = None) -> Path:
    """File name used when no output path is given."""
    today = today or date.today()
    return Path(f"ot-case-log-export-{today.isoformat()}.{export_format}")


def cases_to_dataframe(cases: Sequence[CaseLog]) -> pd.DataFrame:
    """One row per case, in CSV column order."""
    return pd.DataFrame([case.to_csv_row() for case in cases], columns=CSV_COLUMNS)


def _fit(text: str, width: float) -> str:
    """Truncate text with an ellipsis so it fits a table cell."""
    if stringWidth(text, _FONT, _FONT_SIZE) <= width:
        return text
    while text and stringWidth(f"{text}...", _FONT, _FONT_SIZE) > width:
        text = text[:-1]
    return f"{text}..."


class ExportService:
    """Service for exporting cases to various formats."""

    @staticmethod
    def export_cases_to_csv(cases: Sequence[CaseLog], output_path: str | Path) -> Path:
        """
        Export cases to CSV with a fixed column order.

        Tag lists are joined with "; " and block fields are flattened into
        ``block``-prefixed columns, blank for non-regional cases.

        Raises:
            PermissionError: If output file cannot be written
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Exporting %d cases to CSV: %s", len(cases), output_path)
        try:
            cases_to_dataframe(cases).to_csv(output_path, index=False, encoding="utf-8")
        except PermissionError:
            logger.error(
                "Permission denied writing to %s. Is the file open?", output_path
            )
            raise
        return output_path

    @staticmethod
    def export_cases_to_pdf(
        cases: Sequence[CaseLog], output_path: str | Path, today: date | None = None
    ) -> Path:
        """
        Export a printable case table (date, patient, surgery, ASA, technique,
        duration) to PDF, continuing on new pages as needed.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        today = today or date.today()

        logger.info("Exporting %d cases to PDF: %s", len(cases), output_path)

        c = canvas.Canvas(str(output_path), pagesize=A4)
        _, height = A4
        title = f"OT Case Log Export - {today.isoformat()}"
        c.setTitle(title)

        c.setFont(_FONT_BOLD, 14)
        c.drawString(_PAGE_MARGIN, height - 40, title)
        y = height - 60
        y = ExportService._draw_header(c, y)

        for case in cases:
            if y < _PAGE_MARGIN + _ROW_HEIGHT:
                c.showPage()
                y = ExportService._draw_header(c, height - _PAGE_MARGIN)
            row = case.to_table_row()
            x = _PAGE_MARGIN
            c.setFont(_FONT, _FONT_SIZE)
            c.setFillColor(colors.black)
            for column in PDF_COLUMNS:
                c.drawString(x + 3, y - 11, _fit(row[column.key], column.width - 6))
                x += column.width
            c.setStrokeColor(colors.lightgrey)
            c.line(_PAGE_MARGIN, y - _ROW_HEIGHT, x, y - _ROW_HEIGHT)
            y -= _ROW_HEIGHT

        c.showPage()
        c.save()
        return output_path

    @staticmethod
    def _draw_header(c: canvas.Canvas, y: float) -> float:
        table_width = sum(column.width for column in PDF_COLUMNS)
        c.setFillColor(_HEADER_FILL)
        c.rect(
            _PAGE_MARGIN, y - _ROW_HEIGHT, table_width, _ROW_HEIGHT, stroke=0, fill=1
        )
        c.setFillColor(colors.white)
        c.setFont(_FONT_BOLD, _FONT_SIZE)
        x = _PAGE_MARGIN
        for column in PDF_COLUMNS:
            c.drawString(x + 3, y - 11, column.header)
            x += column.width
        return y - _ROW_HEIGHT

    @staticmethod
    def export_cases_to_excel(
        cases: Sequence[CaseLog], output_path: str | Path
    ) -> Path:
        """Export cases to an Excel workbook in CSV column layout."""
        output_path = Path(output_path)
        ExcelHandler().write_excel(
            cases_to_dataframe(cases), output_path, fixed_widths={"notes": 40}
        )
        return output_path

    @staticmethod
    def export_cases_to_json(
        cases: Sequence[CaseLog], output_path: str | Path, pretty: bool = True
    ) -> Path:
        """
        Export cases as stored documents, for backup or re-import.

        Raises:
            PermissionError: If output file cannot be written
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        export_data: dict[str, Any] = {
            "version": "1.0",
            "total_cases": len(cases),
            "cases": [case.to_document() for case in cases],
        }

        logger.info("Exporting %d cases to JSON: %s", len(cases), output_path)
        try:
            with output_path.open("w", encoding="utf-8") as f:
                json.dump(
                    export_data, f, indent=2 if pretty else None, ensure_ascii=False
                )
        except PermissionError:
            logger.error(
                "Permission denied writing to %s. Is the file open?", output_path
            )
            raise
        return output_path

    @classmethod
    def export(
        cls,
        cases: Sequence[CaseLog],
        export_format: str,
        output_path: str | Path | None = None,
    ) -> Path:
        """
        Export cases in the named format.

        Raises:
            ValueError: If the format is not one of EXPORT_FORMATS
        """
        if export_format not in EXPORT_FORMATS:
            raise ValueError(
                f"Unsupported format: {export_format}. "
                f"Use one of {', '.join(EXPORT_FORMATS)}"
            )
        path = Path(output_path) if output_path else default_export_path(export_format)
        exporters = {
            "csv": cls.export_cases_to_csv,
            "pdf": cls.export_cases_to_pdf,
            "xlsx": cls.export_cases_to_excel,
            "json": cls.export_cases_to_json,
        }
        return exporters[export_format](cases, path)
