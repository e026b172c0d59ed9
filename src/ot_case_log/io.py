"""File input and Excel output for case data."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)


def read_candidates(file_path: str | Path) -> list[dict[str, Any]]:
    """
    Read raw case values from a JSON file.

    The file holds either one case object or a list of them.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not JSON objects
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")

    if file_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported file format: {file_path.suffix}. Expected .json")

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e

    candidates = data if isinstance(data, list) else [data]
    if not all(isinstance(item, dict) for item in candidates):
        raise ValueError(f"{file_path} must contain a case object or a list of them")

    logger.info("Read %d case(s) from %s", len(candidates), file_path)
    return candidates


class ExcelHandler:
    """Handles Excel workbook output."""

    def __init__(self, max_width: int = 60):
        """Initialize with maximum column width setting."""
        self.max_width = max_width

    def write_excel(
        self,
        df: pd.DataFrame,
        file_path: str | Path,
        sheet_name: str = "CaseLog",
        fixed_widths: dict[str, int] | None = None,
    ) -> None:
        """Write DataFrame to Excel file with auto-sized columns."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            logger.info("Writing Excel file: %s", file_path)
            with pd.ExcelWriter(file_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name=sheet_name, index=False)
                self._autosize_columns(writer, df, sheet_name, fixed_widths)
            logger.info("Successfully wrote %d rows to %s", len(df), file_path)
        except PermissionError:
            logger.error(
                "Permission denied writing to %s. Is the file open?", file_path
            )
            raise
        except Exception as e:
            logger.error("Error writing Excel file %s: %s", file_path, e)
            raise

    def _autosize_columns(
        self,
        writer: pd.ExcelWriter,
        df: pd.DataFrame,
        sheet_name: str,
        fixed_widths: dict[str, int] | None = None,
    ) -> None:
        """Set column widths based on content length."""
        worksheet = writer.sheets[sheet_name]
        fixed_widths = fixed_widths or {}

        for idx, column in enumerate(df.columns, start=1):
            letter = get_column_letter(idx)
            if column in fixed_widths:
                worksheet.column_dimensions[letter].width = fixed_widths[column]
                continue

            content_lengths = [len(str(column))]
            content_lengths += [len(str(cell)) for cell in df[column]]
            worksheet.column_dimensions[letter].width = min(
                max(content_lengths) + 2, self.max_width
            )
