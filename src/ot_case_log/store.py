"""JSON document store for case logs, keyed by user and case id."""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .domain import CaseEntry, CaseLog
from .exceptions import PersistenceError, RecordNotFoundError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.@-]+$")

PREFERENCES_FILE = "preferences.json"


def _check_key(kind: str, value: str) -> str:
    if not value or value in {".", ".."} or not _SAFE_KEY.match(value):
        raise PersistenceError(f"Invalid {kind}: {value!r}")
    return value


class JsonCaseStore:
    """
    Document store laid out as ``<root>/users/<user_id>/cases/<case_id>.json``.

    Writes go through a temporary file and an atomic rename so a crash never
    leaves a half-written document behind. Concurrent writers are not
    coordinated; the last write wins.
    """

    def __init__(self, root: str | Path):
        """Initialize with the store root directory."""
        self.root = Path(root)

    def _user_dir(self, user_id: str) -> Path:
        return self.root / "users" / _check_key("user id", user_id)

    def _case_path(self, user_id: str, case_id: str) -> Path:
        case_file = f"{_check_key('case id', case_id)}.json"
        return self._user_dir(user_id) / "cases" / case_file

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("Error writing document %s: %s", path, e)
            raise PersistenceError(f"Could not write {path}: {e}") from e

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Error reading document %s: %s", path, e)
            raise PersistenceError(f"Could not read {path}: {e}") from e
        if not isinstance(data, dict):
            logger.error("Document %s is not a JSON object", path)
            raise PersistenceError(f"Not a JSON object: {path}")
        return data

    def _load_case(self, path: Path) -> CaseLog:
        try:
            return CaseLog.model_validate(self._read_json(path))
        except ValidationError as e:
            logger.error("Stored case %s does not match the schema: %s", path, e)
            raise PersistenceError(f"Corrupt case document {path.name}") from e

    def create(self, user_id: str, entry: CaseEntry) -> CaseLog:
        """
        Store a new case, assigning its id and creation timestamp.

        Returns:
            The stored CaseLog
        """
        case = CaseLog.from_entry(
            entry, case_id=uuid.uuid4().hex, created_at=datetime.now(UTC)
        )
        self._write_json(self._case_path(user_id, case.id), case.to_document())
        logger.info("Created case %s for user %s", case.id, user_id)
        return case

    def get(self, user_id: str, case_id: str) -> CaseLog:
        """
        Load a single case.

        Raises:
            RecordNotFoundError: If the user has no case with this id
        """
        path = self._case_path(user_id, case_id)
        if not path.exists():
            raise RecordNotFoundError(f"Case not found: {case_id}")
        return self._load_case(path)

    def list_cases(self, user_id: str) -> list[CaseLog]:
        """All of a user's cases, newest first by creation time."""
        cases_dir = self._user_dir(user_id) / "cases"
        if not cases_dir.is_dir():
            return []

        cases = [self._load_case(path) for path in cases_dir.glob("*.json")]
        cases.sort(key=lambda case: case.created_at, reverse=True)
        logger.debug("Loaded %d cases for user %s", len(cases), user_id)
        return cases

    def update(self, user_id: str, case_id: str, entry: CaseEntry) -> CaseLog:
        """
        Replace every field of an existing case except its identity.

        Fields absent from ``entry`` are dropped from the document rather
        than written as null.

        Raises:
            RecordNotFoundError: If the user has no case with this id
        """
        existing = self.get(user_id, case_id)
        case = CaseLog.from_entry(
            entry, case_id=existing.id, created_at=existing.created_at
        )
        self._write_json(self._case_path(user_id, case_id), case.to_document())
        logger.info("Updated case %s for user %s", case_id, user_id)
        return case

    def get_preferences(self, user_id: str) -> dict[str, Any]:
        """User preferences such as the last used anesthesia technique."""
        path = self._user_dir(user_id) / PREFERENCES_FILE
        if not path.exists():
            return {}
        return self._read_json(path)

    def save_preferences(self, user_id: str, preferences: dict[str, Any]) -> None:
        path = self._user_dir(user_id) / PREFERENCES_FILE
        merged = {**self.get_preferences(user_id), **preferences}
        self._write_json(path, merged)
