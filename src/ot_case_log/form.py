"""Case entry form: binds input to the schema and saves through the store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic.alias_generators import to_camel

from .advisory import AdvisoryClient
from .domain import (
    AsaGrade,
    CaseEntry,
    CaseLog,
    HemodynamicStatus,
    PatientPosition,
    PostOpAnalgesia,
    Sex,
    is_regional,
    validate,
)
from .exceptions import (
    CaseValidationError,
    PersistenceError,
    RecordNotFoundError,
    SaveFailedError,
)
from .models import ANESTHESIA_TECHNIQUES
from .store import JsonCaseStore

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "There was a problem saving the case."

LAST_USED_TECHNIQUE_KEY = "lastUsedTechnique"


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a successful submit."""

    case: CaseLog
    created: bool


def default_values(
    preferred_technique: str | None = None, today: date | None = None
) -> dict[str, Any]:
    """Initial values for a new case."""
    return {
        "date": today or date.today(),
        "isEmergency": False,
        "sex": Sex.MALE.value,
        "asaGrade": AsaGrade.I.value,
        "patientPosition": PatientPosition.SUPINE.value,
        "anesthesiaTechnique": preferred_technique or ANESTHESIA_TECHNIQUES[0],
        "hemodynamicStatus": HemodynamicStatus.STABLE.value,
        "postOpAnalgesia": PostOpAnalgesia.ADEQUATE.value,
        "comorbidities": [],
        "complications": [],
    }


class CaseForm:
    """
    State of one case being entered or edited.

    Advisory lookups run independently of submission. Each lookup is tagged
    with a generation number; a response arriving after newer input has
    started another lookup is discarded.
    """

    def __init__(
        self,
        advisor: AdvisoryClient,
        initial: CaseLog | None = None,
        preferred_technique: str | None = None,
        today: date | None = None,
    ):
        """
        Initialize the form.

        Args:
            advisor: Client for surgery suggestions and clinical alerts
            initial: Existing case when editing
            preferred_technique: The user's last used technique, for new cases
            today: Default surgery date for new cases
        """
        self.advisor = advisor
        self.case_id = initial.id if initial else None
        self.values: dict[str, Any] = (
            initial.to_form_values()
            if initial
            else default_values(preferred_technique, today)
        )
        self.suggestions: list[str] = []
        self.clinical_alert: str | None = None
        self.errors: dict[str, str] = {}
        self._suggestion_generation = 0
        self._alert_generation = 0

    @property
    def is_editing(self) -> bool:
        return self.case_id is not None

    @property
    def is_regional(self) -> bool:
        """Whether the block detail fields apply to the current technique."""
        return is_regional(self.values.get("anesthesiaTechnique"))

    def set_value(self, name: str, value: Any) -> None:
        """Set a field by its camelCase or snake_case name."""
        if "_" in name:
            name = to_camel(name)
        self.values[name] = value
        self.errors.pop(name, None)

    def update(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.set_value(name, value)

    async def refresh_suggestions(self, case_history: Sequence[str] = ()) -> bool:
        """
        Fetch surgery suggestions for the current specialty.

        Returns:
            False if the response was discarded as stale
        """
        self._suggestion_generation += 1
        generation = self._suggestion_generation
        specialty = str(self.values.get("specialty") or "")

        suggestions = await self.advisor.suggestions_or_default(specialty, case_history)
        if generation != self._suggestion_generation:
            logger.debug("Discarding stale suggestions for %r", specialty)
            return False
        self.suggestions = suggestions
        return True

    async def refresh_alert(self) -> bool:
        """
        Fetch the clinical alert for the current ASA grade and technique.

        Returns:
            False if the response was discarded as stale
        """
        self._alert_generation += 1
        generation = self._alert_generation
        asa_grade = self.values.get("asaGrade")
        technique = str(self.values.get("anesthesiaTechnique") or "")

        alert = None
        if asa_grade and technique:
            alert = await self.advisor.alert_or_none(str(asa_grade), technique)
        if generation != self._alert_generation:
            logger.debug("Discarding stale alert for %s / %s", asa_grade, technique)
            return False
        self.clinical_alert = alert
        return True

    async def refresh_advisories(self, case_history: Sequence[str] = ()) -> None:
        """Run both advisory lookups concurrently."""
        await asyncio.gather(
            self.refresh_suggestions(case_history), self.refresh_alert()
        )

    def validate(self) -> CaseEntry:
        """
        Validate the current values.

        Raises:
            CaseValidationError: With ``errors`` also kept on the form for display
        """
        try:
            entry = validate(self.values)
        except CaseValidationError as e:
            self.errors = {err.field: err.rule for err in e.errors}
            raise
        self.errors = {}
        return entry

    def submit(self, store: JsonCaseStore, user_id: str) -> SaveResult:
        """
        Validate and persist the case, creating it on first save.

        Advisory state plays no part here; a pending or failed lookup never
        blocks saving.

        Raises:
            CaseValidationError: If the values are invalid; nothing is stored
            SaveFailedError: If the store could not persist the case
        """
        entry = self.validate()

        try:
            if self.case_id is None:
                case = store.create(user_id, entry)
                created = True
            else:
                case = store.update(user_id, self.case_id, entry)
                created = False
        except (PersistenceError, RecordNotFoundError) as e:
            logger.error("Saving case failed: %s", e)
            raise SaveFailedError(SAVE_FAILED_MESSAGE) from e

        try:
            store.save_preferences(
                user_id, {LAST_USED_TECHNIQUE_KEY: entry.anesthesia_technique}
            )
        except PersistenceError as e:
            logger.warning("Could not remember last used technique: %s", e)

        self.case_id = case.id
        return SaveResult(case=case, created=created)


def preferred_technique(store: JsonCaseStore, user_id: str) -> str | None:
    """The user's last used technique, if one has been recorded."""
    try:
        value = store.get_preferences(user_id).get(LAST_USED_TECHNIQUE_KEY)
    except PersistenceError as e:
        logger.warning("Could not read preferences: %s", e)
        return None
    return value if isinstance(value, str) and value else None
