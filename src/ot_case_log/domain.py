"""Domain models for logged anesthesia cases.

A case is validated into a :class:`CaseEntry` (everything the clinician
enters) and becomes a :class:`CaseLog` once the store has assigned its
identity and creation timestamp.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .exceptions import CaseValidationError, FieldError
from .models import REGIONAL_TECHNIQUES

# Single-line text: no control characters at all
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
# Multi-line text: tabs and line breaks are allowed
_CONTROL_CHARS_MULTILINE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# Flattened form keys -> BlockDetails field aliases
_FLAT_BLOCK_KEYS = {
    "blockType": "type",
    "block_type": "type",
    "blockLevel": "level",
    "block_level": "level",
    "blockSide": "side",
    "block_side": "side",
    "isUltrasoundGuided": "isUltrasoundGuided",
    "is_ultrasound_guided": "isUltrasoundGuided",
    "blockIsUltrasoundGuided": "isUltrasoundGuided",
    "localAnesthetic": "localAnesthetic",
    "local_anesthetic": "localAnesthetic",
    "blockLocalAnesthetic": "localAnesthetic",
}

_IDENTITY_KEYS = ("id", "createdAt", "created_at")


class AsaGrade(StrEnum):
    """ASA physical status classification, in ascending severity."""

    I = "I"  # noqa: E741
    II = "II"
    III = "III"
    IV = "IV"
    V = "V"

    @property
    def label(self) -> str:
        return f"ASA {self.value}"


class Sex(StrEnum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class PatientPosition(StrEnum):
    SUPINE = "Supine"
    PRONE = "Prone"
    LITHOTOMY = "Lithotomy"
    LATERAL = "Lateral"


class BlockSide(StrEnum):
    LEFT = "Left"
    RIGHT = "Right"
    BILATERAL = "Bilateral"


class HemodynamicStatus(StrEnum):
    STABLE = "Stable"
    MILD_FLUCTUATIONS = "Mild fluctuations"
    SIGNIFICANT_INSTABILITY = "Significant instability"


class PostOpAnalgesia(StrEnum):
    ADEQUATE = "Adequate"
    INADEQUATE = "Inadequate"


def is_regional(technique: Any) -> bool:
    """Check whether an anesthesia technique is delivered via a block."""
    if not isinstance(technique, str):
        return False
    return technique.strip() in REGIONAL_TECHNIQUES


def _check_text(value: str, multiline: bool = False) -> str:
    pattern = _CONTROL_CHARS_MULTILINE if multiline else _CONTROL_CHARS
    if pattern.search(value):
        raise PydanticCustomError(
            "control_characters", "must not contain control characters"
        )
    return value


class _CaseModel(BaseModel):
    """Shared configuration: camelCase documents, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class BlockDetails(_CaseModel):
    """Regional block sub-record, present only for regional techniques."""

    type: str = Field(default="", description="Block type, e.g. Subarachnoid")
    level: str = Field(default="", description="Vertebral level, e.g. L3-L4")
    side: BlockSide = Field(default=BlockSide.LEFT)
    is_ultrasound_guided: bool = Field(default=False)
    local_anesthetic: str = Field(default="", description="Drug and dose")

    @field_validator("type", "level", "local_anesthetic")
    @classmethod
    def reject_control_characters(cls, v: str) -> str:
        return _check_text(v)


class CaseEntry(_CaseModel):
    """A validated case as entered by the clinician, before it is stored."""

    date: dt.date = Field(description="Date of surgery")
    location: str | None = Field(default=None)
    is_emergency: bool = Field(default=False)
    patient_id: str = Field(description="Patient ID / MRN, not unique")
    age: int = Field(ge=0, le=120, description="Age in years")
    sex: Sex
    asa_grade: AsaGrade
    comorbidities: list[str] = Field(default_factory=list)
    specialty: str
    surgery_type: str
    patient_position: PatientPosition
    anesthesia_technique: str
    has_adjuvants: bool = Field(default=False)
    adjuvant_details: str | None = Field(default=None)
    block_details: BlockDetails | None = Field(default=None)
    duration: int = Field(ge=1, description="Duration in minutes")
    hemodynamic_status: HemodynamicStatus
    has_airway_difficulty: bool = Field(default=False)
    complications: list[str] = Field(default_factory=list)
    post_op_analgesia: PostOpAnalgesia
    rescue_analgesia_required: bool = Field(default=False)
    notes: str | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def derive_block_details(cls, data: Any) -> Any:
        """Attach block details if and only if the technique is regional.

        Block input may arrive nested under ``blockDetails`` or flattened as
        form fields. For non-regional techniques it is discarded.
        """
        if not isinstance(data, Mapping):
            return data

        data = dict(data)
        flat = {
            target: data.pop(key)
            for key, target in _FLAT_BLOCK_KEYS.items()
            if key in data
        }
        nested = data.pop("blockDetails", None)
        snake_nested = data.pop("block_details", None)
        nested = nested if nested is not None else snake_nested

        technique = data.get("anesthesiaTechnique", data.get("anesthesia_technique"))
        if not is_regional(technique):
            return data

        if isinstance(nested, BlockDetails):
            block: dict[str, Any] = nested.model_dump(by_alias=True)
        elif isinstance(nested, Mapping):
            block = dict(nested)
        else:
            block = {}
        block.update(flat)

        # Unset values fall back to the BlockDetails defaults
        data["blockDetails"] = {
            k: v for k, v in block.items() if v is not None and v != ""
        }
        return data

    @field_validator("asa_grade", mode="before")
    @classmethod
    def strip_asa_prefix(cls, v: Any) -> Any:
        """Accept 'ASA III' as well as 'III'."""
        if isinstance(v, str):
            return re.sub(r"^\s*ASA\s*", "", v, flags=re.IGNORECASE).upper()
        return v

    @field_validator("comorbidities", "complications", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> Any:
        """Split, trim and deduplicate tags, keeping first-seen order."""
        if v is None:
            return []
        if isinstance(v, str):
            v = re.split(r"[;,]", v)
        if not isinstance(v, (list, tuple, set, frozenset)):
            return v

        tags: list[str] = []
        for item in v:
            if item is None:
                continue
            tag = str(item).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("comorbidities", "complications")
    @classmethod
    def check_tags(cls, v: list[str]) -> list[str]:
        for tag in v:
            _check_text(tag)
        return v

    @field_validator(
        "location", "adjuvant_details", "notes", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("patient_id", "specialty", "surgery_type", "anesthesia_technique")
    @classmethod
    def require_text(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("required", "is required")
        return _check_text(v)

    @field_validator("location", "adjuvant_details")
    @classmethod
    def check_optional_text(cls, v: str | None) -> str | None:
        return _check_text(v) if v is not None else v

    @field_validator("notes")
    @classmethod
    def check_notes(cls, v: str | None) -> str | None:
        return _check_text(v, multiline=True) if v is not None else v

    @property
    def is_regional(self) -> bool:
        return self.block_details is not None

    def to_document(self) -> dict[str, Any]:
        """Serialize for the document store, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_form_values(self) -> dict[str, Any]:
        """Flatten into form field values, block fields included."""
        values = self.model_dump(by_alias=True, exclude={"block_details"})
        block = self.block_details
        values.update(
            {
                "blockType": block.type if block else None,
                "blockLevel": block.level if block else None,
                "blockSide": block.side.value if block else None,
                "isUltrasoundGuided": block.is_ultrasound_guided if block else False,
                "localAnesthetic": block.local_anesthetic if block else None,
            }
        )
        return values


class CaseLog(CaseEntry):
    """A stored case, carrying the identity assigned by the store."""

    id: str
    created_at: dt.datetime

    @classmethod
    def from_entry(
        cls, entry: CaseEntry, case_id: str, created_at: dt.datetime
    ) -> CaseLog:
        return cls.model_validate(
            {**entry.to_document(), "id": case_id, "createdAt": created_at}
        )

    def entry(self) -> CaseEntry:
        """The editable part of this case."""
        return CaseEntry.model_validate(self.to_document())

    def to_csv_row(self) -> dict[str, Any]:
        """Flatten into the CSV export columns."""
        block = self.block_details

        def yes_no(flag: bool) -> str:
            return "Yes" if flag else "No"

        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "location": self.location or "",
            "isEmergency": yes_no(self.is_emergency),
            "patientId": self.patient_id,
            "age": self.age,
            "sex": self.sex.value,
            "asaGrade": self.asa_grade.value,
            "comorbidities": "; ".join(self.comorbidities),
            "specialty": self.specialty,
            "surgeryType": self.surgery_type,
            "patientPosition": self.patient_position.value,
            "anesthesiaTechnique": self.anesthesia_technique,
            "duration": self.duration,
            "hemodynamicStatus": self.hemodynamic_status.value,
            "hasAirwayDifficulty": yes_no(self.has_airway_difficulty),
            "complications": "; ".join(self.complications),
            "postOpAnalgesia": self.post_op_analgesia.value,
            "rescueAnalgesiaRequired": yes_no(self.rescue_analgesia_required),
            "notes": self.notes or "",
            "blockType": block.type if block else "",
            "blockLevel": block.level if block else "",
            "blockSide": block.side.value if block else "",
            "blockIsUltrasoundGuided": yes_no(block.is_ultrasound_guided)
            if block
            else "",
            "blockLocalAnesthetic": block.local_anesthetic if block else "",
        }

    def to_table_row(self) -> dict[str, str]:
        """Printable subset used by the PDF export and the case table."""
        return {
            "date": self.date.strftime("%d/%m/%Y"),
            "patientId": self.patient_id,
            "surgeryType": self.surgery_type,
            "asaGrade": self.asa_grade.value,
            "anesthesiaTechnique": self.anesthesia_technique,
            "duration": str(self.duration),
        }


def _field_errors(exc: ValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "case"
        rule = "is required" if err["type"] == "missing" else err["msg"]
        errors.append(FieldError(field=field, rule=rule))
    return errors


def validate(candidate: Mapping[str, Any] | BaseModel) -> CaseEntry:
    """
    Validate a candidate case against the schema.

    Identity fields (``id``, ``createdAt``) are ignored; they belong to the
    store. Block details are derived from the anesthesia technique.

    Args:
        candidate: Raw form values (camelCase or snake_case keys) or a model

    Returns:
        The validated CaseEntry

    Raises:
        CaseValidationError: If any field fails; nothing is partially accepted
    """
    if isinstance(candidate, BaseModel):
        candidate = candidate.model_dump(by_alias=True)

    data = {k: v for k, v in candidate.items() if k not in _IDENTITY_KEYS}
    try:
        return CaseEntry.model_validate(data)
    except ValidationError as exc:
        raise CaseValidationError(_field_errors(exc)) from exc
