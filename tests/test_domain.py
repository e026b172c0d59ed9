"""Tests for domain models and case validation."""

from datetime import UTC, date, datetime

import pytest
from conftest import make_case, valid_values

from ot_case_log.domain import (
    AsaGrade,
    BlockDetails,
    BlockSide,
    CaseEntry,
    CaseLog,
    HemodynamicStatus,
    PatientPosition,
    PostOpAnalgesia,
    Sex,
    is_regional,
    validate,
)
from ot_case_log.exceptions import CaseValidationError


def test_asa_grade_label():
    """ASA grades render with their prefix on the dashboard."""
    assert AsaGrade.III.label == "ASA III"
    assert [g.value for g in AsaGrade] == ["I", "II", "III", "IV", "V"]


@pytest.mark.parametrize(
    "technique,expected",
    [
        ("Spinal", True),
        ("Epidural", True),
        ("CSE", True),
        ("Paravertebral Block", True),
        ("Peripheral Nerve Block", True),
        (" Spinal ", True),
        ("GA", False),
        ("MAC/Sedation", False),
        ("Awake fibreoptic", False),
        (None, False),
    ],
)
def test_is_regional(technique, expected):
    assert is_regional(technique) is expected


class TestValidate:
    """Tests for validating a complete candidate case."""

    def test_valid_case(self, values):
        entry = validate(values)

        assert isinstance(entry, CaseEntry)
        assert entry.date == date(2025, 3, 14)
        assert entry.patient_id == "MRN-1001"
        assert entry.asa_grade == AsaGrade.II
        assert entry.block_details is None

    @pytest.mark.parametrize(
        "field,enum",
        [
            ("sex", Sex),
            ("asaGrade", AsaGrade),
            ("patientPosition", PatientPosition),
            ("hemodynamicStatus", HemodynamicStatus),
            ("postOpAnalgesia", PostOpAnalgesia),
        ],
    )
    def test_every_enum_value_accepted(self, field, enum):
        for member in enum:
            entry = validate(valid_values(**{field: member.value}))
            assert entry.model_dump(by_alias=True)[field] == member

    def test_asa_prefix_accepted(self):
        assert validate(valid_values(asaGrade="ASA III")).asa_grade == AsaGrade.III

    def test_unknown_enum_value_rejected(self):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(sex="Unknown"))
        assert exc_info.value.field == "sex"

    @pytest.mark.parametrize("age", [0, 45, 120])
    def test_age_in_range(self, age):
        assert validate(valid_values(age=age)).age == age

    @pytest.mark.parametrize("age", [-1, 121, 45.5, "old"])
    def test_age_out_of_range(self, age):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(age=age))
        assert exc_info.value.field == "age"

    def test_age_from_form_string(self):
        assert validate(valid_values(age="67")).age == 67

    @pytest.mark.parametrize("duration", [0, -5])
    def test_duration_must_be_positive(self, duration):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(duration=duration))
        assert exc_info.value.field == "duration"

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_patient_id_required(self, blank):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(patientId=blank))
        assert exc_info.value.field == "patientId"
        assert exc_info.value.rule == "is required"

    def test_missing_field_required(self):
        values = valid_values()
        del values["specialty"]

        with pytest.raises(CaseValidationError) as exc_info:
            validate(values)
        assert exc_info.value.fields() == ["specialty"]
        assert exc_info.value.rule == "is required"

    def test_all_failures_reported(self):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(age=200, duration=0, surgeryType=""))
        assert set(exc_info.value.fields()) == {"age", "duration", "surgeryType"}
        assert "age:" in str(exc_info.value)

    def test_control_characters_rejected(self):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(valid_values(surgeryType="Chole\x07cystectomy"))
        assert exc_info.value.field == "surgeryType"

    def test_notes_allow_line_breaks(self):
        entry = validate(valid_values(notes="Difficult IV access.\nUsed ultrasound."))
        assert entry.notes == "Difficult IV access.\nUsed ultrasound."

    def test_blank_optional_text_is_absent(self):
        entry = validate(valid_values(location="  ", notes=""))
        assert entry.location is None
        assert entry.notes is None

    def test_identity_fields_ignored(self):
        entry = validate(valid_values(id="abc", createdAt="2025-01-01T00:00:00Z"))
        assert not hasattr(entry, "id")
        assert "createdAt" not in entry.to_document()

    def test_snake_case_keys_accepted(self):
        values = {
            "date": date(2025, 3, 14),
            "patient_id": "MRN-2",
            "age": 30,
            "sex": "Female",
            "asa_grade": "I",
            "specialty": "Urology",
            "surgery_type": "Cystoscopy",
            "patient_position": "Lithotomy",
            "anesthesia_technique": "Spinal",
            "block_type": "Subarachnoid",
            "duration": 20,
            "hemodynamic_status": "Stable",
            "post_op_analgesia": "Adequate",
        }
        entry = validate(values)
        assert entry.patient_id == "MRN-2"
        assert entry.block_details.type == "Subarachnoid"


class TestTags:
    """Tests for comorbidity and complication tags."""

    def test_duplicates_removed_in_order(self):
        entry = validate(valid_values(comorbidities=["HTN", "DM", "HTN", " DM "]))
        assert entry.comorbidities == ["HTN", "DM"]

    def test_delimited_string_split(self):
        entry = validate(valid_values(complications="Hypotension; PONV,Hypotension"))
        assert entry.complications == ["Hypotension", "PONV"]

    def test_custom_tags_allowed(self):
        entry = validate(valid_values(comorbidities=["Obesity (BMI 42)"]))
        assert entry.comorbidities == ["Obesity (BMI 42)"]

    def test_none_is_empty(self):
        assert validate(valid_values(complications=None)).complications == []

    def test_none_items_skipped(self):
        entry = validate(valid_values(comorbidities=["HTN", None, "DM"]))
        assert entry.comorbidities == ["HTN", "DM"]


class TestBlockDetails:
    """Tests for deriving block details from the technique."""

    def test_regional_keeps_nested_block(self):
        entry = validate(
            valid_values(
                anesthesiaTechnique="Spinal",
                blockDetails={"type": "Subarachnoid", "side": "Left"},
            )
        )
        assert entry.is_regional
        assert entry.block_details.type == "Subarachnoid"
        assert entry.block_details.side == BlockSide.LEFT

    def test_regional_without_input_gets_defaults(self):
        entry = validate(valid_values(anesthesiaTechnique="Epidural"))
        assert entry.block_details == BlockDetails()

    def test_flattened_form_fields(self):
        entry = validate(
            valid_values(
                anesthesiaTechnique="Peripheral Nerve Block",
                blockType="Interscalene",
                blockSide="Right",
                isUltrasoundGuided=True,
                localAnesthetic="Ropivacaine 0.5% 20 ml",
                blockLevel="",
            )
        )
        block = entry.block_details
        assert block.type == "Interscalene"
        assert block.side == BlockSide.RIGHT
        assert block.is_ultrasound_guided is True
        assert block.local_anesthetic == "Ropivacaine 0.5% 20 ml"
        assert block.level == ""

    def test_non_regional_strips_block(self):
        entry = validate(
            valid_values(
                anesthesiaTechnique="GA",
                blockDetails={"type": "Subarachnoid"},
                blockLevel="L3-L4",
            )
        )
        assert entry.block_details is None
        assert "blockDetails" not in entry.to_document()

    def test_custom_technique_is_not_regional(self):
        entry = validate(
            valid_values(anesthesiaTechnique="Awake fibreoptic", blockType="Spinal")
        )
        assert entry.anesthesia_technique == "Awake fibreoptic"
        assert entry.block_details is None

    def test_invalid_block_side_reported_with_path(self):
        with pytest.raises(CaseValidationError) as exc_info:
            validate(
                valid_values(
                    anesthesiaTechnique="Spinal", blockDetails={"side": "Middle"}
                )
            )
        assert exc_info.value.field == "blockDetails.side"


class TestCaseLog:
    """Tests for stored case serialization."""

    def test_from_entry_sets_identity(self):
        created_at = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)
        case = CaseLog.from_entry(validate(valid_values()), "abc", created_at)

        assert case.id == "abc"
        assert case.created_at == created_at
        assert case.entry() == validate(valid_values())

    def test_document_is_camel_case_without_nulls(self):
        doc = make_case(notes=None).to_document()

        assert doc["patientId"] == "MRN-1001"
        assert doc["date"] == "2025-03-14"
        assert "createdAt" in doc
        assert "notes" not in doc

    def test_document_round_trip(self):
        case = make_case(
            anesthesiaTechnique="Spinal",
            blockDetails={"type": "Subarachnoid", "side": "Left"},
        )
        assert CaseLog.model_validate(case.to_document()) == case

    def test_csv_row_for_regional_case(self):
        row = make_case(
            anesthesiaTechnique="Spinal",
            comorbidities=["HTN", "DM"],
            blockDetails={"type": "Subarachnoid", "level": "L3-L4"},
        ).to_csv_row()

        assert row["comorbidities"] == "HTN; DM"
        assert row["blockType"] == "Subarachnoid"
        assert row["blockLevel"] == "L3-L4"
        assert row["blockIsUltrasoundGuided"] == "No"
        assert row["isEmergency"] == "No"

    def test_csv_row_for_general_case_has_blank_block(self):
        row = make_case().to_csv_row()
        assert row["blockType"] == ""
        assert row["blockIsUltrasoundGuided"] == ""

    def test_table_row_date_format(self):
        assert make_case().to_table_row()["date"] == "14/03/2025"

    def test_form_values_flatten_block(self):
        values = make_case(
            anesthesiaTechnique="CSE", blockDetails={"type": "Combined"}
        ).to_form_values()
        assert values["blockType"] == "Combined"
        assert values["blockSide"] == "Left"
        assert "blockDetails" not in values
