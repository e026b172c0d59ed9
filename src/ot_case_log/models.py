"""Reference vocabularies and configuration records for the case log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# Techniques delivered via nerve or neuraxial block; these carry block details
REGIONAL_TECHNIQUES = frozenset(
    {
        "Spinal",
        "Epidural",
        "CSE",
        "Paravertebral Block",
        "Peripheral Nerve Block",
    }
)

# Offered in the form and charted on the dashboard, in display order
ANESTHESIA_TECHNIQUES = (
    "GA",
    "Spinal",
    "Epidural",
    "CSE",
    "Paravertebral Block",
    "Peripheral Nerve Block",
    "MAC/Sedation",
)

COMORBIDITIES_OPTIONS = ("HTN", "DM", "CAD", "CKD", "COPD", "Other")

COMPLICATION_OPTIONS = (
    "Hypotension",
    "Bradycardia",
    "Desaturation",
    "High spinal",
    "PONV",
    "Block failure",
    "None",
)

SURGICAL_SPECIALTIES = (
    "Cardiothoracic Surgery",
    "Colorectal Surgery",
    "Emergency",
    "General Surgery",
    "Neurosurgery",
    "Obstetrics and Gynecology",
    "Ophthalmology",
    "Oral and Maxillofacial Surgery",
    "Orthopedic Surgery",
    "Otolaryngology (ENT)",
    "Pediatric Surgery",
    "Plastic and Reconstructive Surgery",
    "Urology",
    "Vascular Surgery",
    "Other",
)

# Static fallback used when the suggestion service is unavailable
COMMON_SURGERIES_BY_SPECIALTY: dict[str, tuple[str, ...]] = {
    "Cardiothoracic Surgery": (
        "Coronary Artery Bypass Grafting (CABG)",
        "Valve Repair/Replacement",
        "Aortic Aneurysm Repair",
        "Lobectomy",
        "Pneumonectomy",
    ),
    "Colorectal Surgery": (
        "Colectomy",
        "Hemorrhoidectomy",
        "Fistulectomy",
        "Rectopexy",
    ),
    "General Surgery": (
        "Appendectomy",
        "Cholecystectomy",
        "Hernia Repair (Inguinal, Umbilical, etc.)",
        "Mastectomy",
        "Thyroidectomy",
    ),
    "Neurosurgery": (
        "Craniotomy for Tumor Resection",
        "Spinal Fusion",
        "Laminectomy",
        "Ventriculoperitoneal (VP) Shunt",
        "Carotid Endarterectomy",
    ),
    "Obstetrics and Gynecology": (
        "Cesarean Section",
        "Hysterectomy (Abdominal, Vaginal, Laparoscopic)",
        "Oophorectomy",
        "Dilation and Curettage (D&C)",
        "Myomectomy",
    ),
    "Ophthalmology": (
        "Cataract Extraction",
        "Vitrectomy",
        "Trabeculectomy",
        "Corneal Transplant",
    ),
    "Oral and Maxillofacial Surgery": (
        "Wisdom Tooth Extraction",
        "Jaw Reconstruction",
        "Dental Implants",
    ),
    "Orthopedic Surgery": (
        "Total Hip Replacement",
        "Total Knee Replacement",
        "Arthroscopy (Knee, Shoulder)",
        "Open Reduction Internal Fixation (ORIF)",
        "Spinal Decompression",
    ),
    "Otolaryngology (ENT)": (
        "Tonsillectomy",
        "Septoplasty",
        "Tympanoplasty",
        "Functional Endoscopic Sinus Surgery (FESS)",
        "Laryngoscopy",
    ),
    "Pediatric Surgery": (
        "Hernia Repair",
        "Orchidopexy",
        "Pyloromyotomy",
        "Appendectomy",
    ),
    "Plastic and Reconstructive Surgery": (
        "Breast Reconstruction",
        "Skin Grafting",
        "Rhinoplasty",
        "Liposuction",
    ),
    "Urology": (
        "Transurethral Resection of the Prostate (TURP)",
        "Cystoscopy",
        "Nephrectomy",
        "Ureteroscopy",
        "Vasectomy",
    ),
    "Vascular Surgery": (
        "Carotid Endarterectomy",
        "Aneurysm Repair (Aortic, Peripheral)",
        "Angioplasty/Stenting",
        "Varicose Vein Stripping",
    ),
}

MAX_SUGGESTIONS = 5

NOT_AVAILABLE = "N/A"

# CSV column order; block columns are flattened from the block sub-record
CSV_COLUMNS = [
    "id",
    "date",
    "location",
    "isEmergency",
    "patientId",
    "age",
    "sex",
    "asaGrade",
    "comorbidities",
    "specialty",
    "surgeryType",
    "patientPosition",
    "anesthesiaTechnique",
    "duration",
    "hemodynamicStatus",
    "hasAirwayDifficulty",
    "complications",
    "postOpAnalgesia",
    "rescueAnalgesiaRequired",
    "notes",
    "blockType",
    "blockLevel",
    "blockSide",
    "blockIsUltrasoundGuided",
    "blockLocalAnesthetic",
]


@dataclass(frozen=True)
class ExportColumn:
    """A column of the printable case table."""

    header: str
    key: str
    width: float


# Tabular subset rendered in the PDF export
PDF_COLUMNS = (
    ExportColumn("Date", "date", 70),
    ExportColumn("Patient ID", "patientId", 80),
    ExportColumn("Surgery", "surgeryType", 170),
    ExportColumn("ASA", "asaGrade", 40),
    ExportColumn("Technique", "anesthesiaTechnique", 110),
    ExportColumn("Duration (m)", "duration", 65),
)


@dataclass(frozen=True)
class CaseFilter:
    """Filter criteria for the case table.

    Empty / ``None`` criteria match every case.
    """

    surgery_type: str = ""
    asa_grade: str | None = None
    technique: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    def is_empty(self) -> bool:
        return not (
            self.surgery_type
            or self.asa_grade
            or self.technique
            or self.date_from
            or self.date_to
        )
