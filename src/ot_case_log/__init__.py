"""OT Case Log - A tool for logging operating-theatre anesthesia cases."""

from .advisory import AdvisoryClient
from .cli import main
from .config import Settings
from .domain import (
    AsaGrade,
    BlockDetails,
    BlockSide,
    CaseEntry,
    CaseLog,
    HemodynamicStatus,
    PatientPosition,
    PostOpAnalgesia,
    Sex,
    validate,
)
from .exceptions import (
    AdvisoryError,
    CaseLogError,
    CaseValidationError,
    PersistenceError,
    RecordNotFoundError,
    SaveFailedError,
)
from .export_service import ExportService
from .filters import filter_cases
from .form import CaseForm
from .io import ExcelHandler
from .models import CaseFilter
from .stats import DashboardStats, calculate_dashboard_stats
from .store import JsonCaseStore

__version__ = "0.1.0"
__all__ = [
    "AdvisoryClient",
    "AdvisoryError",
    "AsaGrade",
    "BlockDetails",
    "BlockSide",
    "CaseEntry",
    "CaseFilter",
    "CaseForm",
    "CaseLog",
    "CaseLogError",
    "CaseValidationError",
    "DashboardStats",
    "ExcelHandler",
    "ExportService",
    "HemodynamicStatus",
    "JsonCaseStore",
    "PatientPosition",
    "PersistenceError",
    "PostOpAnalgesia",
    "RecordNotFoundError",
    "SaveFailedError",
    "Settings",
    "Sex",
    "calculate_dashboard_stats",
    "filter_cases",
    "main",
    "validate",
]
