# Package initialization
# Import all models to ensure relationships are properly established
from .user import User
from .report import Report
from .report_upload import ReportUpload
from .background_task import BackgroundTask
from .patient_status import PatientStatus
from .health_data import HealthData
from .care_task import CareTask
from .contact import Contact

__all__ = [
    "User",
    "Report",
    "ReportUpload",
    "BackgroundTask",
    "PatientStatus",
    "HealthData",
    "CareTask",
    "Contact",
]
