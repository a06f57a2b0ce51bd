"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints.
"""

from .care_task_service import CareTaskService
from .contact_service import ContactService
from .patient_monitoring_service import PatientMonitoringService
from .report_analysis_service import ReportAnalysisService
from .report_service import ReportService
from .report_upload_service import ReportUploadService
from .user_service import UserService

__all__ = [
    "CareTaskService",
    "ContactService",
    "PatientMonitoringService",
    "ReportAnalysisService",
    "ReportService",
    "ReportUploadService",
    "UserService",
]
