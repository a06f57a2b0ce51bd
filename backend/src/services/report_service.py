"""
Report service for single-request report uploads.

Handles creation (file intake plus AI scheduling), listing, clinical
review, deletion and expiry of old analyses.
"""

import logging
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from auth.dependencies import UserContext
from auth.permissions import NOT_AUTHORIZED, can_access_patient
from core.constants import MAX_REPORT_SIZE_BYTES, REPORT_FILE_FIELD
from models.ai_analysis import AnalysisStatus
from models.report import Report, ReportType, ReviewStatus
from services.report_analysis_service import ReportAnalysisService
from services.report_analyzer import PatientContext
from services.task_queue import TaskQueue
from utils.datetime_utils import utc_now
from utils.file_storage import FileValidationError, delete_file, save_upload_file, validate_report_file
from utils.query_helpers import PageInfo, filter_by_patients, paginate

logger = logging.getLogger(__name__)


class ReportService:
    """Service class for report operations."""

    @staticmethod
    async def create_report(
        db: Session,
        queue: TaskQueue,
        user: UserContext,
        patient_id: int,
        caregiver_id: Optional[int],
        upload_file: UploadFile,
        title: str,
        description: Optional[str] = None,
        report_type: str = ReportType.OTHER.value,
        tags: Optional[List[str]] = None,
        is_public: bool = False,
        patient_context: Optional[PatientContext] = None,
    ) -> Report:
        """
        Validate and store the file, create the report and schedule its analysis.

        Raises:
            HTTPException: 400/413 on file validation errors.
        """
        try:
            validate_report_file(upload_file.content_type, upload_file.size, max_size_bytes=MAX_REPORT_SIZE_BYTES)
            stored = await save_upload_file(upload_file, REPORT_FILE_FIELD, MAX_REPORT_SIZE_BYTES)
        except FileValidationError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

        report = Report(
            patient_id=patient_id,
            caregiver_id=caregiver_id,
            uploaded_by_user_id=user.user_id,
            title=title.strip(),
            description=description,
            report_type=report_type,
            tags=tags or [],
            is_public=is_public,
            original_filename=upload_file.filename or stored.stored_filename,
            stored_filename=stored.stored_filename,
            file_path=stored.path,
            size_bytes=stored.size_bytes,
            content_type=upload_file.content_type or "application/octet-stream",
            status=ReviewStatus.PENDING.value,
            ai_analysis_status=AnalysisStatus.PENDING.value,
        )
        try:
            db.add(report)
            db.flush()
            ReportAnalysisService.schedule_analysis(db, queue, report, patient_context)
        except Exception:
            db.rollback()
            await delete_file(stored.path)
            raise

        db.refresh(report)
        logger.info(f"Created report {report.id} for patient {patient_id}")
        return report

    @staticmethod
    def get_report(db: Session, report_id: int) -> Report:
        report = db.query(Report).filter(Report.id == report_id).first()
        if not report:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
        return report

    @staticmethod
    def get_report_for_user(db: Session, user: UserContext, report_id: int) -> Report:
        """Load a report the caller may access (owner, assigned caregiver or admin)."""
        report = ReportService.get_report(db, report_id)
        if not can_access_patient(db, user, report.patient_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_AUTHORIZED)
        return report

    @staticmethod
    def list_reports(
        db: Session,
        patient_ids: Optional[Sequence[int]],
        report_type: Optional[str] = None,
        review_status: Optional[str] = None,
        uploaded_by_user_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Report], PageInfo]:
        query = filter_by_patients(db.query(Report), Report.patient_id, patient_ids)
        if uploaded_by_user_id is not None:
            query = query.filter(Report.uploaded_by_user_id == uploaded_by_user_id)
        if report_type:
            query = query.filter(Report.report_type == report_type)
        if review_status:
            query = query.filter(Report.status == review_status)
        return paginate(query.order_by(Report.created_at.desc(), Report.id.desc()), page, limit)

    @staticmethod
    def review_report(
        db: Session,
        report: Report,
        reviewer_id: int,
        review_status: str,
        review_notes: Optional[str] = None,
    ) -> Report:
        """Record a caregiver's clinical review of a report."""
        report.status = review_status
        report.review_notes = review_notes
        report.reviewed_by_user_id = reviewer_id
        report.review_date = utc_now()
        db.commit()
        db.refresh(report)
        logger.info(f"Report {report.id} reviewed as {review_status} by user {reviewer_id}")
        return report

    @staticmethod
    def delete_report(db: Session, report: Report) -> str:
        """
        Delete the report record.

        Returns:
            Path of the stored file, for the caller to remove.
        """
        report_id = report.id
        file_path = report.file_path
        db.delete(report)
        db.commit()
        logger.info(f"Deleted report {report_id}")
        return file_path

    @staticmethod
    def expire_old_analyses(db: Session, retention_days: int) -> int:
        """
        Reset finished analyses older than ``retention_days`` to pending.

        Returns:
            Number of reports reset.
        """
        cutoff = utc_now() - timedelta(days=retention_days)
        result = db.execute(
            update(Report)
            .where(
                Report.ai_analysis_date < cutoff,
                Report.ai_analysis_status.in_([
                    AnalysisStatus.COMPLETED.value,
                    AnalysisStatus.FAILED.value,
                ]),
            )
            .values(
                ai_analysis_status=AnalysisStatus.PENDING.value,
                ai_describe=None,
                ai_task_id=None,
                version=Report.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return int(result.rowcount or 0)
