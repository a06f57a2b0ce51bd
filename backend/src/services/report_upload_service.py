"""
Report upload service.

Drives the progress-tracked upload flow:

1. ``initialize_upload`` creates the record (uploading, progress 0).
2. ``attach_upload_file`` validates and stores the file (progress 50) and
   enqueues finalisation after a short processing delay.
3. ``finalize_upload`` (background task) completes the record (progress
   100) and schedules AI analysis.

Validation failures mark the record failed; ``retry_upload`` restarts a
failed record until it runs out of retries.
"""

import logging
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from auth.dependencies import UserContext
from auth.permissions import NOT_AUTHORIZED, can_access_patient
from core import config
from core.constants import MAX_REPORT_SIZE_BYTES, REPORT_FILE_FIELD
from models.ai_analysis import AnalysisStatus
from models.report import ReportType
from models.report_upload import (
    InvalidTransitionError,
    MaxRetriesExceededError,
    ReportUpload,
    UploadCategory,
    UploadStatus,
)
from services.report_analysis_service import ReportAnalysisService
from services.task_queue import TaskQueue
from utils.file_storage import FileValidationError, delete_file, save_upload_file, validate_report_file
from utils.query_helpers import PageInfo, filter_by_patients, paginate

logger = logging.getLogger(__name__)

FINALIZE_UPLOAD_TASK = "upload_finalize"


class ReportUploadService:
    """Service class for progress-tracked report uploads."""

    @staticmethod
    def initialize_upload(
        db: Session,
        user: UserContext,
        patient_id: int,
        caregiver_id: Optional[int],
        title: str,
        description: Optional[str] = None,
        report_type: str = ReportType.OTHER.value,
        category: str = UploadCategory.MEDICAL.value,
        tags: Optional[List[str]] = None,
    ) -> ReportUpload:
        upload = ReportUpload(
            patient_id=patient_id,
            caregiver_id=caregiver_id,
            uploaded_by_user_id=user.user_id,
            title=title.strip(),
            description=description,
            report_type=report_type,
            category=category,
            tags=tags or [],
            ai_analysis_status=AnalysisStatus.PENDING.value,
        )
        upload.start()
        db.add(upload)
        db.commit()
        db.refresh(upload)
        logger.info(f"Initialized upload {upload.id} for patient {patient_id}")
        return upload

    @staticmethod
    def get_upload(db: Session, upload_id: int) -> ReportUpload:
        upload = db.query(ReportUpload).filter(ReportUpload.id == upload_id).first()
        if not upload:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
        return upload

    @staticmethod
    def get_upload_for_user(db: Session, user: UserContext, upload_id: int) -> ReportUpload:
        """Load an upload the caller may access (owner, assigned caregiver or admin)."""
        upload = ReportUploadService.get_upload(db, upload_id)
        if not can_access_patient(db, user, upload.patient_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_AUTHORIZED)
        return upload

    @staticmethod
    def _fail_validation(db: Session, upload: ReportUpload, error: FileValidationError) -> HTTPException:
        upload.mark_failed(error.message)
        db.commit()
        logger.info(f"Upload {upload.id} failed validation: {error.message}")
        return HTTPException(status_code=error.status_code, detail=error.message)

    @staticmethod
    async def attach_upload_file(
        db: Session,
        queue: TaskQueue,
        upload: ReportUpload,
        upload_file: UploadFile,
    ) -> ReportUpload:
        """
        Validate and store the file for an upload, then enqueue finalisation.

        Raises:
            HTTPException: 400 if the upload is not accepting a file,
                400/413 on validation errors (the upload is marked failed).
        """
        if upload.upload_status != UploadStatus.UPLOADING.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Upload is {upload.upload_status} and is not accepting a file"
            )

        try:
            validate_report_file(upload_file.content_type, upload_file.size, max_size_bytes=MAX_REPORT_SIZE_BYTES)
        except FileValidationError as e:
            raise ReportUploadService._fail_validation(db, upload, e)

        try:
            stored = await save_upload_file(upload_file, REPORT_FILE_FIELD, MAX_REPORT_SIZE_BYTES)
        except FileValidationError as e:
            raise ReportUploadService._fail_validation(db, upload, e)

        try:
            upload.attach_file(
                original_filename=upload_file.filename or stored.stored_filename,
                stored_filename=stored.stored_filename,
                file_path=stored.path,
                size_bytes=stored.size_bytes,
                content_type=upload_file.content_type or "application/octet-stream",
            )
            queue.enqueue(
                db,
                FINALIZE_UPLOAD_TASK,
                upload.id,
                delay_seconds=config.UPLOAD_PROCESSING_DELAY_SECONDS,
            )
        except StaleDataError:
            db.rollback()
            await delete_file(stored.path)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Upload was modified concurrently, please retry"
            )
        except Exception:
            db.rollback()
            await delete_file(stored.path)
            raise

        db.refresh(upload)
        return upload

    @staticmethod
    def finalize_upload(db: Session, queue: TaskQueue, upload_id: int) -> None:
        """
        Task handler: complete a processed upload and schedule its analysis.

        Idempotent: a redelivered task for an already completed upload only
        schedules the analysis if that never happened.
        """
        upload = db.get(ReportUpload, upload_id)
        if upload is None:
            logger.warning(f"Upload {upload_id} no longer exists; nothing to finalize")
            return

        if upload.upload_status == UploadStatus.COMPLETED.value:
            if upload.ai_task_id is None:
                ReportAnalysisService.schedule_analysis(db, queue, upload)
            return

        if upload.upload_status != UploadStatus.PROCESSING.value:
            logger.info(f"Upload {upload_id} is {upload.upload_status}; skipping finalize")
            return

        if not upload.file_path or not os.path.isfile(upload.file_path):
            upload.mark_failed("Stored file is missing")
            db.commit()
            logger.error(f"Upload {upload_id} failed: stored file missing at {upload.file_path}")
            return

        upload.mark_completed()
        db.commit()
        logger.info(f"Upload {upload_id} completed in {upload.processing_duration_ms}ms")

        ReportAnalysisService.schedule_analysis(db, queue, upload)

    @staticmethod
    async def retry_upload(db: Session, upload: ReportUpload) -> ReportUpload:
        """
        Restart a failed upload.

        Raises:
            HTTPException: 400 if the upload has not failed or has no
                retries left. The record is unchanged in both cases.
        """
        previous_path = upload.file_path
        try:
            upload.retry()
        except (InvalidTransitionError, MaxRetriesExceededError) as e:
            db.rollback()
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Upload was modified concurrently, please retry"
            )
        db.refresh(upload)
        await delete_file(previous_path)
        logger.info(f"Upload {upload.id} retry {upload.retry_count}/{upload.max_retries}")
        return upload

    @staticmethod
    def list_uploads(
        db: Session,
        patient_ids: Optional[Sequence[int]],
        upload_status: Optional[str] = None,
        uploaded_by_user_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[ReportUpload], PageInfo]:
        query = filter_by_patients(db.query(ReportUpload), ReportUpload.patient_id, patient_ids)
        if upload_status:
            query = query.filter(ReportUpload.upload_status == upload_status)
        if uploaded_by_user_id is not None:
            query = query.filter(ReportUpload.uploaded_by_user_id == uploaded_by_user_id)
        return paginate(query.order_by(ReportUpload.created_at.desc(), ReportUpload.id.desc()), page, limit)

    @staticmethod
    def upload_stats(db: Session, patient_ids: Optional[Sequence[int]]) -> Dict[str, Any]:
        """Count and total size of uploads per status."""
        query = filter_by_patients(
            db.query(
                ReportUpload.upload_status,
                func.count(ReportUpload.id),
                func.coalesce(func.sum(ReportUpload.size_bytes), 0),
            ),
            ReportUpload.patient_id,
            patient_ids,
        )
        rows = query.group_by(ReportUpload.upload_status).all()

        by_status = {s.value: {"count": 0, "total_size_bytes": 0} for s in UploadStatus}
        for upload_status, count, total_size in rows:
            by_status[upload_status] = {"count": int(count), "total_size_bytes": int(total_size)}

        return {
            "by_status": by_status,
            "total_uploads": sum(item["count"] for item in by_status.values()),
            "total_size_bytes": sum(item["total_size_bytes"] for item in by_status.values()),
        }

    @staticmethod
    def delete_upload(db: Session, upload: ReportUpload) -> Optional[str]:
        """
        Delete the upload record.

        Returns:
            Path of the stored file (if any), for the caller to remove.
        """
        upload_id = upload.id
        file_path = upload.file_path
        db.delete(upload)
        db.commit()
        logger.info(f"Deleted upload {upload_id}")
        return file_path


def register_upload_tasks(queue: TaskQueue) -> None:
    """Register the upload finalisation handler on ``queue``."""

    def finalize(db: Session, task: Any) -> None:
        ReportUploadService.finalize_upload(db, queue, task.record_id)

    queue.register(FINALIZE_UPLOAD_TASK, finalize)
