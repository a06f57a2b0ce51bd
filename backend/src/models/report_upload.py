"""
Report upload model.

Tracks a single file's transfer to server-side storage with progress.
The upload lifecycle is a small state machine::

    uploading -> processing -> completed
        \\            \\
         +-> failed <-+
    failed -> uploading   (retry, at most ``max_retries`` times)

Progress only moves forward (0 -> 50 -> 100) while the upload is active;
it is frozen on failure and is exactly 100 once completed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from sqlalchemy import String, Integer, Boolean, BigInteger, TIMESTAMP, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    DEFAULT_MAX_UPLOAD_RETRIES,
    UPLOAD_PROGRESS_COMPLETE,
    UPLOAD_PROGRESS_STARTED,
    UPLOAD_PROGRESS_STORED,
)
from core.database import Base
from models.ai_analysis import AIAnalysisMixin
from models.base import JSONType
from models.report import ReportType
from utils.datetime_utils import elapsed_ms, utc_now


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_UPLOAD_STATUSES = (UploadStatus.UPLOADING.value, UploadStatus.PROCESSING.value)


class UploadCategory(str, Enum):
    MEDICAL = "medical"
    ADMINISTRATIVE = "administrative"
    BILLING = "billing"
    LEGAL = "legal"
    OTHER = "other"


class InvalidTransitionError(Exception):
    """Raised when an upload operation is not valid in the current state."""
    pass


class MaxRetriesExceededError(Exception):
    """Raised when a failed upload has used up its retries."""
    pass


class ReportUpload(AIAnalysisMixin, Base):
    """
    Upload record for a medical report file.
    """
    __tablename__ = "report_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    caregiver_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_by_user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    # Declared metadata
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_type: Mapped[str] = mapped_column(String(50), default=ReportType.OTHER.value, nullable=False)
    category: Mapped[str] = mapped_column(String(50), default=UploadCategory.MEDICAL.value, nullable=False)
    tags: Mapped[List[Any]] = mapped_column(JSONType, default=list, nullable=False)

    # File metadata, filled in when the file arrives
    original_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    stored_filename: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_valid_file: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Upload lifecycle
    upload_status: Mapped[str] = mapped_column(String(20), default=UploadStatus.UPLOADING.value, nullable=False)
    upload_progress: Mapped[int] = mapped_column(Integer, default=UPLOAD_PROGRESS_STARTED, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    processing_completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    processing_duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_UPLOAD_RETRIES, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    patient = relationship("User", foreign_keys=[patient_id])
    caregiver = relationship("User", foreign_keys=[caregiver_id])
    uploaded_by_user = relationship("User", foreign_keys=[uploaded_by_user_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_report_uploads_patient_created", "patient_id", "created_at"),
        Index("idx_report_uploads_uploader_created", "uploaded_by_user_id", "created_at"),
        Index("idx_report_uploads_status", "upload_status"),
    )

    @property
    def is_active(self) -> bool:
        return self.upload_status in ACTIVE_UPLOAD_STATUSES

    @property
    def can_retry(self) -> bool:
        return self.upload_status == UploadStatus.FAILED.value and self.retry_count < self.max_retries

    def start(self) -> None:
        """Put a new record at the start of the upload lifecycle."""
        self.upload_status = UploadStatus.UPLOADING.value
        self.upload_progress = UPLOAD_PROGRESS_STARTED
        self.error_message = None
        self.processing_started_at = utc_now()
        self.processing_completed_at = None
        self.processing_duration_ms = None
        if self.retry_count is None:
            self.retry_count = 0
        if self.max_retries is None:
            self.max_retries = DEFAULT_MAX_UPLOAD_RETRIES

    def advance_progress(self, progress: int) -> None:
        """
        Move progress forward while the upload is active.

        Raises:
            InvalidTransitionError: If the upload is not active.
            ValueError: If progress would decrease or leave 0..100.
        """
        if not self.is_active:
            raise InvalidTransitionError(
                f"Cannot update progress of a {self.upload_status} upload"
            )
        if progress < 0 or progress > UPLOAD_PROGRESS_COMPLETE:
            raise ValueError("Progress must be between 0 and 100")
        if progress < (self.upload_progress or 0):
            raise ValueError("Upload progress cannot decrease")
        if progress == UPLOAD_PROGRESS_COMPLETE:
            raise ValueError("Use mark_completed() to finish an upload")
        self.upload_progress = progress

    def attach_file(
        self,
        original_filename: str,
        stored_filename: str,
        file_path: str,
        size_bytes: int,
        content_type: str,
    ) -> None:
        """Record the stored file and hand the upload to processing."""
        if self.upload_status != UploadStatus.UPLOADING.value:
            raise InvalidTransitionError("Upload is not accepting a file")
        self.original_filename = original_filename
        self.stored_filename = stored_filename
        self.file_path = file_path
        self.size_bytes = size_bytes
        self.content_type = content_type
        self.is_valid_file = True
        self.advance_progress(UPLOAD_PROGRESS_STORED)
        self.upload_status = UploadStatus.PROCESSING.value

    def mark_completed(self) -> None:
        """Finish the upload: progress 100, completion time and duration."""
        if not self.is_active:
            raise InvalidTransitionError(
                f"Cannot complete a {self.upload_status} upload"
            )
        now = utc_now()
        self.upload_status = UploadStatus.COMPLETED.value
        self.upload_progress = UPLOAD_PROGRESS_COMPLETE
        self.processing_completed_at = now
        self.processing_duration_ms = elapsed_ms(self.processing_started_at, now)
        self.error_message = None

    def mark_failed(self, reason: str) -> None:
        """Fail the upload with a reason; progress stays where it was."""
        if not self.is_active:
            raise InvalidTransitionError(
                f"Cannot fail a {self.upload_status} upload"
            )
        self.upload_status = UploadStatus.FAILED.value
        self.error_message = reason
        self.processing_completed_at = utc_now()

    def retry(self) -> None:
        """
        Restart a failed upload.

        Raises:
            InvalidTransitionError: If the upload has not failed.
            MaxRetriesExceededError: If ``retry_count`` already reached
                ``max_retries``. The record is left unchanged.
        """
        if self.upload_status != UploadStatus.FAILED.value:
            raise InvalidTransitionError("Only failed uploads can be retried")
        if self.retry_count >= self.max_retries:
            raise MaxRetriesExceededError("Max retries exceeded")

        self.retry_count += 1
        self.upload_status = UploadStatus.UPLOADING.value
        self.upload_progress = UPLOAD_PROGRESS_STARTED
        self.error_message = None
        self.processing_started_at = utc_now()
        self.processing_completed_at = None
        self.processing_duration_ms = None
        self.original_filename = None
        self.stored_filename = None
        self.file_path = None
        self.size_bytes = None
        self.content_type = None
        self.is_valid_file = False

    def __repr__(self) -> str:
        return (
            f"<ReportUpload(id={self.id}, status='{self.upload_status}', "
            f"progress={self.upload_progress})>"
        )
