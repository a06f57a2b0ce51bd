"""
Unit tests for the report upload lifecycle.

Covers the upload state machine: progress only moves forward while the
upload is active, is frozen on failure, and is exactly 100 once completed.
"""

import pytest
from datetime import timedelta

from models.report_upload import (
    InvalidTransitionError,
    MaxRetriesExceededError,
    ReportUpload,
    UploadStatus,
)
from utils.datetime_utils import utc_now


def new_upload() -> ReportUpload:
    upload = ReportUpload(patient_id=1, uploaded_by_user_id=1, title="Blood Panel")
    upload.start()
    return upload


def attach(upload: ReportUpload) -> None:
    upload.attach_file(
        original_filename="blood_panel.pdf",
        stored_filename="report-1-2-blood_panel.pdf",
        file_path="/tmp/report-1-2-blood_panel.pdf",
        size_bytes=5 * 1024 * 1024,
        content_type="application/pdf",
    )


class TestUploadProgress:
    """Progress checkpoints 0 -> 50 -> 100."""

    def test_new_upload_starts_uploading_at_zero(self):
        upload = new_upload()

        assert upload.upload_status == UploadStatus.UPLOADING.value
        assert upload.upload_progress == 0
        assert upload.retry_count == 0
        assert upload.max_retries == 3
        assert upload.processing_started_at is not None

    def test_attach_file_moves_to_processing_at_fifty(self):
        upload = new_upload()
        attach(upload)

        assert upload.upload_status == UploadStatus.PROCESSING.value
        assert upload.upload_progress == 50
        assert upload.is_valid_file is True
        assert upload.size_bytes == 5 * 1024 * 1024

    def test_mark_completed_sets_hundred_and_duration(self):
        upload = new_upload()
        upload.processing_started_at = utc_now() - timedelta(seconds=2)
        attach(upload)
        upload.mark_completed()

        assert upload.upload_status == UploadStatus.COMPLETED.value
        assert upload.upload_progress == 100
        assert upload.processing_completed_at is not None
        assert upload.processing_duration_ms >= 2000

    def test_progress_cannot_decrease(self):
        upload = new_upload()
        upload.advance_progress(30)

        with pytest.raises(ValueError):
            upload.advance_progress(10)
        assert upload.upload_progress == 30

    def test_progress_cannot_reach_hundred_without_completion(self):
        """Progress 100 is reserved for completed uploads."""
        upload = new_upload()

        with pytest.raises(ValueError):
            upload.advance_progress(100)
        assert upload.upload_progress == 0

    def test_progress_out_of_range_rejected(self):
        upload = new_upload()

        with pytest.raises(ValueError):
            upload.advance_progress(-1)
        with pytest.raises(ValueError):
            upload.advance_progress(150)

    def test_completed_upload_cannot_change(self):
        upload = new_upload()
        attach(upload)
        upload.mark_completed()

        with pytest.raises(InvalidTransitionError):
            upload.advance_progress(60)
        with pytest.raises(InvalidTransitionError):
            upload.mark_failed("late failure")
        assert upload.upload_status == UploadStatus.COMPLETED.value
        assert upload.upload_progress == 100


class TestUploadFailure:
    """Failure freezes progress and records the reason."""

    def test_mark_failed_keeps_progress(self):
        upload = new_upload()
        attach(upload)
        upload.mark_failed("Stored file is missing")

        assert upload.upload_status == UploadStatus.FAILED.value
        assert upload.upload_progress == 50
        assert upload.error_message == "Stored file is missing"
        assert upload.processing_completed_at is not None

    def test_failed_upload_progress_is_frozen(self):
        upload = new_upload()
        upload.mark_failed("Invalid file type")

        with pytest.raises(InvalidTransitionError):
            upload.advance_progress(50)
        assert upload.upload_progress == 0

    def test_attach_file_requires_uploading(self):
        upload = new_upload()
        upload.mark_failed("Invalid file type")

        with pytest.raises(InvalidTransitionError):
            attach(upload)


class TestUploadRetry:
    """Retry is only valid from failed and while retries remain."""

    def test_retry_resets_failed_upload(self):
        upload = new_upload()
        attach(upload)
        upload.mark_failed("Stored file is missing")

        upload.retry()

        assert upload.upload_status == UploadStatus.UPLOADING.value
        assert upload.upload_progress == 0
        assert upload.retry_count == 1
        assert upload.error_message is None
        assert upload.file_path is None
        assert upload.is_valid_file is False
        assert upload.processing_completed_at is None

    def test_retry_of_non_failed_upload_rejected(self):
        upload = new_upload()

        with pytest.raises(InvalidTransitionError):
            upload.retry()
        assert upload.retry_count == 0

    def test_retry_at_max_leaves_state_unchanged(self):
        upload = new_upload()
        upload.mark_failed("Invalid file type")
        upload.retry_count = upload.max_retries
        completed_at = upload.processing_completed_at

        with pytest.raises(MaxRetriesExceededError, match="Max retries exceeded"):
            upload.retry()

        assert upload.upload_status == UploadStatus.FAILED.value
        assert upload.retry_count == upload.max_retries
        assert upload.error_message == "Invalid file type"
        assert upload.processing_completed_at == completed_at
        assert upload.can_retry is False

    def test_retries_run_out_after_max(self):
        upload = new_upload()
        for _ in range(upload.max_retries):
            upload.mark_failed("Invalid file type")
            upload.retry()

        upload.mark_failed("Invalid file type")
        with pytest.raises(MaxRetriesExceededError):
            upload.retry()
        assert upload.retry_count == 3
