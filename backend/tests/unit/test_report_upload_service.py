"""
Unit tests for the upload retry path of ReportUploadService.
"""

import pytest
from fastapi import HTTPException

from auth.dependencies import UserContext
from models.report_upload import ReportUpload, UploadStatus
from services.report_upload_service import ReportUploadService


@pytest.fixture
def failed_upload(db_session, patient) -> ReportUpload:
    user = UserContext(user_id=patient.id, email=patient.email, role=patient.role, name=patient.full_name)
    upload = ReportUploadService.initialize_upload(db_session, user, patient.id, patient.caregiver_id, "Blood Panel")
    upload.mark_failed("Invalid file type")
    db_session.commit()
    return upload


class TestRetryUpload:

    @pytest.mark.asyncio
    async def test_retry_restarts_failed_upload(self, db_session, failed_upload):
        upload = await ReportUploadService.retry_upload(db_session, failed_upload)

        assert upload.upload_status == UploadStatus.UPLOADING.value
        assert upload.upload_progress == 0
        assert upload.retry_count == 1
        assert upload.error_message is None

    @pytest.mark.asyncio
    async def test_concurrent_retries_second_gets_conflict(self, db_session, session_maker, failed_upload):
        """Both callers saw 'failed'; the stale one is rejected and only one retry counts."""
        other_session = session_maker()
        try:
            stale_copy = other_session.get(ReportUpload, failed_upload.id)
            assert stale_copy.upload_status == UploadStatus.FAILED.value

            await ReportUploadService.retry_upload(db_session, failed_upload)

            with pytest.raises(HTTPException) as exc_info:
                await ReportUploadService.retry_upload(other_session, stale_copy)
        finally:
            other_session.close()

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Upload was modified concurrently, please retry"

        db_session.expire_all()
        upload = db_session.get(ReportUpload, failed_upload.id)
        assert upload.retry_count == 1
        assert upload.upload_status == UploadStatus.UPLOADING.value
