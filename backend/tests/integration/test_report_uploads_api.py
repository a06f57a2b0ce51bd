"""
Integration tests for progress-tracked report uploads.

Walks uploads through initialize -> file -> background finalisation ->
analysis, plus validation failures, retries and the stats overview.
"""

import os

from models.ai_analysis import AnalysisStatus
from models.background_task import BackgroundTask
from models.report_upload import ReportUpload, UploadStatus
from tests.conftest import auth_headers, run_queued_tasks
from tests.samples import PNG_BYTES, make_pdf_bytes

FIVE_MB = 5 * 1024 * 1024


def initialize(client, user, **body):
    payload = {"title": "Blood Panel", "report_type": "lab_report", "tags": ["cbc"]}
    payload.update(body)
    response = client.post("/api/report-upload/initialize", json=payload, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def send_file(client, user, upload_id, filename, content, content_type):
    return client.post(
        f"/api/report-upload/{upload_id}/upload",
        files={"report": (filename, content, content_type)},
        headers=auth_headers(user),
    )


def progress(client, user, upload_id):
    return client.get(f"/api/report-upload/{upload_id}/progress", headers=auth_headers(user)).json()


class TestUploadLifecycle:

    def test_blood_panel_pdf_end_to_end(self, client, patient, task_queue, session_factory, mock_scheduler):
        """A 5MB PDF goes 0 -> 50 -> 100 and ends with a completed analysis."""
        upload = initialize(client, patient)
        assert upload["upload_status"] == UploadStatus.UPLOADING.value
        assert upload["upload_progress"] == 0
        assert upload["retry_count"] == 0
        assert upload["max_retries"] == 3
        assert upload["patient_id"] == patient.id

        response = send_file(client, patient, upload["id"], "blood_panel.pdf", make_pdf_bytes(FIVE_MB), "application/pdf")
        assert response.status_code == 200
        data = response.json()
        assert data["upload_status"] == UploadStatus.PROCESSING.value
        assert data["upload_progress"] == 50
        assert data["size_bytes"] == FIVE_MB
        assert data["is_valid_file"] is True
        assert mock_scheduler.add_job.called

        run_queued_tasks(task_queue, session_factory)

        state = progress(client, patient, upload["id"])
        assert state["upload_status"] == UploadStatus.COMPLETED.value
        assert state["upload_progress"] == 100
        assert state["processing_completed_at"] is not None
        assert state["processing_duration_ms"] >= 0
        assert state["analysis"]["status"] == AnalysisStatus.COMPLETED.value
        assert state["analysis"]["description"] == "Your hemoglobin is within the normal range."

    def test_progress_never_decreases_across_polls(self, client, patient, task_queue, session_factory):
        upload = initialize(client, patient)
        seen = [progress(client, patient, upload["id"])["upload_progress"]]

        send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")
        seen.append(progress(client, patient, upload["id"])["upload_progress"])
        run_queued_tasks(task_queue, session_factory)
        seen.append(progress(client, patient, upload["id"])["upload_progress"])

        assert seen == [0, 50, 100]

    def test_file_for_completed_upload_rejected(self, client, patient, task_queue, session_factory):
        upload = initialize(client, patient)
        send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")
        run_queued_tasks(task_queue, session_factory)

        response = send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")

        assert response.status_code == 400
        assert progress(client, patient, upload["id"])["upload_progress"] == 100

    def test_missing_stored_file_fails_upload(self, client, patient, task_queue, session_factory, db_session):
        upload = initialize(client, patient)
        send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")
        os.remove(db_session.get(ReportUpload, upload["id"]).file_path)

        run_queued_tasks(task_queue, session_factory)

        state = progress(client, patient, upload["id"])
        assert state["upload_status"] == UploadStatus.FAILED.value
        assert state["upload_progress"] == 50
        assert state["error_message"] == "Stored file is missing"
        assert state["analysis"]["status"] == AnalysisStatus.PENDING.value


class TestValidation:

    def test_executable_rejected_and_upload_failed(self, client, patient, upload_dir):
        upload = initialize(client, patient)

        response = send_file(client, patient, upload["id"], "setup.exe", b"MZ\x90\x00", "application/x-msdownload")

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid file type"}
        state = progress(client, patient, upload["id"])
        assert state["upload_status"] == UploadStatus.FAILED.value
        assert state["error_message"] == "Invalid file type"
        assert state["upload_progress"] == 0
        assert not upload_dir.exists() or os.listdir(upload_dir) == []

    def test_invalid_initialize_body(self, client, patient):
        response = client.post(
            "/api/report-upload/initialize",
            json={"title": "", "report_type": "horoscope"},
            headers=auth_headers(patient),
        )
        assert response.status_code == 422
        assert response.json()["success"] is False


class TestRetry:

    def fail_upload(self, client, user):
        upload = initialize(client, user)
        send_file(client, user, upload["id"], "setup.exe", b"MZ", "application/x-msdownload")
        return upload["id"]

    def test_retry_resets_failed_upload(self, client, patient, task_queue, session_factory):
        upload_id = self.fail_upload(client, patient)

        response = client.post(f"/api/report-upload/{upload_id}/retry", headers=auth_headers(patient))

        assert response.status_code == 200
        data = response.json()
        assert data["upload_status"] == UploadStatus.UPLOADING.value
        assert data["upload_progress"] == 0
        assert data["retry_count"] == 1
        assert data["error_message"] is None

        send_file(client, patient, upload_id, "scan.png", PNG_BYTES, "image/png")
        run_queued_tasks(task_queue, session_factory)
        assert progress(client, patient, upload_id)["upload_status"] == UploadStatus.COMPLETED.value

    def test_retry_at_max_rejected_and_unchanged(self, client, patient, db_session):
        upload_id = self.fail_upload(client, patient)
        record = db_session.get(ReportUpload, upload_id)
        record.retry_count = record.max_retries
        db_session.commit()
        before = progress(client, patient, upload_id)

        response = client.post(f"/api/report-upload/{upload_id}/retry", headers=auth_headers(patient))

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Max retries exceeded"}
        assert progress(client, patient, upload_id) == before

    def test_retry_of_active_upload_rejected(self, client, patient):
        upload = initialize(client, patient)

        response = client.post(f"/api/report-upload/{upload['id']}/retry", headers=auth_headers(patient))

        assert response.status_code == 400
        assert response.json()["message"] == "Only failed uploads can be retried"

    def test_ai_retry_independent_of_upload_retry(self, client, patient, task_queue, session_factory, mock_openai_client):
        """A failed analysis is retried without touching the completed upload."""
        mock_openai_client.chat.completions.create.return_value.choices[0].message.content = ""
        upload = initialize(client, patient)
        send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")
        run_queued_tasks(task_queue, session_factory)
        state = progress(client, patient, upload["id"])
        assert state["upload_status"] == UploadStatus.COMPLETED.value
        assert state["analysis"]["status"] == AnalysisStatus.FAILED.value

        upload_retry = client.post(f"/api/report-upload/{upload['id']}/retry", headers=auth_headers(patient))
        assert upload_retry.status_code == 400

        mock_openai_client.chat.completions.create.return_value.choices[0].message.content = "Normal results."
        ai_retry = client.post(f"/api/report-upload/{upload['id']}/ai-retry", headers=auth_headers(patient))
        assert ai_retry.status_code == 200
        run_queued_tasks(task_queue, session_factory)

        state = progress(client, patient, upload["id"])
        assert state["upload_progress"] == 100
        assert state["retry_count"] == 0
        assert state["analysis"]["status"] == AnalysisStatus.COMPLETED.value
        assert state["analysis"]["description"] == "Normal results."


class TestListingAndStats:

    def test_my_uploads_and_all_uploads(self, client, caregiver, patient, other_patient):
        initialize(client, patient, title="Mine")
        initialize(client, other_patient, title="Theirs")

        mine = client.get("/api/report-upload/my-uploads", headers=auth_headers(patient)).json()
        assert [u["title"] for u in mine["uploads"]] == ["Mine"]

        monitored = client.get("/api/report-upload/all-uploads", headers=auth_headers(caregiver)).json()
        assert [u["title"] for u in monitored["uploads"]] == ["Mine"]

        assert client.get("/api/report-upload/all-uploads", headers=auth_headers(patient)).status_code == 403

    def test_stats_overview(self, client, admin, patient, task_queue, session_factory):
        done = initialize(client, patient)
        send_file(client, patient, done["id"], "scan.png", PNG_BYTES, "image/png")
        run_queued_tasks(task_queue, session_factory)
        failed = initialize(client, patient)
        send_file(client, patient, failed["id"], "setup.exe", b"MZ", "application/x-msdownload")
        initialize(client, patient)

        stats = client.get("/api/report-upload/stats/overview", headers=auth_headers(admin)).json()

        assert stats["total_uploads"] == 3
        assert stats["by_status"]["completed"] == {"count": 1, "total_size_bytes": len(PNG_BYTES)}
        assert stats["by_status"]["failed"]["count"] == 1
        assert stats["by_status"]["uploading"]["count"] == 1
        assert stats["by_status"]["processing"]["count"] == 0
        assert stats["total_size_bytes"] == len(PNG_BYTES)


class TestAccessAndDelete:

    def test_other_patient_cannot_see_upload(self, client, patient, other_patient):
        upload = initialize(client, patient)

        response = client.get(f"/api/report-upload/{upload['id']}/progress", headers=auth_headers(other_patient))
        assert response.status_code == 403

    def test_delete_mid_processing_is_safe(self, client, patient, task_queue, session_factory, db_session):
        """Deleting while the finalize task is queued leaves nothing behind."""
        upload = initialize(client, patient)
        send_file(client, patient, upload["id"], "scan.png", PNG_BYTES, "image/png")
        file_path = db_session.get(ReportUpload, upload["id"]).file_path
        db_session.expunge_all()

        response = client.delete(f"/api/report-upload/{upload['id']}", headers=auth_headers(patient))
        assert response.status_code == 200
        assert not os.path.exists(file_path)

        run_queued_tasks(task_queue, session_factory)

        assert db_session.query(ReportUpload).count() == 0
        assert {t.status for t in db_session.query(BackgroundTask).all()} == {"succeeded"}
