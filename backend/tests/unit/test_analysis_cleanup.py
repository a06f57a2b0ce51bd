"""
Unit tests for expiring old report analyses.
"""

import pytest
from datetime import timedelta
from unittest.mock import patch

from models.ai_analysis import AnalysisStatus
from services.analysis_cleanup_scheduler import AnalysisCleanupScheduler
from services.report_service import ReportService
from tests.conftest import create_report
from utils.datetime_utils import utc_now


@pytest.fixture
def stored_file(tmp_path):
    path = tmp_path / "scan.png"
    path.write_bytes(b"png")
    return str(path)


def analysed_report(db_session, patient, stored_file, status, days_ago, title="Report"):
    report = create_report(db_session, patient, stored_file, title=title, ai_analysis_status=status, ai_task_id="t")
    report.ai_describe = "Explanation" if status == AnalysisStatus.COMPLETED.value else None
    report.ai_analysis_date = utc_now() - timedelta(days=days_ago)
    db_session.commit()
    return report


class TestExpireOldAnalyses:

    def test_old_finished_analyses_reset(self, db_session, patient, stored_file):
        old_done = analysed_report(db_session, patient, stored_file, AnalysisStatus.COMPLETED.value, 40)
        old_failed = analysed_report(db_session, patient, stored_file, AnalysisStatus.FAILED.value, 31)
        recent = analysed_report(db_session, patient, stored_file, AnalysisStatus.COMPLETED.value, 5)
        running = analysed_report(db_session, patient, stored_file, AnalysisStatus.PROCESSING.value, 40)

        count = ReportService.expire_old_analyses(db_session, retention_days=30)

        assert count == 2
        db_session.expire_all()
        for report in (old_done, old_failed):
            assert report.ai_analysis_status == AnalysisStatus.PENDING.value
            assert report.ai_describe is None
            assert report.ai_task_id is None
        assert recent.ai_analysis_status == AnalysisStatus.COMPLETED.value
        assert recent.ai_describe == "Explanation"
        assert running.ai_analysis_status == AnalysisStatus.PROCESSING.value

    def test_nothing_to_expire(self, db_session):
        assert ReportService.expire_old_analyses(db_session, retention_days=30) == 0


class TestAnalysisCleanupScheduler:

    def test_execute_cleanup(self, db_session, session_factory, patient, stored_file):
        analysed_report(db_session, patient, stored_file, AnalysisStatus.COMPLETED.value, 60)
        scheduler = AnalysisCleanupScheduler(retention_days=30)

        with patch("services.analysis_cleanup_scheduler.get_db_context", session_factory):
            assert scheduler.execute_cleanup() == 1

    def test_execute_cleanup_swallows_errors(self):
        """A failing run is logged and the scheduler keeps going."""
        scheduler = AnalysisCleanupScheduler(retention_days=30)

        with patch("services.analysis_cleanup_scheduler.get_db_context", side_effect=RuntimeError("db down")), \
             patch("services.analysis_cleanup_scheduler.logger") as mock_logger:
            assert scheduler.execute_cleanup() == 0
        mock_logger.exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_registers_daily_job(self):
        scheduler = AnalysisCleanupScheduler()

        with patch.object(scheduler.scheduler, "start") as mock_start, \
             patch.object(scheduler.scheduler, "add_job") as mock_add_job:
            await scheduler.start_scheduler()
            await scheduler.start_scheduler()

        mock_start.assert_called_once()
        mock_add_job.assert_called_once()
        assert mock_add_job.call_args.kwargs["id"] == "report_analysis_cleanup"
