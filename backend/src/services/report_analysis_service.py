"""
Report analysis service.

Runs the AI explanation of a stored report as a background task and owns
the analysis status of ``Report`` and ``ReportUpload`` records::

    pending -> processing -> completed | failed
    failed -> pending   (user-initiated retry)

Every status write is a conditional UPDATE keyed on the record id and the
task id that is allowed to write (``ai_task_id``), and bumps the record
version. A retry that loses the compare-and-set is rejected; a worker
whose record was deleted or whose task was superseded writes nothing.
"""

import logging
from typing import Any, Dict, Optional, Type, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from models.ai_analysis import AnalysisStatus
from models.background_task import BackgroundTask, new_task_id
from models.report import Report
from models.report_upload import ReportUpload
from services.report_analyzer import PatientContext, ReportAnalysisError, ReportAnalyzer
from services.task_queue import TaskQueue
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

REPORT_ANALYSIS_TASK = "report_analysis"

AnalyzableRecord = Union[Report, ReportUpload]
AnalyzableModel = Type[AnalyzableRecord]

ANALYSIS_TARGETS: Dict[str, AnalyzableModel] = {
    "report": Report,
    "report_upload": ReportUpload,
}


class AnalysisRetryRejectedError(Exception):
    """Raised when an AI retry is requested for an analysis that has not failed."""
    pass


def target_name(record: AnalyzableRecord) -> str:
    for name, model in ANALYSIS_TARGETS.items():
        if isinstance(record, model):
            return name
    raise ValueError(f"Unsupported analysis target: {type(record).__name__}")


class ReportAnalysisService:
    """Background analysis of stored report files."""

    def __init__(self, analyzer: ReportAnalyzer):
        self.analyzer = analyzer

    @staticmethod
    def schedule_analysis(
        db: Session,
        queue: TaskQueue,
        record: AnalyzableRecord,
        patient_context: Optional[PatientContext] = None,
    ) -> BackgroundTask:
        """
        Set the record's analysis to pending and enqueue the worker.

        The record change and the task row are committed together.
        """
        task_id = new_task_id()
        record.ai_analysis_status = AnalysisStatus.PENDING.value
        record.ai_task_id = task_id
        payload: Dict[str, Any] = {"target": target_name(record)}
        if patient_context and not patient_context.is_empty():
            payload["patient_context"] = patient_context.to_payload()
        return queue.enqueue(db, REPORT_ANALYSIS_TASK, record.id, payload=payload, task_id=task_id)

    @staticmethod
    def retry_analysis(db: Session, queue: TaskQueue, record: AnalyzableRecord) -> BackgroundTask:
        """
        Re-run a failed analysis against the same stored file.

        Only one of several concurrent retries can win: the status moves
        from failed to pending with an atomic compare-and-set.

        Raises:
            AnalysisRetryRejectedError: If the analysis status is not failed.
        """
        model = type(record)
        record_id = record.id
        previous_task_id = record.ai_task_id
        task_id = new_task_id()

        result = db.execute(
            update(model)
            .where(
                model.id == record_id,
                model.ai_analysis_status == AnalysisStatus.FAILED.value,
            )
            .values(
                ai_analysis_status=AnalysisStatus.PENDING.value,
                ai_task_id=task_id,
                version=model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            db.rollback()
            raise AnalysisRetryRejectedError("AI analysis can only be retried when it has failed")

        # Reuse the patient context of the attempt being retried
        payload: Dict[str, Any] = {"target": target_name(record)}
        if previous_task_id:
            previous = db.get(BackgroundTask, previous_task_id)
            if previous and previous.payload.get("patient_context"):
                payload["patient_context"] = previous.payload["patient_context"]

        task = queue.enqueue(db, REPORT_ANALYSIS_TASK, record_id, payload=payload, task_id=task_id)
        db.refresh(record)
        logger.info(f"AI analysis retry accepted for {payload['target']} {record_id} (task {task_id})")
        return task

    def run(self, db: Session, task: BackgroundTask) -> None:
        """
        Task handler: analyze the record's file and store the outcome.

        Re-raises analysis errors after recording the failure so the task
        itself shows as failed with the reason.
        """
        target = task.payload.get("target", "")
        model = ANALYSIS_TARGETS.get(target)
        if model is None:
            raise ValueError(f"Unknown analysis target '{target}'")
        record_id = task.record_id
        task_id = task.id

        claimed = db.execute(
            update(model)
            .where(
                model.id == record_id,
                model.ai_task_id == task_id,
                model.ai_analysis_status.in_([
                    AnalysisStatus.PENDING.value,
                    AnalysisStatus.PROCESSING.value,  # redelivery after a crash
                ]),
            )
            .values(
                ai_analysis_status=AnalysisStatus.PROCESSING.value,
                ai_analysis_date=utc_now(),
                version=model.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if not claimed.rowcount:
            logger.warning(f"Skipping analysis of {target} {record_id}: record deleted or task {task_id} superseded")
            return

        file_path = db.query(model.file_path).filter(model.id == record_id).scalar()
        context = PatientContext.from_payload(task.payload.get("patient_context"))

        try:
            if not file_path:
                raise ReportAnalysisError("Record has no stored file")
            if context:
                result = self.analyzer.analyze_with_context(file_path, context)
            else:
                result = self.analyzer.analyze(file_path)
        except ReportAnalysisError as e:
            logger.error(f"AI analysis failed for {target} {record_id} (task {task_id}): {e.message}")
            self._write_outcome(db, model, record_id, task_id, AnalysisStatus.FAILED, None)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error analyzing {target} {record_id} (task {task_id}): {e}")
            self._write_outcome(db, model, record_id, task_id, AnalysisStatus.FAILED, None)
            raise

        self._write_outcome(db, model, record_id, task_id, AnalysisStatus.COMPLETED, result.explanation)
        logger.info(f"AI analysis completed for {target} {record_id} (task {task_id}, tokens {result.total_tokens})")

    @staticmethod
    def _write_outcome(
        db: Session,
        model: AnalyzableModel,
        record_id: int,
        task_id: str,
        outcome: AnalysisStatus,
        description: Optional[str],
    ) -> bool:
        values: Dict[str, Any] = {
            "ai_analysis_status": outcome.value,
            "ai_analysis_date": utc_now(),
            "version": model.version + 1,
        }
        if outcome == AnalysisStatus.COMPLETED:
            values["ai_describe"] = description

        db.rollback()
        result = db.execute(
            update(model)
            .where(
                model.id == record_id,
                model.ai_task_id == task_id,
                model.ai_analysis_status == AnalysisStatus.PROCESSING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if not result.rowcount:
            logger.warning(f"Analysis result for record {record_id} discarded: record deleted or task {task_id} superseded")
            return False
        return True


def register_analysis_tasks(queue: TaskQueue, analyzer: ReportAnalyzer) -> ReportAnalysisService:
    """Register the analysis handler on ``queue``."""
    service = ReportAnalysisService(analyzer)
    queue.register(REPORT_ANALYSIS_TASK, service.run)
    return service


def get_analysis_status(record: AnalyzableRecord) -> Dict[str, Any]:
    """Polling view of a record's analysis."""
    return {
        "status": record.ai_analysis_status,
        "date": record.ai_analysis_date,
        "has_description": bool(record.ai_describe),
        "description": record.ai_describe,
        "task_id": record.ai_task_id,
    }
