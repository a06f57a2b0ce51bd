"""
Background task polling endpoint.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from api.responses import TaskResponse
from auth.dependencies import UserContext, get_current_user
from auth.permissions import ensure_patient_access
from core.database import get_db
from models.background_task import BackgroundTask
from models.report_upload import ReportUpload
from services.report_analysis_service import ANALYSIS_TARGETS, REPORT_ANALYSIS_TASK
from services.report_upload_service import FINALIZE_UPLOAD_TASK
from services.task_queue import TaskQueue

router = APIRouter()


def task_owner_patient_id(db: Session, task: BackgroundTask):
    """Patient owning the record a task works on, or None if it no longer exists."""
    if task.task_type == FINALIZE_UPLOAD_TASK:
        model = ReportUpload
    elif task.task_type == REPORT_ANALYSIS_TASK:
        model = ANALYSIS_TARGETS.get(task.payload.get("target", ""))
    else:
        model = None
    if model is None:
        return None
    return db.query(model.patient_id).filter(model.id == task.record_id).scalar()


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> TaskResponse:
    """Status of a queued, running or finished background task."""
    task = TaskQueue.get_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    patient_id = task_owner_patient_id(db, task)
    if patient_id is None:
        if not current_user.is_admin():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    else:
        ensure_patient_access(db, current_user, patient_id)
    return TaskResponse.model_validate(task)
