"""
Report API endpoints.

Single-request report upload, listing, clinical review, file download and
AI analysis polling/retry.
"""

import logging
import os
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.dependencies import get_task_queue
from api.responses import (
    AnalysisRetryResponse,
    AnalysisStatusResponse,
    MessageResponse,
    PaginationResponse,
    ReportListResponse,
    ReportResponse,
    TaskResponse,
)
from auth.dependencies import UserContext, get_current_user, require_caregiver_or_admin
from auth.permissions import accessible_patient_ids, ensure_patient_access
from core.constants import DEFAULT_PAGE_SIZE
from core.database import get_db
from models.report import Report, ReportType
from services.report_analysis_service import (
    AnalysisRetryRejectedError,
    ReportAnalysisService,
    get_analysis_status,
)
from services.report_analyzer import PatientContext
from services.report_service import ReportService
from services.task_queue import TaskQueue
from services.user_service import UserService
from utils.file_storage import delete_file
from utils.query_helpers import PageInfo

logger = logging.getLogger(__name__)

router = APIRouter()


class ReviewRequest(BaseModel):
    status: Literal["pending", "reviewed", "approved", "rejected"]
    review_notes: Optional[str] = None


def parse_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def _report_list(reports: List[Report], info: PageInfo) -> ReportListResponse:
    return ReportListResponse(
        reports=[ReportResponse.model_validate(report) for report in reports],
        pagination=PaginationResponse.from_page_info(info),
    )


def _stored_file_response(report: Report, disposition: str) -> FileResponse:
    if not report.file_path or not os.path.isfile(report.file_path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(
        report.file_path,
        media_type=report.content_type,
        filename=report.original_filename,
        content_disposition_type=disposition,
    )


@router.post("/upload", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def upload_report(
    report: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=200),
    description: Optional[str] = Form(None),
    report_type: ReportType = Form(ReportType.OTHER),
    tags: Optional[str] = Form(None),
    is_public: bool = Form(False),
    patient_id: Optional[int] = Form(None),
    age: Optional[int] = Form(None, ge=0, le=150),
    gender: Optional[str] = Form(None),
    medical_history: Optional[str] = Form(None),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    queue: TaskQueue = Depends(get_task_queue)
) -> ReportResponse:
    """
    Upload a report file and schedule its AI analysis.

    Optional age, gender and medical history switch the analysis to the
    context-aware prompt.
    """
    owner_id, caregiver_id = UserService.resolve_report_owner(db, current_user, patient_id)
    created = await ReportService.create_report(
        db,
        queue,
        current_user,
        patient_id=owner_id,
        caregiver_id=caregiver_id,
        upload_file=report,
        title=title,
        description=description,
        report_type=report_type.value,
        tags=parse_tags(tags),
        is_public=is_public,
        patient_context=PatientContext(age=age, gender=gender, medical_history=medical_history),
    )
    return ReportResponse.model_validate(created)


@router.get("/my-reports", response_model=ReportListResponse)
async def list_my_reports(
    report_type: Optional[str] = None,
    review_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportListResponse:
    """Patients see their own reports; caregivers and admins see what they uploaded."""
    if current_user.is_patient():
        reports, info = ReportService.list_reports(
            db, [current_user.user_id], report_type, review_status, page=page, limit=limit
        )
    else:
        reports, info = ReportService.list_reports(
            db, None, report_type, review_status,
            uploaded_by_user_id=current_user.user_id, page=page, limit=limit
        )
    return _report_list(reports, info)


@router.get("/all-patients", response_model=ReportListResponse)
async def list_all_patient_reports(
    patient_id: Optional[int] = None,
    report_type: Optional[str] = None,
    review_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> ReportListResponse:
    """Reports of every patient the caller monitors (all patients for admins)."""
    if patient_id is not None:
        ensure_patient_access(db, current_user, patient_id)
        patient_ids: Optional[List[int]] = [patient_id]
    else:
        patient_ids = accessible_patient_ids(db, current_user)
    reports, info = ReportService.list_reports(db, patient_ids, report_type, review_status, page=page, limit=limit)
    return _report_list(reports, info)


@router.get("/patient/{patient_id}", response_model=ReportListResponse)
async def list_patient_reports(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> ReportListResponse:
    ensure_patient_access(db, current_user, patient_id)
    reports, info = ReportService.list_reports(db, [patient_id], page=page, limit=limit)
    return _report_list(reports, info)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportResponse:
    return ReportResponse.model_validate(ReportService.get_report_for_user(db, current_user, report_id))


@router.put("/{report_id}/status", response_model=ReportResponse)
async def review_report(
    report_id: int,
    request: ReviewRequest,
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> ReportResponse:
    """Record the clinical review of a report."""
    report = ReportService.get_report_for_user(db, current_user, report_id)
    updated = ReportService.review_report(db, report, current_user.user_id, request.status, request.review_notes)
    return ReportResponse.model_validate(updated)


@router.delete("/{report_id}", response_model=MessageResponse)
async def delete_report(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> MessageResponse:
    """Delete a report and its stored file."""
    report = ReportService.get_report_for_user(db, current_user, report_id)
    file_path = ReportService.delete_report(db, report)
    await delete_file(file_path)
    return MessageResponse(message="Report deleted successfully")


@router.get("/{report_id}/ai-status", response_model=AnalysisStatusResponse)
async def get_ai_status(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> AnalysisStatusResponse:
    report = ReportService.get_report_for_user(db, current_user, report_id)
    return AnalysisStatusResponse(**get_analysis_status(report))


@router.post("/{report_id}/ai-retry", response_model=AnalysisRetryResponse)
async def retry_ai_analysis(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    queue: TaskQueue = Depends(get_task_queue)
) -> AnalysisRetryResponse:
    """Re-run a failed AI analysis. Rejected unless the analysis has failed."""
    report = ReportService.get_report_for_user(db, current_user, report_id)
    try:
        task = ReportAnalysisService.retry_analysis(db, queue, report)
    except AnalysisRetryRejectedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return AnalysisRetryResponse(
        message="AI analysis retry started",
        task=TaskResponse.model_validate(task),
        analysis=AnalysisStatusResponse(**get_analysis_status(report)),
    )


@router.get("/{report_id}/download")
async def download_report(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> FileResponse:
    report = ReportService.get_report_for_user(db, current_user, report_id)
    return _stored_file_response(report, "attachment")


@router.get("/{report_id}/view")
async def view_report(
    report_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> FileResponse:
    """Stream the stored file inline with its recorded MIME type."""
    report = ReportService.get_report_for_user(db, current_user, report_id)
    return _stored_file_response(report, "inline")
