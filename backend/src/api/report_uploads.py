"""
Progress-tracked report upload endpoints.

Clients initialize an upload, send the file, then poll ``/progress`` until
the upload completes and ``ai-status`` style fields show the analysis
outcome.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.dependencies import get_task_queue
from api.responses import (
    AnalysisRetryResponse,
    AnalysisStatusResponse,
    MessageResponse,
    PaginationResponse,
    ReportUploadListResponse,
    ReportUploadResponse,
    StatsResponse,
    TaskResponse,
)
from auth.dependencies import UserContext, get_current_user, require_caregiver_or_admin
from auth.permissions import accessible_patient_ids, ensure_patient_access
from core.constants import DEFAULT_PAGE_SIZE
from core.database import get_db
from models.report import ReportType
from models.report_upload import ReportUpload, UploadCategory
from services.report_analysis_service import (
    AnalysisRetryRejectedError,
    ReportAnalysisService,
    get_analysis_status,
)
from services.report_upload_service import ReportUploadService
from services.task_queue import TaskQueue
from services.user_service import UserService
from utils.file_storage import delete_file
from utils.query_helpers import PageInfo

logger = logging.getLogger(__name__)

router = APIRouter()


class InitializeUploadRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    report_type: ReportType = ReportType.OTHER
    tags: List[str] = Field(default_factory=list)
    category: UploadCategory = UploadCategory.MEDICAL
    patient_id: Optional[int] = None


class UploadProgressResponse(BaseModel):
    upload_id: int
    upload_status: str
    upload_progress: int
    error_message: Optional[str] = None
    retry_count: int
    max_retries: int
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    processing_duration_ms: Optional[int] = None
    analysis: AnalysisStatusResponse


def _progress(upload: ReportUpload) -> UploadProgressResponse:
    return UploadProgressResponse(
        upload_id=upload.id,
        upload_status=upload.upload_status,
        upload_progress=upload.upload_progress,
        error_message=upload.error_message,
        retry_count=upload.retry_count,
        max_retries=upload.max_retries,
        processing_started_at=upload.processing_started_at,
        processing_completed_at=upload.processing_completed_at,
        processing_duration_ms=upload.processing_duration_ms,
        analysis=AnalysisStatusResponse(**get_analysis_status(upload)),
    )


def _upload_list(uploads: List[ReportUpload], info: PageInfo) -> ReportUploadListResponse:
    return ReportUploadListResponse(
        uploads=[ReportUploadResponse.model_validate(upload) for upload in uploads],
        pagination=PaginationResponse.from_page_info(info),
    )


@router.post("/initialize", response_model=ReportUploadResponse, status_code=status.HTTP_201_CREATED)
async def initialize_upload(
    request: InitializeUploadRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportUploadResponse:
    """Create an upload record in ``uploading`` state with progress 0."""
    patient_id, caregiver_id = UserService.resolve_report_owner(db, current_user, request.patient_id)
    upload = ReportUploadService.initialize_upload(
        db,
        current_user,
        patient_id=patient_id,
        caregiver_id=caregiver_id,
        title=request.title,
        description=request.description,
        report_type=request.report_type.value,
        category=request.category.value,
        tags=request.tags,
    )
    return ReportUploadResponse.model_validate(upload)


@router.get("/my-uploads", response_model=ReportUploadListResponse)
async def list_my_uploads(
    upload_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportUploadListResponse:
    if current_user.is_patient():
        uploads, info = ReportUploadService.list_uploads(
            db, [current_user.user_id], upload_status, page=page, limit=limit
        )
    else:
        uploads, info = ReportUploadService.list_uploads(
            db, None, upload_status, uploaded_by_user_id=current_user.user_id, page=page, limit=limit
        )
    return _upload_list(uploads, info)


@router.get("/all-uploads", response_model=ReportUploadListResponse)
async def list_all_uploads(
    patient_id: Optional[int] = None,
    upload_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> ReportUploadListResponse:
    """Uploads of every patient the caller monitors."""
    if patient_id is not None:
        ensure_patient_access(db, current_user, patient_id)
        patient_ids: Optional[List[int]] = [patient_id]
    else:
        patient_ids = accessible_patient_ids(db, current_user)
    uploads, info = ReportUploadService.list_uploads(db, patient_ids, upload_status, page=page, limit=limit)
    return _upload_list(uploads, info)


@router.get("/stats/overview", response_model=StatsResponse)
async def get_upload_stats(
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> StatsResponse:
    stats = ReportUploadService.upload_stats(db, accessible_patient_ids(db, current_user))
    return StatsResponse(**stats)


@router.post("/{upload_id}/upload", response_model=ReportUploadResponse)
async def upload_file(
    upload_id: int,
    report: UploadFile = File(...),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    queue: TaskQueue = Depends(get_task_queue)
) -> ReportUploadResponse:
    """
    Send the file for an initialized upload.

    Returns with progress 50 and status ``processing``; completion happens
    in the background after a short processing delay.
    """
    upload = ReportUploadService.get_upload_for_user(db, current_user, upload_id)
    updated = await ReportUploadService.attach_upload_file(db, queue, upload, report)
    return ReportUploadResponse.model_validate(updated)


@router.get("/{upload_id}/progress", response_model=UploadProgressResponse)
async def get_upload_progress(
    upload_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> UploadProgressResponse:
    return _progress(ReportUploadService.get_upload_for_user(db, current_user, upload_id))


@router.post("/{upload_id}/retry", response_model=ReportUploadResponse)
async def retry_upload(
    upload_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReportUploadResponse:
    """Restart a failed upload; the client then sends the file again."""
    upload = ReportUploadService.get_upload_for_user(db, current_user, upload_id)
    updated = await ReportUploadService.retry_upload(db, upload)
    return ReportUploadResponse.model_validate(updated)


@router.post("/{upload_id}/ai-retry", response_model=AnalysisRetryResponse)
async def retry_upload_analysis(
    upload_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
    queue: TaskQueue = Depends(get_task_queue)
) -> AnalysisRetryResponse:
    upload = ReportUploadService.get_upload_for_user(db, current_user, upload_id)
    try:
        task = ReportAnalysisService.retry_analysis(db, queue, upload)
    except AnalysisRetryRejectedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return AnalysisRetryResponse(
        message="AI analysis retry started",
        task=TaskResponse.model_validate(task),
        analysis=AnalysisStatusResponse(**get_analysis_status(upload)),
    )


@router.delete("/{upload_id}", response_model=MessageResponse)
async def delete_upload(
    upload_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> MessageResponse:
    upload = ReportUploadService.get_upload_for_user(db, current_user, upload_id)
    file_path = ReportUploadService.delete_upload(db, upload)
    await delete_file(file_path)
    return MessageResponse(message="Upload deleted successfully")
