"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from utils.query_helpers import PageInfo


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    success: bool = True
    message: str


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def from_page_info(cls, info: PageInfo) -> "PaginationResponse":
        return cls(
            current_page=info.current_page,
            total_pages=info.total_pages,
            total_items=info.total_items,
            items_per_page=info.items_per_page,
        )


class UserResponse(BaseModel):
    """Response model for user information."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    role: str
    caregiver_id: Optional[int] = None
    is_active: bool
    created_at: datetime


class AnalysisStatusResponse(BaseModel):
    """Polling view of a record's AI analysis."""
    status: str
    date: Optional[datetime] = None
    has_description: bool
    description: Optional[str] = None
    task_id: Optional[str] = None


class ReportResponse(BaseModel):
    """Response model for a report."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    caregiver_id: Optional[int] = None
    uploaded_by_user_id: int
    title: str
    description: Optional[str] = None
    report_type: str
    tags: List[Any]
    is_public: bool
    original_filename: str
    size_bytes: int
    content_type: str
    status: str
    reviewed_by_user_id: Optional[int] = None
    review_notes: Optional[str] = None
    review_date: Optional[datetime] = None
    ai_analysis_status: str
    ai_describe: Optional[str] = None
    ai_analysis_date: Optional[datetime] = None
    ai_task_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class ReportListResponse(BaseModel):
    reports: List[ReportResponse]
    pagination: PaginationResponse


class ReportUploadResponse(BaseModel):
    """Response model for a progress-tracked upload."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    caregiver_id: Optional[int] = None
    uploaded_by_user_id: int
    title: str
    description: Optional[str] = None
    report_type: str
    category: str
    tags: List[Any]
    original_filename: Optional[str] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None
    is_valid_file: bool
    upload_status: str
    upload_progress: int
    error_message: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    processing_duration_ms: Optional[int] = None
    retry_count: int
    max_retries: int
    ai_analysis_status: str
    ai_describe: Optional[str] = None
    ai_analysis_date: Optional[datetime] = None
    ai_task_id: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class ReportUploadListResponse(BaseModel):
    uploads: List[ReportUploadResponse]
    pagination: PaginationResponse


class TaskResponse(BaseModel):
    """Response model for a background task."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_type: str
    record_id: int
    status: str
    attempts: int
    last_error: Optional[str] = None
    run_after: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime


class AnalysisRetryResponse(BaseModel):
    success: bool = True
    message: str
    task: TaskResponse
    analysis: AnalysisStatusResponse


class StatsResponse(BaseModel):
    by_status: Dict[str, Dict[str, int]]
    total_uploads: int
    total_size_bytes: int
