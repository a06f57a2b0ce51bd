"""
Inline AI analysis endpoints.

The uploaded file is analyzed within the request and never attached to a
record: it is stored in the upload directory for the duration of the model
call and removed afterwards, whether or not the call succeeds.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel

from api.dependencies import get_report_analyzer
from auth.dependencies import UserContext, get_current_user
from core.constants import (
    ALLOWED_INLINE_ANALYSIS_CONTENT_TYPES,
    MAX_INLINE_ANALYSIS_SIZE_BYTES,
    REPORT_FILE_FIELD,
)
from services.report_analyzer import (
    ExtractedMedicalInformation,
    MalformedResponseError,
    PatientContext,
    ReportAnalysisError,
    ReportAnalyzer,
    ReportFileError,
)
from utils.datetime_utils import utc_now
from utils.file_storage import FileValidationError, delete_file, save_upload_file, validate_report_file

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


class AnalysisResponse(BaseModel):
    success: bool = True
    analysis: str
    model: str
    total_tokens: Optional[int] = None
    timestamp: datetime


class ContextAnalysisResponse(AnalysisResponse):
    patient_context: PatientContext


class ExtractionResponse(BaseModel):
    success: bool = True
    extracted_data: ExtractedMedicalInformation
    information_types: List[str]
    model: str
    total_tokens: Optional[int] = None
    timestamp: datetime


def _analysis_error_status(error: ReportAnalysisError) -> int:
    if isinstance(error, ReportFileError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, MalformedResponseError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


async def _analyze_upload(upload_file: UploadFile, call: Callable[[str], T]) -> T:
    """Validate and store ``upload_file``, run ``call`` on its path, then remove it."""
    try:
        validate_report_file(
            upload_file.content_type,
            upload_file.size,
            allowed_types=ALLOWED_INLINE_ANALYSIS_CONTENT_TYPES,
            max_size_bytes=MAX_INLINE_ANALYSIS_SIZE_BYTES,
        )
        stored = await save_upload_file(upload_file, REPORT_FILE_FIELD, MAX_INLINE_ANALYSIS_SIZE_BYTES)
    except FileValidationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    try:
        return await asyncio.to_thread(call, stored.path)
    except ReportAnalysisError as e:
        logger.warning(f"Inline analysis of {upload_file.filename} failed: {e.message}")
        raise HTTPException(status_code=_analysis_error_status(e), detail=e.message)
    finally:
        await delete_file(stored.path)


def parse_information_types(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    items = [item.strip().lower() for item in value.split(",") if item.strip()]
    return items or None


@router.post("/analyze-report", response_model=AnalysisResponse)
async def analyze_report(
    report: UploadFile = File(...),
    _: UserContext = Depends(get_current_user),
    analyzer: ReportAnalyzer = Depends(get_report_analyzer)
) -> AnalysisResponse:
    """Patient-friendly explanation of an image or PDF report."""
    result = await _analyze_upload(report, analyzer.analyze)
    return AnalysisResponse(
        analysis=result.explanation,
        model=result.model,
        total_tokens=result.total_tokens,
        timestamp=utc_now(),
    )


@router.post("/analyze-report-with-context", response_model=ContextAnalysisResponse)
async def analyze_report_with_context(
    report: UploadFile = File(...),
    age: Optional[int] = Form(None, ge=0, le=150),
    gender: Optional[str] = Form(None),
    medical_history: Optional[str] = Form(None),
    _: UserContext = Depends(get_current_user),
    analyzer: ReportAnalyzer = Depends(get_report_analyzer)
) -> ContextAnalysisResponse:
    context = PatientContext(age=age, gender=gender, medical_history=medical_history)

    def call(path: str) -> Any:
        return analyzer.analyze_with_context(path, context)

    result = await _analyze_upload(report, call)
    return ContextAnalysisResponse(
        analysis=result.explanation,
        model=result.model,
        total_tokens=result.total_tokens,
        timestamp=utc_now(),
        patient_context=context,
    )


@router.post("/extract-information", response_model=ExtractionResponse)
async def extract_information(
    report: UploadFile = File(...),
    information_types: Optional[str] = Form(None),
    _: UserContext = Depends(get_current_user),
    analyzer: ReportAnalyzer = Depends(get_report_analyzer)
) -> ExtractionResponse:
    """
    Structured extraction (vitals, medications, diagnoses, recommendations,
    abnormal values, summary).

    A model answer that is not the requested JSON object is a 422, never a
    partially filled result.
    """
    types = parse_information_types(information_types)

    def call(path: str) -> Any:
        return analyzer.extract_information(path, types)

    result = await _analyze_upload(report, call)
    return ExtractionResponse(
        extracted_data=result.data,
        information_types=result.information_types,
        model=result.model,
        total_tokens=result.total_tokens,
        timestamp=utc_now(),
    )
