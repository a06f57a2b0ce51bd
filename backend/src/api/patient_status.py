"""
Patient status endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.responses import PaginationResponse, UserResponse
from auth.dependencies import UserContext, require_caregiver_or_admin
from auth.permissions import accessible_patient_ids, require_patient_access
from core.constants import DEFAULT_PAGE_SIZE
from core.database import get_db
from models.patient_status import ConditionStatus
from services.patient_monitoring_service import PatientMonitoringService

router = APIRouter()


class PatientStatusUpdateRequest(BaseModel):
    vital_signs: Dict[str, Any] = Field(default_factory=dict)
    health_score: Optional[int] = Field(default=None, ge=0, le=100)
    symptoms: List[Any] = Field(default_factory=list)
    medication_status: List[Any] = Field(default_factory=list)
    notes: Optional[str] = None
    status: ConditionStatus = ConditionStatus.STABLE


class PatientStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    recorded_by_user_id: Optional[int] = None
    vital_signs: Dict[str, Any]
    health_score: Optional[int] = None
    symptoms: List[Any]
    medication_status: List[Any]
    notes: Optional[str] = None
    status: str
    created_at: datetime


class PatientStatusHistoryResponse(BaseModel):
    statuses: List[PatientStatusResponse]
    pagination: PaginationResponse


class PatientWithStatusResponse(BaseModel):
    patient: UserResponse
    latest_status: Optional[PatientStatusResponse] = None


@router.put("/update/{patient_id}", response_model=PatientStatusResponse)
async def update_patient_status(
    patient_id: int,
    request: PatientStatusUpdateRequest,
    current_user: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> PatientStatusResponse:
    """Record a new status snapshot for the patient."""
    values = request.model_dump()
    values["status"] = request.status.value
    entry = PatientMonitoringService.record_status(db, patient_id, current_user.user_id, values)
    return PatientStatusResponse.model_validate(entry)


@router.get("/latest/{patient_id}", response_model=PatientStatusResponse)
async def get_latest_status(
    patient_id: int,
    _: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> PatientStatusResponse:
    entry = PatientMonitoringService.latest_status(db, patient_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No status recorded")
    return PatientStatusResponse.model_validate(entry)


@router.get("/history/{patient_id}", response_model=PatientStatusHistoryResponse)
async def get_status_history(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    _: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> PatientStatusHistoryResponse:
    entries, info = PatientMonitoringService.status_history(db, patient_id, page, limit)
    return PatientStatusHistoryResponse(
        statuses=[PatientStatusResponse.model_validate(entry) for entry in entries],
        pagination=PaginationResponse.from_page_info(info),
    )


@router.get("/all-patients", response_model=List[PatientWithStatusResponse])
async def list_patients_with_status(
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> List[PatientWithStatusResponse]:
    """Every monitored patient with their most recent status."""
    rows = PatientMonitoringService.patients_with_latest_status(db, accessible_patient_ids(db, current_user))
    return [
        PatientWithStatusResponse(
            patient=UserResponse.model_validate(patient),
            latest_status=PatientStatusResponse.model_validate(entry) if entry else None,
        )
        for patient, entry in rows
    ]
