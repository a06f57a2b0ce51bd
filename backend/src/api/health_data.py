"""
Health data endpoints for wearable-style readings.
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
from services.patient_monitoring_service import PatientMonitoringService

router = APIRouter()


class HealthDataUpdateRequest(BaseModel):
    measured_at: Optional[datetime] = None
    source: Optional[str] = Field(default=None, max_length=100)
    body_measurements: Dict[str, Any] = Field(default_factory=dict)
    vitals: Dict[str, Any] = Field(default_factory=dict)
    blood_pressure: Dict[str, Any] = Field(default_factory=dict)
    activity: Dict[str, Any] = Field(default_factory=dict)
    sleep: Dict[str, Any] = Field(default_factory=dict)
    mindfulness: Dict[str, Any] = Field(default_factory=dict)
    menstrual_cycle: Dict[str, Any] = Field(default_factory=dict)
    environmental: Dict[str, Any] = Field(default_factory=dict)
    electrocardiogram: Dict[str, Any] = Field(default_factory=dict)


class HealthDataResponse(HealthDataUpdateRequest):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    measured_at: datetime
    created_at: datetime


class HealthDataHistoryResponse(BaseModel):
    readings: List[HealthDataResponse]
    pagination: PaginationResponse


class PatientWithHealthDataResponse(BaseModel):
    patient: UserResponse
    latest_health_data: Optional[HealthDataResponse] = None


@router.put("/update/{patient_id}", response_model=HealthDataResponse)
async def update_health_data(
    patient_id: int,
    request: HealthDataUpdateRequest,
    _: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> HealthDataResponse:
    """Store a health data reading; ``measured_at`` defaults to now."""
    entry = PatientMonitoringService.record_health_data(db, patient_id, request.model_dump())
    return HealthDataResponse.model_validate(entry)


@router.get("/latest/{patient_id}", response_model=HealthDataResponse)
async def get_latest_health_data(
    patient_id: int,
    _: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> HealthDataResponse:
    entry = PatientMonitoringService.latest_health_data(db, patient_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No health data recorded")
    return HealthDataResponse.model_validate(entry)


@router.get("/history/{patient_id}", response_model=HealthDataHistoryResponse)
async def get_health_data_history(
    patient_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    _: UserContext = Depends(require_patient_access()),
    db: Session = Depends(get_db)
) -> HealthDataHistoryResponse:
    entries, info = PatientMonitoringService.health_data_history(db, patient_id, page, limit)
    return HealthDataHistoryResponse(
        readings=[HealthDataResponse.model_validate(entry) for entry in entries],
        pagination=PaginationResponse.from_page_info(info),
    )


@router.get("/all-patients", response_model=List[PatientWithHealthDataResponse])
async def list_patients_with_health_data(
    current_user: UserContext = Depends(require_caregiver_or_admin),
    db: Session = Depends(get_db)
) -> List[PatientWithHealthDataResponse]:
    rows = PatientMonitoringService.patients_with_latest_health_data(db, accessible_patient_ids(db, current_user))
    return [
        PatientWithHealthDataResponse(
            patient=UserResponse.model_validate(patient),
            latest_health_data=HealthDataResponse.model_validate(entry) if entry else None,
        )
        for patient, entry in rows
    ]
