"""
Caregiver patient management endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.auth import EMAIL_PATTERN
from api.responses import UserResponse
from auth.dependencies import UserContext, require_caregiver
from core.database import get_db
from services.user_service import UserService

router = APIRouter()


class AssignPatientRequest(BaseModel):
    patient_email: str = Field(pattern=EMAIL_PATTERN, max_length=255)


@router.get("/my-patients", response_model=List[UserResponse])
async def list_my_patients(
    current_user: UserContext = Depends(require_caregiver),
    db: Session = Depends(get_db)
) -> List[UserResponse]:
    """Patients assigned to the calling caregiver."""
    patients = UserService.list_caregiver_patients(db, current_user.user_id)
    return [UserResponse.model_validate(patient) for patient in patients]


@router.post("/my-patients", response_model=UserResponse)
async def assign_patient(
    request: AssignPatientRequest,
    current_user: UserContext = Depends(require_caregiver),
    db: Session = Depends(get_db)
) -> UserResponse:
    """Link an unassigned patient to the calling caregiver."""
    patient = UserService.assign_patient(db, current_user.user_id, request.patient_email)
    return UserResponse.model_validate(patient)
