# pyright: reportMissingTypeStubs=false
"""
Patient data access rules.

- Admins can access every patient.
- Patients can access their own data.
- Caregivers can access the patients assigned to them.

Failures always use the same generic message so callers cannot tell
which records exist.
"""

from typing import List, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user
from core.constants import ROLE_PATIENT
from core.database import get_db
from models import User

NOT_AUTHORIZED = "Not authorized"


def can_access_patient(db: Session, user: UserContext, patient_id: int) -> bool:
    """Whether ``user`` may read or write data owned by ``patient_id``."""
    if user.is_admin():
        return True
    if user.is_patient():
        return user.user_id == patient_id
    if user.is_caregiver():
        return db.query(User.id).filter(
            User.id == patient_id,
            User.role == ROLE_PATIENT,
            User.caregiver_id == user.user_id,
        ).first() is not None
    return False


def ensure_patient_access(db: Session, user: UserContext, patient_id: int) -> None:
    """Raise 403 unless ``user`` may access ``patient_id``'s data."""
    if not can_access_patient(db, user, patient_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=NOT_AUTHORIZED
        )


def accessible_patient_ids(db: Session, user: UserContext) -> Optional[List[int]]:
    """
    Patient ids visible to ``user``.

    Returns:
        None for admins (no restriction), otherwise the list of ids.
    """
    if user.is_admin():
        return None
    if user.is_patient():
        return [user.user_id]
    if user.is_caregiver():
        rows = db.query(User.id).filter(
            User.role == ROLE_PATIENT,
            User.caregiver_id == user.user_id,
        ).all()
        return [row[0] for row in rows]
    return []


def require_patient_access():
    """
    Dependency that ensures the caller may access the ``patient_id`` path parameter.

    Returns:
        Dependency function that can be used with FastAPI Depends()
    """
    def dependency(
        patient_id: int,
        current_user: UserContext = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> UserContext:
        ensure_patient_access(db, current_user, patient_id)
        return current_user

    return dependency
