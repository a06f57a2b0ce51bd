"""
User account service: registration, login, profile and caregiver links.
"""

import logging
import re
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from auth.dependencies import UserContext
from core.constants import MIN_PASSWORD_LENGTH, ROLE_CAREGIVER, ROLE_PATIENT, SELF_REGISTER_ROLES
from models import User
from services.jwt_service import jwt_service
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class PasswordPolicyError(ValueError):
    """Raised when a password does not meet the policy."""
    pass


def validate_password(password: str) -> None:
    """At least 8 characters with an uppercase letter, a lowercase letter and a digit."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[a-z]", password) or not re.search(r"[A-Z]", password) or not re.search(r"\d", password):
        raise PasswordPolicyError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )


class UserService:
    """Service class for user account operations."""

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def register(
        db: Session,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str = ROLE_PATIENT,
        phone: Optional[str] = None,
        caregiver_email: Optional[str] = None,
    ) -> User:
        """
        Create a patient or caregiver account.

        Raises:
            HTTPException: 400 if the email is taken, the role cannot
                self-register, or the named caregiver does not exist.
            PasswordPolicyError: If the password is too weak.
        """
        if role not in SELF_REGISTER_ROLES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
        validate_password(password)

        if UserService.get_by_email(db, email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User already exists with this email"
            )

        caregiver_id: Optional[int] = None
        if caregiver_email and role == ROLE_PATIENT:
            caregiver = UserService.get_by_email(db, caregiver_email)
            if not caregiver or caregiver.role != ROLE_CAREGIVER:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Caregiver not found"
                )
            caregiver_id = caregiver.id

        user = User(
            email=email.strip().lower(),
            hashed_password=jwt_service.hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            phone=phone,
            role=role,
            caregiver_id=caregiver_id,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Registered {role} user {user.id}")
        return user

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        """Check credentials; the same 401 is used for unknown email and bad password."""
        user = UserService.get_by_email(db, email)
        if not user or not jwt_service.verify_password(password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )
        user.last_login_at = utc_now()
        db.commit()
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    @staticmethod
    def update_profile(
        db: Session,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User:
        user = UserService.get_user(db, user_id)
        if first_name is not None:
            user.first_name = first_name.strip()
        if last_name is not None:
            user.last_name = last_name.strip()
        if phone is not None:
            user.phone = phone
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> None:
        user = UserService.get_user(db, user_id)
        if not jwt_service.verify_password(current_password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )
        validate_password(new_password)
        user.hashed_password = jwt_service.hash_password(new_password)
        db.commit()

    @staticmethod
    def list_users(db: Session, role: Optional[str] = None) -> List[User]:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.created_at.desc()).all()

    @staticmethod
    def list_caregiver_patients(db: Session, caregiver_id: int) -> List[User]:
        return db.query(User).filter(
            User.role == ROLE_PATIENT,
            User.caregiver_id == caregiver_id
        ).order_by(User.last_name, User.first_name).all()

    @staticmethod
    def assign_patient(db: Session, caregiver_id: int, patient_email: str) -> User:
        """
        Link an unassigned patient to a caregiver.

        Raises:
            HTTPException: 404 if no such patient, 400 if the patient
                already has a different caregiver.
        """
        patient = UserService.get_by_email(db, patient_email)
        if not patient or patient.role != ROLE_PATIENT:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
        if patient.caregiver_id and patient.caregiver_id != caregiver_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Patient is already assigned to another caregiver"
            )
        patient.caregiver_id = caregiver_id
        db.commit()
        db.refresh(patient)
        logger.info(f"Assigned patient {patient.id} to caregiver {caregiver_id}")
        return patient

    @staticmethod
    def resolve_report_owner(
        db: Session,
        user: UserContext,
        patient_id: Optional[int] = None,
    ) -> Tuple[int, Optional[int]]:
        """
        Work out whose report is being uploaded.

        Patients always upload for themselves. Caregivers and admins must
        name the patient, and caregivers only for their assigned patients.

        Returns:
            Tuple of (patient_id, caregiver_id)
        """
        if user.is_patient():
            if patient_id is not None and patient_id != user.user_id:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
            return user.user_id, user.caregiver_id

        if patient_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="patient_id is required"
            )
        patient = db.query(User).filter(User.id == patient_id, User.role == ROLE_PATIENT).first()
        if not patient:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
        if user.is_caregiver() and patient.caregiver_id != user.user_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        return patient.id, patient.caregiver_id
