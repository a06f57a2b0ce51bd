# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for user authentication and
role-based access control.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.constants import ROLE_ADMIN, ROLE_CAREGIVER, ROLE_PATIENT
from core.database import get_db
from services.jwt_service import jwt_service, TokenPayload
from models import User

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(
        self,
        user_id: int,
        email: str,
        role: str,
        name: str,
        caregiver_id: Optional[int] = None
    ):
        self.user_id = user_id
        self.email = email
        self.role = role  # "patient", "caregiver" or "admin"
        self.name = name
        self.caregiver_id = caregiver_id  # Patients only

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def is_caregiver(self) -> bool:
        return self.role == ROLE_CAREGIVER

    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    def __repr__(self) -> str:
        return f"UserContext(user_id={self.user_id}, email='{self.email}', role='{self.role}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None
    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    user = db.query(User).filter(
        User.id == payload.user_id,
        User.email == payload.email
    ).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )

    # Role comes from the database so demotions apply to existing tokens
    return UserContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.full_name,
        caregiver_id=user.caregiver_id
    )


# Role-based authorization dependencies
def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require admin role."""
    if not user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized"
        )
    return user


def require_caregiver_or_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require caregiver role (or admin)."""
    if not (user.is_caregiver() or user.is_admin()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized"
        )
    return user


def require_caregiver(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require caregiver role."""
    if not user.is_caregiver():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized"
        )
    return user
