# pyright: reportMissingTypeStubs=false
"""
Authentication API endpoints.

Handles registration, password login, the current user's profile and the
admin user listing.
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import MessageResponse, UserResponse
from auth.dependencies import UserContext, get_current_user, require_admin
from core.database import get_db
from models import User
from services.jwt_service import TokenPayload, jwt_service
from services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str
    phone: Optional[str] = Field(default=None, max_length=50)
    role: Literal["patient", "caregiver"] = "patient"
    caregiver_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str


class AuthResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str
    expires_in: int
    expires_at: int
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


def _auth_response(user: User) -> AuthResponse:
    payload = TokenPayload(
        sub=str(user.id),
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.full_name,
    )
    token = jwt_service.create_token_response(payload)
    return AuthResponse(user=UserResponse.model_validate(user), **token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Register a patient or caregiver account and log it in."""
    user = UserService.register(
        db,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        role=request.role,
        phone=request.phone,
        caregiver_email=request.caregiver_email,
    )
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Exchange email and password for an access token."""
    user = UserService.authenticate(db, request.email, request.password)
    logger.info(f"User {user.id} logged in")
    return _auth_response(user)


@router.post("/admin-login", response_model=AuthResponse)
async def admin_login(request: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Login for the admin console; rejects valid non-admin credentials."""
    user = UserService.authenticate(db, request.email, request.password)
    if not user.is_admin():
        logger.warning(f"Non-admin user {user.id} attempted admin login")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    logger.info(f"Admin {user.id} logged in")
    return _auth_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> UserResponse:
    return UserResponse.model_validate(UserService.get_user(db, current_user.user_id))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> UserResponse:
    user = UserService.update_profile(
        db,
        current_user.user_id,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )
    return UserResponse.model_validate(user)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> MessageResponse:
    UserService.change_password(db, current_user.user_id, request.current_password, request.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = None,
    _: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[UserResponse]:
    """List all users (admin only)."""
    return [UserResponse.model_validate(user) for user in UserService.list_users(db, role)]
