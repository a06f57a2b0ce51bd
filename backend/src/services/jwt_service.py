"""
JWT Service for access tokens and password hashing.

Provides token creation and validation for bearer authentication, and
bcrypt hashing for account passwords.
"""

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from pydantic import BaseModel

from core.config import JWT_SECRET_KEY, JWT_ACCESS_TOKEN_EXPIRE_MINUTES


class TokenPayload(BaseModel):
    """Payload structure for JWT tokens."""
    sub: str  # User id as string
    user_id: int
    email: str
    role: str  # "patient", "caregiver" or "admin"
    name: str
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class JWTService:
    """Service for JWT token operations."""

    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    @classmethod
    def create_access_token(cls, payload: TokenPayload) -> str:
        """Create a JWT access token."""
        to_encode = payload.model_dump()
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode.update({"exp": expire, "iat": now})
        return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a JWT token."""
        try:
            payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[cls.ALGORITHM])
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    @classmethod
    def create_token_response(cls, payload: TokenPayload) -> Dict[str, Any]:
        """Create an access token with its expiry metadata."""
        access_token = cls.create_access_token(payload)
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES)
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": cls.ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # seconds
            "expires_at": int(expires_at.timestamp()),
        }

    @staticmethod
    def _prehash(password: str) -> bytes:
        # SHA-256 first so long passwords stay within bcrypt's 72-byte limit
        return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())

    @classmethod
    def hash_password(cls, password: str) -> str:
        """Hash a password with bcrypt."""
        hashed = bcrypt.hashpw(cls._prehash(password), bcrypt.gensalt())
        return hashed.decode("utf-8")

    @classmethod
    def verify_password(cls, password: str, hashed_password: str) -> bool:
        """Check a password against its bcrypt hash."""
        try:
            return bcrypt.checkpw(cls._prehash(password), hashed_password.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False


# Global instance
jwt_service = JWTService()
