"""
User model for patients, caregivers and administrators.

A single table holds every account. Patients may be linked to one
caregiver through ``caregiver_id``; caregivers monitor the patients that
point at them.
"""

from typing import List, Optional
from datetime import datetime
from sqlalchemy import String, Boolean, Integer, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ROLE_ADMIN, ROLE_CAREGIVER, ROLE_PATIENT
from core.database import Base


class User(Base):
    """Account for every role in the system."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Authentication
    email: Mapped[str] = mapped_column(String(255), unique=True)
    hashed_password: Mapped[str] = mapped_column(String(255))

    # Profile
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_PATIENT)  # patient, caregiver, admin
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Patients only: the caregiver monitoring this patient
    caregiver_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Metadata
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    caregiver: Mapped[Optional["User"]] = relationship(
        "User", remote_side=[id], back_populates="patients"
    )
    patients: Mapped[List["User"]] = relationship("User", back_populates="caregiver")

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_caregiver", "caregiver_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    def is_caregiver(self) -> bool:
        return self.role == ROLE_CAREGIVER

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
