"""
Patient status model.

Point-in-time snapshot of a patient's condition recorded by the patient or
their caregiver.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy import String, Integer, TIMESTAMP, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.base import JSONType


class ConditionStatus(str, Enum):
    STABLE = "stable"
    IMPROVING = "improving"
    DECLINING = "declining"
    CRITICAL = "critical"


class PatientStatus(Base):
    """Status snapshot for a patient."""

    __tablename__ = "patient_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recorded_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # {"blood_pressure": {"systolic": 120, "diastolic": 80, "unit": "mmHg"}, "heart_rate": {...}, ...}
    vital_signs: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    health_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    symptoms: Mapped[List[Any]] = mapped_column(JSONType, default=list, nullable=False)
    medication_status: Mapped[List[Any]] = mapped_column(JSONType, default=list, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ConditionStatus.STABLE.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    patient = relationship("User", foreign_keys=[patient_id])

    __table_args__ = (
        Index("idx_patient_statuses_patient_created", "patient_id", "created_at"),
    )
