"""
Health data model.

Wearable-style measurements grouped by kind. Each group is a free-form
JSON object so devices can report the fields they have.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import Integer, TIMESTAMP, ForeignKey, String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.base import JSONType

HEALTH_DATA_GROUPS = (
    "body_measurements",
    "vitals",
    "blood_pressure",
    "activity",
    "sleep",
    "mindfulness",
    "menstrual_cycle",
    "environmental",
    "electrocardiogram",
)


class HealthData(Base):
    """One health data reading for a user."""

    __tablename__ = "health_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    measured_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    body_measurements: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    vitals: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    blood_pressure: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    activity: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    sleep: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    mindfulness: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    menstrual_cycle: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    environmental: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    electrocardiogram: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_health_data_user_measured", "user_id", "measured_at"),
    )
