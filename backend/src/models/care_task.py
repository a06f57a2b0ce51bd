"""
Care task model.

Dated to-do items on a user's care calendar (medication, appointments,
exercises).
"""

from datetime import date, datetime
from typing import Optional
from sqlalchemy import String, Integer, Boolean, Date, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class CareTask(Base):
    """Calendar task created by a patient or caregiver."""

    __tablename__ = "care_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    created_by_user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_care_tasks_owner_date", "created_by_user_id", "due_date"),
    )
