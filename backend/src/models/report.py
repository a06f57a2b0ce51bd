"""
Report model.

A medical report uploaded in a single request (no progress tracking).
Clinical review status and AI analysis status are tracked separately.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from sqlalchemy import String, Integer, Boolean, BigInteger, TIMESTAMP, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.ai_analysis import AIAnalysisMixin
from models.base import JSONType


class ReportType(str, Enum):
    LAB_REPORT = "lab_report"
    IMAGING = "imaging"
    PRESCRIPTION = "prescription"
    DISCHARGE_SUMMARY = "discharge_summary"
    PROGRESS_NOTE = "progress_note"
    OTHER = "other"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class Report(AIAnalysisMixin, Base):
    """
    Medical report entity with its stored file and review state.
    """
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    caregiver_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_by_user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_type: Mapped[str] = mapped_column(String(50), default=ReportType.OTHER.value, nullable=False)
    tags: Mapped[List[Any]] = mapped_column(JSONType, default=list, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Stored file
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_filename: Mapped[str] = mapped_column(String(512), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Clinical review
    status: Mapped[str] = mapped_column(String(20), default=ReviewStatus.PENDING.value, nullable=False)
    reviewed_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    patient = relationship("User", foreign_keys=[patient_id])
    caregiver = relationship("User", foreign_keys=[caregiver_id])
    uploaded_by_user = relationship("User", foreign_keys=[uploaded_by_user_id])
    reviewed_by_user = relationship("User", foreign_keys=[reviewed_by_user_id])

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_reports_patient_created", "patient_id", "created_at"),
        Index("idx_reports_caregiver_created", "caregiver_id", "created_at"),
        Index("idx_reports_status", "status"),
        Index("idx_reports_ai_status", "ai_analysis_status"),
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, title='{self.title}', ai='{self.ai_analysis_status}')>"
