"""
AI analysis fields shared by reports and report uploads.

The analysis lifecycle (pending -> processing -> completed | failed) is
independent of the upload lifecycle and of the clinical review status.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlalchemy import String, Text, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column


class AnalysisStatus(str, Enum):
    """Status of the AI explanation attached to a stored report file."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AIAnalysisMixin:
    """Columns written by the analysis worker and the AI retry path."""

    ai_analysis_status: Mapped[str] = mapped_column(
        String(20), default=AnalysisStatus.PENDING.value, nullable=False
    )
    ai_describe: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_analysis_date: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    # Identity of the task allowed to write the result; a retry replaces it
    ai_task_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
