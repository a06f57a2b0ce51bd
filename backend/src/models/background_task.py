"""
Background task model.

Persisted record of a unit of deferred work (upload finalisation, report
analysis). The row is the source of truth; the in-process scheduler only
holds a pointer to it, so queued work survives a restart.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4
from sqlalchemy import String, Integer, TIMESTAMP, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.base import JSONType


class TaskStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def new_task_id() -> str:
    return uuid4().hex


class BackgroundTask(Base):
    """Deferred unit of work addressed by task id."""

    __tablename__ = "background_tasks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_task_id)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.QUEUED.value, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    run_after: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_background_tasks_status", "status"),
        Index("idx_background_tasks_record", "task_type", "record_id"),
    )

    def __repr__(self) -> str:
        return f"<BackgroundTask(id='{self.id}', type='{self.task_type}', status='{self.status}')>"
