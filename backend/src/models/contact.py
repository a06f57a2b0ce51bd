"""
Contact message model.

Messages sent through the public contact form. Admins triage them by
status and priority and may attach internal notes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from sqlalchemy import String, Integer, TIMESTAMP, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.base import JSONType


class ContactCategory(str, Enum):
    GENERAL = "general"
    SUPPORT = "support"
    SALES = "sales"
    FEEDBACK = "feedback"
    COMPLAINT = "complaint"


class ContactStatus(str, Enum):
    PENDING = "pending"
    READ = "read"
    REPLIED = "replied"
    CLOSED = "closed"


class ContactPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Contact(Base):
    """Contact form submission."""

    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), default=ContactCategory.GENERAL.value, nullable=False)

    # Triage
    status: Mapped[str] = mapped_column(String(20), default=ContactStatus.PENDING.value, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default=ContactPriority.MEDIUM.value, nullable=False)
    assigned_to_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    # [{"content": "...", "created_by_user_id": 1, "created_at": "2026-10-19T08:00:00+00:00"}, ...]
    notes: Mapped[List[Any]] = mapped_column(JSONType, default=list, nullable=False)

    # Request metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    assigned_to_user = relationship("User", foreign_keys=[assigned_to_user_id])

    __table_args__ = (
        Index("idx_contacts_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, status='{self.status}', priority='{self.priority}')>"
