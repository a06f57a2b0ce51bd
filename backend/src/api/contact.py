"""
Contact form endpoints.

Submission is public; reading and triaging submissions is admin only.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.auth import EMAIL_PATTERN
from api.responses import MessageResponse, PaginationResponse
from auth.dependencies import UserContext, require_admin
from core.constants import DEFAULT_PAGE_SIZE
from core.database import get_db
from models.contact import ContactCategory, ContactPriority, ContactStatus
from services.contact_service import ContactService

router = APIRouter()

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


class ContactSubmitRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    subject: str = Field(min_length=5, max_length=200)
    message: str = Field(min_length=10, max_length=2000)
    category: ContactCategory = ContactCategory.GENERAL


class ContactSubmitResponse(BaseModel):
    success: bool = True
    message: str
    contact_id: int


class ContactUpdateRequest(BaseModel):
    status: Optional[ContactStatus] = None
    priority: Optional[ContactPriority] = None
    assigned_to_user_id: Optional[int] = None
    note: Optional[str] = Field(default=None, min_length=1, max_length=500)


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    category: str
    status: str
    priority: str
    assigned_to_user_id: Optional[int] = None
    notes: List[Dict[str, Any]]
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class ContactListResponse(BaseModel):
    contacts: List[ContactResponse]
    pagination: PaginationResponse


class ContactStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_category: Dict[str, int]
    by_priority: Dict[str, int]


@router.post("", response_model=ContactSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact(
    payload: ContactSubmitRequest,
    request: Request,
    db: Session = Depends(get_db)
) -> ContactSubmitResponse:
    """Public contact form."""
    contact = ContactService.submit(
        db,
        name=payload.name,
        email=payload.email,
        subject=payload.subject,
        message=payload.message,
        phone=payload.phone,
        category=payload.category.value,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return ContactSubmitResponse(
        message="Thank you for your message. We will get back to you soon!",
        contact_id=contact.id,
    )


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    status_filter: Optional[ContactStatus] = Query(None, alias="status"),
    category: Optional[ContactCategory] = Query(None),
    priority: Optional[ContactPriority] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    _: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ContactListResponse:
    contacts, info = ContactService.list_contacts(
        db,
        contact_status=status_filter.value if status_filter else None,
        category=category.value if category else None,
        priority=priority.value if priority else None,
        page=page,
        limit=limit,
    )
    return ContactListResponse(
        contacts=[ContactResponse.model_validate(contact) for contact in contacts],
        pagination=PaginationResponse.from_page_info(info),
    )


@router.get("/stats", response_model=ContactStatsResponse)
async def get_contact_stats(
    _: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ContactStatsResponse:
    return ContactStatsResponse(**ContactService.contact_stats(db))


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: int,
    _: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ContactResponse:
    return ContactResponse.model_validate(ContactService.get_contact(db, contact_id))


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    payload: ContactUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ContactResponse:
    """Update status, priority or assignee and optionally add a note."""
    contact = ContactService.update_contact(
        db,
        contact_id,
        current_user.user_id,
        contact_status=payload.status.value if payload.status else None,
        priority=payload.priority.value if payload.priority else None,
        assigned_to_user_id=payload.assigned_to_user_id,
        note=payload.note,
    )
    return ContactResponse.model_validate(contact)


@router.delete("/{contact_id}", response_model=MessageResponse)
async def delete_contact(
    contact_id: int,
    _: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> MessageResponse:
    ContactService.delete_contact(db, contact_id)
    return MessageResponse(message="Contact deleted successfully")
