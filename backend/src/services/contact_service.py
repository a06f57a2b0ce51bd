"""
Contact form service.

Stores public contact submissions and supports the admin triage flow:
filtered listing, status/priority updates with internal notes, and
per-status, per-category and per-priority counts.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Contact, User
from models.contact import ContactCategory, ContactPriority, ContactStatus
from utils.datetime_utils import utc_now
from utils.query_helpers import PageInfo, paginate

logger = logging.getLogger(__name__)


class ContactService:
    """Service class for contact form submissions."""

    @staticmethod
    def submit(
        db: Session,
        name: str,
        email: str,
        subject: str,
        message: str,
        phone: Optional[str] = None,
        category: str = ContactCategory.GENERAL.value,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Contact:
        contact = Contact(
            name=name.strip(),
            email=email.strip().lower(),
            phone=phone,
            subject=subject.strip(),
            message=message.strip(),
            category=category,
            status=ContactStatus.PENDING.value,
            priority=ContactPriority.MEDIUM.value,
            notes=[],
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        db.add(contact)
        db.commit()
        db.refresh(contact)
        logger.info(f"Contact message {contact.id} received ({contact.category})")
        return contact

    @staticmethod
    def get_contact(db: Session, contact_id: int) -> Contact:
        contact = db.get(Contact, contact_id)
        if not contact:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact submission not found")
        return contact

    @staticmethod
    def list_contacts(
        db: Session,
        contact_status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Contact], PageInfo]:
        query = db.query(Contact)
        if contact_status:
            query = query.filter(Contact.status == contact_status)
        if category:
            query = query.filter(Contact.category == category)
        if priority:
            query = query.filter(Contact.priority == priority)
        return paginate(query.order_by(Contact.created_at.desc(), Contact.id.desc()), page, limit)

    @staticmethod
    def update_contact(
        db: Session,
        contact_id: int,
        updated_by_user_id: int,
        contact_status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_user_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Contact:
        """
        Change triage fields and optionally append an internal note.

        Raises:
            HTTPException: 404 if the submission does not exist, 400 if
                the assignee is not a known user.
        """
        contact = ContactService.get_contact(db, contact_id)

        if contact_status:
            contact.status = contact_status
        if priority:
            contact.priority = priority
        if assigned_to_user_id is not None:
            if db.get(User, assigned_to_user_id) is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assigned user not found")
            contact.assigned_to_user_id = assigned_to_user_id
        if note:
            # Reassign so the JSON column is flagged as modified
            contact.notes = list(contact.notes or []) + [{
                "content": note.strip(),
                "created_by_user_id": updated_by_user_id,
                "created_at": utc_now().isoformat(),
            }]

        db.commit()
        db.refresh(contact)
        logger.info(f"Contact message {contact.id} updated by user {updated_by_user_id}")
        return contact

    @staticmethod
    def delete_contact(db: Session, contact_id: int) -> None:
        contact = ContactService.get_contact(db, contact_id)
        db.delete(contact)
        db.commit()

    @staticmethod
    def contact_stats(db: Session) -> Dict[str, Any]:
        """Totals by status, category and priority (every enum value present)."""

        def counts(column: Any, values: List[str]) -> Dict[str, int]:
            result = {value: 0 for value in values}
            for value, count in db.query(column, func.count(Contact.id)).group_by(column).all():
                result[value] = int(count)
            return result

        by_status = counts(Contact.status, [s.value for s in ContactStatus])
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_category": counts(Contact.category, [c.value for c in ContactCategory]),
            "by_priority": counts(Contact.priority, [p.value for p in ContactPriority]),
        }
