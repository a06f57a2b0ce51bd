"""
Query helper utilities for database operations.

Shared pagination and patient-scoping helpers for list endpoints.
"""

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.orm import Query

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

# Type variable for Query generic type
T = TypeVar('T')


@dataclass
class PageInfo:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


def paginate(query: Query[T], page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[List[T], PageInfo]:
    """
    Apply page/limit to a query.

    Args:
        query: Ordered SQLAlchemy query
        page: 1-based page number (values below 1 are treated as 1)
        limit: Items per page, capped at MAX_PAGE_SIZE

    Returns:
        Tuple of (items on the page, page info)
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, PageInfo(
        current_page=page,
        total_pages=math.ceil(total / limit) if total else 0,
        total_items=total,
        items_per_page=limit,
    )


def filter_by_patients(query: Query[T], column: Any, patient_ids: Optional[Sequence[int]]) -> Query[T]:
    """
    Restrict a query to the given patient ids.

    ``None`` means no restriction (admins); an empty list matches nothing.
    """
    if patient_ids is None:
        return query
    return query.filter(column.in_(list(patient_ids)))
