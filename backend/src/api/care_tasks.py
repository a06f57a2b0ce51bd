"""
Care calendar task endpoints.
"""

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.responses import MessageResponse
from auth.dependencies import UserContext, get_current_user
from core.database import get_db
from services.care_task_service import CareTaskService

router = APIRouter()


class CareTaskCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    due_date: date


class CareTaskDoneRequest(BaseModel):
    is_done: bool = True


class CareTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    due_date: date
    is_done: bool
    created_at: datetime


@router.get("", response_model=List[CareTaskResponse])
async def list_care_tasks(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[CareTaskResponse]:
    tasks = CareTaskService.list_tasks(db, current_user.user_id, from_date, to_date)
    return [CareTaskResponse.model_validate(task) for task in tasks]


@router.post("", response_model=CareTaskResponse, status_code=201)
async def create_care_task(
    request: CareTaskCreateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CareTaskResponse:
    task = CareTaskService.create_task(db, current_user.user_id, request.title, request.due_date)
    return CareTaskResponse.model_validate(task)


@router.put("/{task_id}/done", response_model=CareTaskResponse)
async def mark_care_task_done(
    task_id: int,
    request: CareTaskDoneRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CareTaskResponse:
    task = CareTaskService.set_done(db, current_user.user_id, task_id, request.is_done)
    return CareTaskResponse.model_validate(task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_care_task(
    task_id: int,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> MessageResponse:
    CareTaskService.delete_task(db, current_user.user_id, task_id)
    return MessageResponse(message="Task deleted successfully")
