"""
Care task service for the calendar.
"""

from datetime import date
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import CareTask


class CareTaskService:
    """Service class for care calendar tasks."""

    @staticmethod
    def list_tasks(
        db: Session,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[CareTask]:
        query = db.query(CareTask).filter(CareTask.created_by_user_id == user_id)
        if start_date:
            query = query.filter(CareTask.due_date >= start_date)
        if end_date:
            query = query.filter(CareTask.due_date <= end_date)
        return query.order_by(CareTask.due_date, CareTask.id).all()

    @staticmethod
    def create_task(db: Session, user_id: int, title: str, due_date: date) -> CareTask:
        task = CareTask(created_by_user_id=user_id, title=title.strip(), due_date=due_date, is_done=False)
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def set_done(db: Session, user_id: int, task_id: int, is_done: bool) -> CareTask:
        task = db.query(CareTask).filter(
            CareTask.id == task_id,
            CareTask.created_by_user_id == user_id
        ).first()
        if not task:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        task.is_done = is_done
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def delete_task(db: Session, user_id: int, task_id: int) -> None:
        task = db.query(CareTask).filter(
            CareTask.id == task_id,
            CareTask.created_by_user_id == user_id
        ).first()
        if not task:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
        db.delete(task)
        db.commit()
