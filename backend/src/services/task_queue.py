"""
In-process background task queue.

Deferred work (upload finalisation, report analysis) is recorded as a
``BackgroundTask`` row and dispatched through an APScheduler
``BackgroundScheduler`` one-shot job whose id is the task id.

Delivery is at-least-once:
- ``run_task`` claims a task with a conditional update (queued -> running),
  so a duplicate delivery of the same task is dropped.
- ``recover_incomplete`` re-queues tasks left running by a crash and
  re-dispatches everything queued, so handlers must be idempotent.
"""

import logging
from contextlib import AbstractContextManager
from datetime import timedelta, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore
from apscheduler.triggers.date import DateTrigger  # type: ignore
from sqlalchemy import update
from sqlalchemy.orm import Session

from core.database import get_db_context
from models.background_task import BackgroundTask, TaskStatus, new_task_id
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

TaskHandler = Callable[[Session, BackgroundTask], None]
SessionFactory = Callable[[], AbstractContextManager[Session]]

MAX_ERROR_LENGTH = 2000


class UnknownTaskTypeError(Exception):
    """Raised when a task is enqueued or run without a registered handler."""
    pass


class TaskQueue:
    """
    Persisted task queue with an in-process dispatcher.

    Args:
        session_factory: Context manager factory yielding a fresh session
            per task run (defaults to ``get_db_context``).
        scheduler: APScheduler scheduler used for dispatch. Tests pass a
            mock and call ``run_task`` directly.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_db_context,
        scheduler: Optional[Any] = None,
    ):
        self._session_factory = session_factory
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler(timezone=timezone.utc)
        self._handlers: Dict[str, TaskHandler] = {}
        self._is_started = False

    def register(self, task_type: str, handler: TaskHandler) -> None:
        """Register the handler run for tasks of ``task_type``."""
        self._handlers[task_type] = handler

    def start(self) -> None:
        if self._is_started:
            logger.warning("Task queue is already started")
            return
        self.scheduler.start()
        self._is_started = True
        logger.info("Task queue started")

    def shutdown(self, wait: bool = True) -> None:
        if self._is_started:
            self.scheduler.shutdown(wait=wait)
            self._is_started = False
            logger.info("Task queue stopped")

    def enqueue(
        self,
        db: Session,
        task_type: str,
        record_id: int,
        payload: Optional[Dict[str, Any]] = None,
        delay_seconds: float = 0,
        task_id: Optional[str] = None,
    ) -> BackgroundTask:
        """
        Persist a task and dispatch it.

        Commits ``db``, so pending record changes made by the caller are
        written in the same transaction as the task row.
        """
        if task_type not in self._handlers:
            raise UnknownTaskTypeError(f"No handler registered for task type '{task_type}'")

        task = BackgroundTask(
            id=task_id or new_task_id(),
            task_type=task_type,
            record_id=record_id,
            payload=payload or {},
            status=TaskStatus.QUEUED.value,
            attempts=0,
            run_after=utc_now() + timedelta(seconds=delay_seconds),
        )
        db.add(task)
        db.commit()
        db.refresh(task)

        self._dispatch(task)
        logger.info(f"Enqueued {task_type} task {task.id} for record {record_id} (delay {delay_seconds}s)")
        return task

    def _dispatch(self, task: BackgroundTask) -> None:
        run_after = task.run_after
        if run_after.tzinfo is None:
            run_after = run_after.replace(tzinfo=timezone.utc)
        self.scheduler.add_job(  # type: ignore
            self.run_task,
            DateTrigger(run_date=max(run_after, utc_now())),
            args=[task.id],
            id=task.id,
            name=f"{task.task_type}:{task.record_id}",
            replace_existing=True,
            misfire_grace_time=None,  # Late is fine; run whenever the scheduler gets to it
        )

    def run_task(self, task_id: str) -> None:
        """
        Claim and run a task. Called by the scheduler; safe to call twice.
        """
        with self._session_factory() as db:
            result = db.execute(
                update(BackgroundTask)
                .where(
                    BackgroundTask.id == task_id,
                    BackgroundTask.status == TaskStatus.QUEUED.value,
                )
                .values(
                    status=TaskStatus.RUNNING.value,
                    attempts=BackgroundTask.attempts + 1,
                    started_at=utc_now(),
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            db.commit()
            if not result.rowcount:
                logger.info(f"Task {task_id} is not queued; skipping duplicate delivery")
                return

            task = db.get(BackgroundTask, task_id, populate_existing=True)
            if task is None:
                return
            task_type = task.task_type
            handler = self._handlers.get(task_type)

            try:
                if handler is None:
                    raise UnknownTaskTypeError(f"No handler registered for task type '{task_type}'")
                handler(db, task)
            except Exception as e:
                db.rollback()
                logger.exception(f"Task {task_id} ({task_type}) failed: {e}")
                self._finish(db, task_id, TaskStatus.FAILED, str(e)[:MAX_ERROR_LENGTH])
            else:
                self._finish(db, task_id, TaskStatus.SUCCEEDED, None)

    def _finish(self, db: Session, task_id: str, status: TaskStatus, error: Optional[str]) -> None:
        db.execute(
            update(BackgroundTask)
            .where(BackgroundTask.id == task_id)
            .values(status=status.value, last_error=error, finished_at=utc_now(), updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        db.commit()

    def recover_incomplete(self) -> int:
        """
        Re-dispatch unfinished tasks after a restart.

        Returns:
            Number of tasks dispatched.
        """
        with self._session_factory() as db:
            interrupted = db.execute(
                update(BackgroundTask)
                .where(BackgroundTask.status == TaskStatus.RUNNING.value)
                .values(status=TaskStatus.QUEUED.value, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
            if interrupted:
                logger.warning(f"Re-queued {interrupted} tasks interrupted by a restart")

            queued = db.query(BackgroundTask).filter(
                BackgroundTask.status == TaskStatus.QUEUED.value
            ).all()
            for task in queued:
                self._dispatch(task)

        if queued:
            logger.info(f"Recovered {len(queued)} queued tasks")
        return len(queued)

    @staticmethod
    def get_task(db: Session, task_id: str) -> Optional[BackgroundTask]:
        return db.query(BackgroundTask).filter(BackgroundTask.id == task_id).first()
