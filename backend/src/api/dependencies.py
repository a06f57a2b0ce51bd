"""
Application-scoped dependencies.

The task queue and the report analyzer are built once in the application
lifespan and stored on ``app.state``; routes receive them through these
providers so tests can override them.
"""

from fastapi import HTTPException, Request, status

from services.report_analyzer import ReportAnalyzer
from services.task_queue import TaskQueue


def get_task_queue(request: Request) -> TaskQueue:
    queue = getattr(request.app.state, "task_queue", None)
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Background processing is not available"
        )
    return queue


def get_report_analyzer(request: Request) -> ReportAnalyzer:
    analyzer = getattr(request.app.state, "report_analyzer", None)
    if analyzer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI analysis is not available"
        )
    return analyzer
