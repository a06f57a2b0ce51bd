# pyright: reportMissingTypeStubs=false
"""
LifeTrack Backend API

A FastAPI application for patients and caregivers to upload medical
reports and have them explained by a hosted vision model.

Features:
- Report uploads with progress tracking and retry
- Background AI analysis with polling and retry
- Patient status and health data monitoring
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import (
    ai,
    analysis_tasks,
    auth,
    care_tasks,
    contact,
    health_data,
    patient_status,
    report_uploads,
    reports,
    users,
)
from core.constants import CORS_ORIGINS
from services.analysis_cleanup_scheduler import (
    start_analysis_cleanup_scheduler,
    stop_analysis_cleanup_scheduler,
)
from services.report_analysis_service import register_analysis_tasks
from services.report_analyzer import build_report_analyzer
from services.report_upload_service import register_upload_tasks
from services.task_queue import TaskQueue

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 LifeTrack API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting LifeTrack Backend API")

    analyzer = build_report_analyzer()
    task_queue = TaskQueue()
    register_upload_tasks(task_queue)
    register_analysis_tasks(task_queue, analyzer)
    task_queue.start()
    recovered = task_queue.recover_incomplete()
    logger.info(f"✅ Task queue started ({recovered} tasks recovered)")

    app.state.report_analyzer = analyzer
    app.state.task_queue = task_queue

    # Note: Database sessions are created fresh for each scheduler run
    try:
        await start_analysis_cleanup_scheduler()
        logger.info("✅ Analysis cleanup scheduler started")
    except Exception as e:
        logger.exception(f"❌ Failed to start analysis cleanup scheduler: {e}")

    yield

    try:
        await stop_analysis_cleanup_scheduler()
        logger.info("🛑 Analysis cleanup scheduler stopped")
    except Exception as e:
        logger.exception(f"❌ Error stopping analysis cleanup scheduler: {e}")

    task_queue.shutdown(wait=True)
    app.state.task_queue = None
    logger.info("🛑 Shutting down LifeTrack Backend API")


# Create FastAPI application
app = FastAPI(
    title="LifeTrack Backend",
    description="Medical report uploads with AI explanations for patients and caregivers",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

COMMON_RESPONSES = {
    401: {"description": "Unauthorized"},
    403: {"description": "Forbidden"},
    404: {"description": "Resource not found"},
    500: {"description": "Internal server error"},
}

# Include API routers
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(users.router, prefix="/api/users", tags=["users"], responses=COMMON_RESPONSES)
app.include_router(reports.router, prefix="/api/reports", tags=["reports"], responses=COMMON_RESPONSES)
app.include_router(
    report_uploads.router,
    prefix="/api/report-upload",
    tags=["report-upload"],
    responses={
        **COMMON_RESPONSES,
        409: {"description": "Conflict"},
        413: {"description": "File too large"},
    },
)
app.include_router(
    ai.router,
    prefix="/api/ai",
    tags=["ai"],
    responses={
        **COMMON_RESPONSES,
        422: {"description": "Malformed model response"},
        502: {"description": "AI service error"},
    },
)
app.include_router(
    patient_status.router, prefix="/api/patient-status", tags=["patient-status"], responses=COMMON_RESPONSES
)
app.include_router(health_data.router, prefix="/api/health-data", tags=["health-data"], responses=COMMON_RESPONSES)
app.include_router(care_tasks.router, prefix="/api/tasks", tags=["care-tasks"], responses=COMMON_RESPONSES)
app.include_router(
    analysis_tasks.router, prefix="/api/analysis-tasks", tags=["analysis-tasks"], responses=COMMON_RESPONSES
)
app.include_router(contact.router, prefix="/api/contact", tags=["contact"], responses=COMMON_RESPONSES)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "LifeTrack Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


def error_body(message: str) -> dict[str, object]:
    return {"success": False, "message": message}


# Global exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors with the uniform error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle request body, form and query validation errors."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=422,
        content=error_body("; ".join(messages) or "Invalid request"),
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content=error_body(str(exc)),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error"),
    )

