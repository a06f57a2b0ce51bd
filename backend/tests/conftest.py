"""
Test configuration and shared fixtures for the LifeTrack test suite.

Uses a file-backed SQLite database per test, so the request session, the
background task sessions and the test's own session all see the same
committed data. Uploaded files go to a per-test temporary directory.
"""

import os

# Must be set before core.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from contextlib import contextmanager
from typing import Generator, Optional
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from core import config
from core.constants import ROLE_ADMIN, ROLE_CAREGIVER, ROLE_PATIENT
from core.database import Base, get_db

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models import BackgroundTask, CareTask, Contact, HealthData, PatientStatus, Report, ReportUpload, User  # noqa: F401
from models.background_task import TaskStatus
from services.jwt_service import TokenPayload, jwt_service
from services.report_analyzer import ReportAnalyzer
from services.task_queue import TaskQueue
from tests.samples import make_completion

DEFAULT_PASSWORD = "Password123"


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database file with the full schema."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'lifetrack_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_maker) -> Generator[Session, None, None]:
    """Session for arranging and asserting test data."""
    session = session_maker()
    yield session
    session.close()


@pytest.fixture
def session_factory(session_maker):
    """Context manager factory handed to TaskQueue (mirrors get_db_context)."""

    @contextmanager
    def factory() -> Generator[Session, None, None]:
        db = session_maker()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return factory


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Store uploaded files under the test's temporary directory."""
    path = tmp_path / "uploads"
    monkeypatch.setattr(config, "UPLOAD_DIR", str(path))
    monkeypatch.setattr(config, "UPLOAD_PROCESSING_DELAY_SECONDS", 0.0)
    return path


@pytest.fixture
def mock_scheduler():
    """Stands in for the APScheduler scheduler; tests run tasks directly."""
    return Mock()


@pytest.fixture
def task_queue(session_factory, mock_scheduler) -> TaskQueue:
    return TaskQueue(session_factory=session_factory, scheduler=mock_scheduler)


@pytest.fixture
def mock_openai_client():
    """OpenAI client whose chat completion returns a fixed explanation."""
    client = Mock()
    client.chat.completions.create.return_value = make_completion(
        "Your hemoglobin is within the normal range."
    )
    return client


@pytest.fixture
def report_analyzer(mock_openai_client) -> ReportAnalyzer:
    return ReportAnalyzer(client=mock_openai_client, model="gpt-4o")


@pytest.fixture
def client(session_maker, task_queue, report_analyzer):
    """
    Test client wired to the test database, queue and analyzer.

    The lifespan is not run; the queue's scheduler is a mock, so background
    work only happens when a test calls ``run_queued_tasks``.
    """
    from api.dependencies import get_report_analyzer, get_task_queue
    from main import app
    from services.report_analysis_service import register_analysis_tasks
    from services.report_upload_service import register_upload_tasks

    register_upload_tasks(task_queue)
    register_analysis_tasks(task_queue, report_analyzer)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_maker()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_queue] = lambda: task_queue
    app.dependency_overrides[get_report_analyzer] = lambda: report_analyzer

    yield TestClient(app)

    app.dependency_overrides.clear()


# Helper functions for creating users and tokens
def create_user(
    db_session: Session,
    email: str,
    role: str = ROLE_PATIENT,
    first_name: str = "Test",
    last_name: str = "User",
    caregiver: Optional[User] = None,
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
) -> User:
    user = User(
        email=email,
        hashed_password=jwt_service.hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        caregiver_id=caregiver.id if caregiver else None,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def create_report(
    db_session: Session,
    patient: User,
    file_path: str,
    title: str = "Blood Panel",
    content_type: str = "image/png",
    ai_analysis_status: str = "pending",
    ai_task_id: Optional[str] = None,
) -> Report:
    """Report row pointing at an existing file."""
    report = Report(
        patient_id=patient.id,
        caregiver_id=patient.caregiver_id,
        uploaded_by_user_id=patient.id,
        title=title,
        original_filename=os.path.basename(file_path),
        stored_filename=os.path.basename(file_path),
        file_path=file_path,
        size_bytes=os.path.getsize(file_path) if os.path.exists(file_path) else 0,
        content_type=content_type,
        ai_analysis_status=ai_analysis_status,
        ai_task_id=ai_task_id,
    )
    db_session.add(report)
    db_session.commit()
    db_session.refresh(report)
    return report


def auth_headers(user: User) -> dict:
    """Bearer header with a valid access token for ``user``."""
    token = jwt_service.create_access_token(TokenPayload(
        sub=str(user.id),
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.full_name,
    ))
    return {"Authorization": f"Bearer {token}"}


def run_queued_tasks(task_queue: TaskQueue, session_factory, max_rounds: int = 5) -> int:
    """
    Run queued background tasks until none are left.

    Handlers may enqueue follow-up work (finalize -> analysis), hence the
    rounds. Returns the number of tasks run.
    """
    ran = 0
    for _ in range(max_rounds):
        with session_factory() as db:
            task_ids = [
                row[0] for row in db.query(BackgroundTask.id)
                .filter(BackgroundTask.status == TaskStatus.QUEUED.value)
                .order_by(BackgroundTask.created_at)
                .all()
            ]
        if not task_ids:
            break
        for task_id in task_ids:
            task_queue.run_task(task_id)
            ran += 1
    return ran


@pytest.fixture
def caregiver(db_session) -> User:
    return create_user(db_session, "carol.caregiver@example.com", ROLE_CAREGIVER, "Carol", "Care")


@pytest.fixture
def patient(db_session, caregiver) -> User:
    return create_user(db_session, "pat.patient@example.com", ROLE_PATIENT, "Pat", "Patient", caregiver=caregiver)


@pytest.fixture
def other_patient(db_session) -> User:
    return create_user(db_session, "olive.other@example.com", ROLE_PATIENT, "Olive", "Other")


@pytest.fixture
def admin(db_session) -> User:
    return create_user(db_session, "admin@example.com", ROLE_ADMIN, "Ada", "Admin")
