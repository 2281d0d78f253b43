"""
Pytest fixtures for JobTracker resume tests.
Uses in-memory SQLite, local file storage in a tmp dir, mocks Redis, provides test users and auth token.
"""
import os
import tempfile
import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Use in-memory SQLite for tests - set before config/session load
# Must override any .env DATABASE_URL
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FILE_STORAGE_TYPE"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="jobtracker-uploads-")
os.environ["REDIS_URL"] = ""

from jobtracker.app.db.base import Base
from jobtracker.main import app
from jobtracker.app.core.dependencies import get_db, get_storage
from jobtracker.app.core.security import create_access_token
from jobtracker.app.models.job_application import JobApplication
from jobtracker.app.models.user import User
from jobtracker.app.services.file_storage import LocalFileStorage
from jobtracker.app.services.resume_service import ResumeService

# In-memory SQLite for tests - StaticPool ensures all sessions share same DB
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Patch the session module so app uses our test engine
import jobtracker.app.db.session as session_module
session_module.engine = engine
session_module.SessionLocal = TestingSessionLocal
# main.py imports engine directly; patch so startup uses our engine
import jobtracker.main as main_module
main_module.engine = engine


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


def pdf_bytes(size: int = 2048) -> bytes:
    """PDF-signed buffer of the given size."""
    header = b"%PDF-1.4\n"
    return header + b"\x00" * max(size - len(header), 0)


@pytest.fixture(scope="function")
def db_session():
    """Create tables and a fresh DB session per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_user(db_session):
    """Create a test user in the DB."""
    user = User(
        id=1,
        first_name="Test",
        last_name="User",
        email="test@example.com",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    """Second user, for ownership checks."""
    user = User(
        id=2,
        first_name="Other",
        last_name="User",
        email="other@example.com",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def make_pdf():
    return pdf_bytes


@pytest.fixture
def storage(tmp_path):
    """Local file storage rooted in a per-test tmp dir."""
    return LocalFileStorage(base_dir=tmp_path / "resumes", base_url="/files/resumes")


@pytest.fixture
def service(db_session, storage):
    return ResumeService(db_session, storage)


@pytest.fixture
def make_application(db_session):
    """Factory for job applications owned by a given user."""
    def _make(user, company="Acme", position_title="Engineer", resume_id=None):
        application = JobApplication(
            user_id=user.id,
            company=company,
            position_title=position_title,
            resume_id=resume_id,
        )
        db_session.add(application)
        db_session.commit()
        db_session.refresh(application)
        return application
    return _make


@pytest.fixture
def auth_headers(test_user):
    """Bearer token for test user."""
    token = create_access_token(data={"sub": str(test_user.id), "email": test_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db_session, test_user, storage):
    """TestClient with DB, test user and tmp-dir storage pre-wired."""
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_storage, None)


@pytest.fixture(autouse=True)
def mock_redis():
    """Mock Redis cache: get returns None (cache miss), set/delete no-op. Skip connect."""
    with patch("jobtracker.app.utils.cache.get", new_callable=AsyncMock, return_value=None), \
         patch("jobtracker.app.utils.cache.set", new_callable=AsyncMock), \
         patch("jobtracker.app.utils.cache.delete", new_callable=AsyncMock), \
         patch("jobtracker.app.utils.cache.connect", new_callable=AsyncMock), \
         patch("jobtracker.app.utils.cache.close", new_callable=AsyncMock):
        yield
