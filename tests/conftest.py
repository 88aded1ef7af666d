"""Pytest fixtures and configuration for tidyWeek tests."""

import os

# Keep the app's module-level engine away from the on-disk dev database.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
import uuid
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from tidyweek.database.database import Base
from tidyweek.database.repository import TaskRepository
from tidyweek.engine.clock import ClockRegistry
from tidyweek.models.task import Task, TaskCategory


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Wednesday, 2024-01-03 12:00 UTC
FIXED_NOW = datetime(2024, 1, 3, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Base clock that always reads the same instant."""

    def __init__(self, at: datetime):
        self.at = at

    def now(self) -> datetime:
        return self.at


@pytest.fixture(scope="function")
def db_session(test_user_id):
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    Also creates a test user in the database.
    """
    from tidyweek.database.models import UserDB

    # Create engine with StaticPool for in-memory database
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    # Create test user (required for foreign key constraints)
    now = datetime.utcnow()
    session.add(UserDB(
        id=test_user_id,
        email="test@example.com",
        name="Test User",
        created_at=now,
        updated_at=now,
    ))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def test_user_id():
    """Test user ID for multi-user testing."""
    return "test-user-123"


@pytest.fixture
def fixed_now():
    """Real-time instant used by the API test client."""
    return FIXED_NOW


@pytest.fixture
def sample_task_base(test_user_id):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    Created on Monday 2024-01-01 10:00 UTC.
    """
    created = datetime(2024, 1, 1, 10, 0, 0)
    return {
        "id": str(uuid.uuid4()),
        "user_id": test_user_id,
        "text": "Test Task",
        "notes": "Test notes",
        "tags": [],
        "urls": [],
        "category": TaskCategory.TODAY,
        "completed": False,
        "completed_at": None,
        "removed": False,
        "removed_at": None,
        "created_at": created,
        "updated_at": created,
    }


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def make_task(sample_task_base):
    """Factory for tasks with a fresh id and overridden fields."""
    def _make(**overrides) -> Task:
        return Task(**{**sample_task_base, "id": str(uuid.uuid4()), **overrides})
    return _make


@pytest.fixture
def test_user(test_user_id):
    """Create a test user object."""
    from tidyweek.models.user import User
    now = datetime.utcnow()
    return User(
        id=test_user_id,
        email="test@example.com",
        name="Test User",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def test_client(db_session: Session, test_user, fixed_now):
    """Create a FastAPI test client with overridden database dependency and authentication.

    Real time is pinned to `fixed_now` so lifecycle results are deterministic.
    """
    from tidyweek.api.app import app
    from tidyweek.database.database import get_db
    from tidyweek.auth.dependencies import get_current_user

    # Override the get_db dependency to use our test database session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    # Override authentication to return test user
    def override_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.clocks = ClockRegistry(base=FixedClock(fixed_now))

    with TestClient(app) as client:
        yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
    app.state.clocks = ClockRegistry()
