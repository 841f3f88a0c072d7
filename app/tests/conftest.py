import os
import tempfile
from datetime import datetime, timedelta, timezone

# Point the application engine at a throwaway database before anything imports it
_TEST_DIR = tempfile.mkdtemp(prefix="campus-events-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'app.db')}"

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from app.core.security import create_access_token
from app.database.db import Base, get_db
from app.main import app
from app.models.users import UserRole
from app.services import events as event_store

# A file-backed SQLite database so that worker threads get their own connections
SQLALCHEMY_DATABASE_URL = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Set up and tear down the database for the test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables():
    """Services commit, so wipe every table after each test."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def redis_client(fake_redis, monkeypatch: pytest.MonkeyPatch):
    """Route the per-event lock through fakeredis."""
    monkeypatch.setattr("app.services.registrations.get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, role: UserRole = UserRole.USER) -> dict[str, str]:
        token = create_access_token(data={"sub": user_id, "role": role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def organizer():
    return "organizer-1"


@pytest.fixture
def make_event(db_session: Session, organizer: str):
    """Create an event directly through the event store."""

    def _make(
        title: str = "Campus Meetup",
        capacity: int | None = None,
        host_id: str | None = None,
        starts_in: timedelta = timedelta(days=1),
        duration: timedelta = timedelta(hours=2),
        tags: list[str] | None = None,
    ):
        start = datetime.now(timezone.utc) + starts_in
        return event_store.create_event(
            db_session,
            host_id=host_id or organizer,
            title=title,
            start_time=start,
            end_time=start + duration,
            capacity=capacity,
            tags=tags,
        )

    return _make
