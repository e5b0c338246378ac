"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time; tests never touch a real database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-orgflow-tests")
os.environ.setdefault("APP_ENV", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from orgflow.main import app
from orgflow.db.base import Base
from orgflow.core.deps import get_db
from orgflow.core.security import create_token_for_user
from orgflow.services.notification_service import (
    InMemoryNotificationDispatcher,
    get_dispatcher,
    immediate_publisher,
)

# Import all models to ensure they're registered with Base.metadata
from orgflow.models import (
    Department,
    User,
    Role,
    AuditLog,
    LeaveRequest,
    LedgerEntry,
    Ticket,
)  # noqa


def _enable_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database for each test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def notifications():
    """Recording dispatcher used by both the API and direct service calls"""
    return InMemoryNotificationDispatcher()


@pytest.fixture
def publish(notifications):
    return immediate_publisher(notifications)


@pytest.fixture(scope="function")
def client(db, notifications):
    """Test client fixture with database and dispatcher overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: notifications
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_department(db):
    def _make(name="Engineering", head=None):
        dept = Department(name=name, active=True, head_id=head.id if head else None)
        db.add(dept)
        db.commit()
        db.refresh(dept)
        return dept
    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(name=None, role=Role.GENERAL_STAFF, department=None, reports_to=None,
              leave_balance=20, conduct_score=100.0, active=True):
        counter["n"] += 1
        name = name or f"{role.value.title()} {counter['n']}"
        user = User(
            name=name,
            email=f"user{counter['n']}@example.com",
            role=role.value,
            department_id=department.id if department else None,
            reports_to_id=reports_to.id if reports_to else None,
            permissions=[],
            leave_balance=leave_balance,
            conduct_score=conduct_score,
            active=active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def org(db, make_user):
    """Executive layer shared by most workflow tests: one CEO, MD, ADMIN and HR"""
    return {
        "ceo": make_user("Cara CEO", Role.CEO),
        "md": make_user("Max MD", Role.MD),
        "admin": make_user("Ada Admin", Role.ADMIN),
        "hr": make_user("Hana HR", Role.HR),
    }


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_token_for_user(user.id)}"}


@pytest.fixture
def auth():
    """Bearer header factory: auth(user) -> {"Authorization": "Bearer ..."}"""
    return auth_headers
