"""
Shared test fixtures.

Every test gets a fresh in-memory SQLite database, a capture-mode mailer and
a pair of authenticated users (a trader and an admin).
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from watchtracker.core import config
from watchtracker.core.auth_dependency import get_db
from watchtracker.core.rate_limit import reset_rate_limits
from watchtracker.core.security import hash_password, create_access_token
from watchtracker.db.base import Base
from watchtracker.db.models.user import User
from watchtracker.main import app
from watchtracker.services import provisioning_service
from watchtracker.services.email_service import EmailService, get_email_service


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PASSWORD = "testpass123"


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_token(user: User) -> str:
    return create_access_token({
        "sub": user.username,
        "id": user.id,
        "username": user.username,
        "status": user.status,
    })


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture(autouse=True)
def isolate_state(monkeypatch):
    """Clear rate-limit buckets and unset webhook secrets around every test."""
    reset_rate_limits()
    monkeypatch.setattr(provisioning_service, "EMAIL_RETRY_DELAY", 0)
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", None)
    monkeypatch.setattr(config, "SQUARE_WEBHOOK_SIGNATURE_KEY", None)
    yield
    reset_rate_limits()


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_factory(db):
    return TestSessionLocal


@pytest.fixture
def mailer():
    """Mailer without SMTP credentials: messages land in ``outbox``."""
    return EmailService(user=None)


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_user(db, username: str, email: str = None, is_admin: bool = False, **fields) -> User:
    user = User(
        username=username,
        hashed_password=hash_password(fields.pop("password", PASSWORD)),
        email=email,
        status=fields.pop("status", "active"),
        is_admin=is_admin,
        **fields
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    """Create a test user."""
    return create_user(db, "trader", "trader@example.com")


@pytest.fixture
def other_user(db):
    return create_user(db, "rival", "rival@example.com")


@pytest.fixture
def admin(db):
    return create_user(db, "admin", "admin@100ktracker.com", is_admin=True)


@pytest.fixture
def auth_headers(user):
    return bearer(user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)
