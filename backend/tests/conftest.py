"""Pytest configuration and fixtures."""

import os

# Keep the application's module-level engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from queskip.core.config import settings
from queskip.core.rbac import UserRole
from queskip.core.security import get_password_hash, create_access_token
from queskip.db.base import Base
from queskip.db.session import create_db_engine, get_db
from queskip.main import app
# Import all models to ensure they're registered with Base.metadata
from queskip.models import Business, BusinessCategory, User

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_PASSWORD = "testpass123"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_db_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiting during tests to avoid flaky failures
    from queskip.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db: Session, email: str, role: UserRole = UserRole.CUSTOMER,
              business_id=None, is_active: bool = True) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD),
        full_name=email.split("@")[0].title(),
        role=role,
        business_id=business_id,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_business(db: Session, name: str = "Test Bistro", **overrides) -> Business:
    data = {
        "name": name,
        "description": "Walk-in tables",
        "address": "1 Test Street",
        "phone_number": "+1234567890",
        "category": BusinessCategory.RESTAURANT.value,
        "average_wait_time": 10,
        "max_queue_capacity": 50,
        "is_active": True,
    }
    data.update(overrides)
    business = Business(**data)
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def token_for(user: User) -> str:
    return create_access_token(
        data={"sub": user.id, "email": user.email, "role": user.role.value}
    )


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def test_business(db_session: Session) -> Business:
    """Create an active business with the default capacity."""
    return make_business(db_session)


@pytest.fixture
def test_user(db_session: Session) -> User:
    """Create a customer."""
    return make_user(db_session, "test@example.com")


@pytest.fixture
def other_user(db_session: Session) -> User:
    """Create a second customer."""
    return make_user(db_session, "other@example.com")


@pytest.fixture
def staff_user(db_session: Session, test_business: Business) -> User:
    """Create a staff member serving test_business."""
    return make_user(db_session, "staff@example.com", UserRole.STAFF, business_id=test_business.id)


@pytest.fixture
def admin_user(db_session: Session) -> User:
    """Create an admin."""
    return make_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def auth_token(test_user: User) -> str:
    """Get an authentication token for the test user."""
    return token_for(test_user)


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return headers_for(staff_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def user_factory(db_session: Session):
    """Create extra users: user_factory("a@b.com", UserRole.STAFF, business_id=...)."""
    def _make(email: str, role: UserRole = UserRole.CUSTOMER, **kwargs) -> User:
        return make_user(db_session, email, role, **kwargs)
    return _make


@pytest.fixture
def business_factory(db_session: Session):
    """Create extra businesses: business_factory("Name", max_queue_capacity=2)."""
    def _make(name: str = "Test Bistro", **overrides) -> Business:
        return make_business(db_session, name, **overrides)
    return _make


@pytest.fixture
def auth_headers_for():
    """Build bearer headers for any user."""
    return headers_for


# ============== File-backed database for concurrency tests ==============

@pytest.fixture
def file_engine(tmp_path, monkeypatch):
    """SQLite file database where every session gets its own connection."""
    # Lock waits that should never happen fail fast instead of stalling the suite
    monkeypatch.setattr(settings, "sqlite_busy_timeout_seconds", 5)
    engine = create_db_engine(f"sqlite:///{tmp_path / 'queue.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(file_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine)


@pytest.fixture
def seed_crowd(session_factory):
    """Seed one business and ``user_count`` customers: seed_crowd(capacity=5, user_count=8)."""
    def _seed(capacity: int, user_count: int, average_wait_time: int = 10):
        password_hash = get_password_hash("pw123456")
        with session_factory() as db:
            business = Business(
                name="Busy Place",
                address="1 Crowded Lane",
                average_wait_time=average_wait_time,
                max_queue_capacity=capacity,
            )
            db.add(business)
            users = [
                User(
                    email=f"user{i}@example.com",
                    password_hash=password_hash,
                    full_name=f"User {i}",
                    role=UserRole.CUSTOMER,
                )
                for i in range(user_count)
            ]
            db.add_all(users)
            db.commit()
            return business.id, [u.id for u in users]
    return _seed
