"""
Pytest configuration and fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Set test environment variables before importing config
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["CORS_ORIGINS"] = '["http://localhost:3000"]'
os.environ["ENVIRONMENT"] = "test"
os.environ["NTFY_URL"] = ""

from authentication.auth import create_access_token  # noqa: E402
from repositories.database import Base, get_db  # noqa: E402
import repositories.db_models as db_models  # noqa: E402
from services.content_filter_cache import content_filter_cache  # noqa: E402

# Test database engine (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh in-memory database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db(db_session):
    """Alias for db_session."""
    return db_session


@pytest.fixture(autouse=True)
def fresh_filter_cache():
    """Rules cached by one test must not leak into the next."""
    content_filter_cache.invalidate()
    yield
    content_filter_cache.invalidate()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with overridden database dependency."""
    from main import app
    from helpers.rate_limiter import limiter

    # Reset rate limiter storage before each test to prevent rate limit errors
    limiter.reset()

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """Factory fixture to create users with a given role."""

    def _make_user(
        username: str,
        role: db_models.UserRole = db_models.UserRole.USER,
        moderator_type: db_models.ModeratorType | None = None,
        **kwargs,
    ) -> db_models.User:
        user = db_models.User(
            email=f"{username}@example.com",
            username=username,
            display_name=username.replace("_", " ").title(),
            role=role,
            moderator_type=moderator_type,
            is_active=True,
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user) -> db_models.User:
    """Create a regular member."""
    return make_user("testuser")


@pytest.fixture
def other_user(make_user) -> db_models.User:
    """Create a second regular member."""
    return make_user("otheruser")


@pytest.fixture
def basic_mod(make_user) -> db_models.User:
    return make_user(
        "basic_mod", db_models.UserRole.MOD, db_models.ModeratorType.BASIC
    )


@pytest.fixture
def super_mod(make_user) -> db_models.User:
    return make_user(
        "super_mod", db_models.UserRole.MOD, db_models.ModeratorType.SUPER
    )


@pytest.fixture
def country_mod(make_user) -> db_models.User:
    return make_user(
        "country_mod", db_models.UserRole.MOD, db_models.ModeratorType.COUNTRY
    )


@pytest.fixture
def admin_user(make_user) -> db_models.User:
    """Create an admin."""
    return make_user("adminuser", db_models.UserRole.ADMIN)


def _headers_for(user: db_models.User) -> dict:
    token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user) -> dict:
    """Get authentication headers for test user."""
    return _headers_for(test_user)


@pytest.fixture
def other_auth_headers(other_user) -> dict:
    return _headers_for(other_user)


@pytest.fixture
def basic_mod_headers(basic_mod) -> dict:
    return _headers_for(basic_mod)


@pytest.fixture
def super_mod_headers(super_mod) -> dict:
    return _headers_for(super_mod)


@pytest.fixture
def admin_auth_headers(admin_user) -> dict:
    """Get authentication headers for admin user."""
    return _headers_for(admin_user)


@pytest.fixture
def make_report(db_session):
    """Factory fixture to store a report directly."""

    def _make_report(
        reporter: db_models.User,
        reported: db_models.User,
        status: db_models.ReportStatus = db_models.ReportStatus.PENDING,
        target_type: db_models.ReportTargetType = db_models.ReportTargetType.POST,
        target_id: int | None = 1,
        assigned_to: int | None = None,
    ) -> db_models.Report:
        report = db_models.Report(
            reporter_id=reporter.id,
            reported_user_id=reported.id,
            target_type=target_type,
            target_id=target_id,
            reason="Spam links",
            category="spam",
            status=status,
            priority=db_models.ReportPriority.NORMAL,
            assigned_to=assigned_to,
        )
        db_session.add(report)
        db_session.commit()
        db_session.refresh(report)
        return report

    return _make_report


@pytest.fixture
def make_filter_rule(db_session, admin_user):
    """Factory fixture to store a content filter rule directly."""
    from datetime import datetime, timedelta, timezone

    base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make_rule(
        pattern: str,
        replacement: str = "",
        is_regex: bool = False,
        is_active: bool = True,
    ) -> db_models.ContentFilterRule:
        counter["n"] += 1
        rule = db_models.ContentFilterRule(
            pattern=pattern,
            replacement=replacement,
            is_regex=is_regex,
            is_active=is_active,
            created_by=admin_user.id,
            created_at=base_time + timedelta(minutes=counter["n"]),
        )
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule

    return _make_rule
