"""Shared test fixtures for session and two-factor tests."""

import os

from cryptography.fernet import Fernet

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("MFA_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import stride.models  # noqa: E402,F401
from stride.database import Base, get_db  # noqa: E402
from stride.dependencies.services import get_session_factory  # noqa: E402
from stride.main import app  # noqa: E402
from stride.rate_limiter import limiter  # noqa: E402
from stride.services.session_tracking import session_tracking  # noqa: E402
from tests.factories import create_user  # noqa: E402


@pytest.fixture
def db_session_maker():
    """In-memory SQLite database with all tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    testing_session_local = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )
    yield testing_session_local
    engine.dispose()


@pytest.fixture
def db(db_session_maker):
    session = db_session_maker()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    return create_user(db, "test@example.com", "Password123")


@pytest.fixture
def auth_client(db_session_maker):
    """Create test client with in-memory database.

    Yields a tuple of (TestClient, SessionMaker) for use in tests.
    """
    limiter.reset()
    session_tracking.reset(session_factory=db_session_maker)

    def override_get_db():
        db = db_session_maker()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: db_session_maker

    with TestClient(app) as test_client:
        yield test_client, db_session_maker

    app.dependency_overrides.clear()
