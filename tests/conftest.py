"""
Pytest configuration and shared fixtures for KinderBridge tests.
"""

import os
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["SEARCH_API_URL"] = "http://daycare-api.test"
os.environ["AUTH_ENABLED"] = "False"
os.environ["RATE_LIMIT_ENABLED"] = "False"
os.environ["SESSION_SECRET"] = "test_secret_key_for_testing_must_be_at_least_32_characters_long"

from app.database import Base  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.search.client import SearchClient  # noqa: E402
from app.search.tiering import AuthSignal  # noqa: E402
from tests.factories import make_page  # noqa: E402

# Import models to register them with SQLAlchemy Base
from app.models import ContactLog, Favorite, SearchSnapshot  # noqa: F401, E402


@pytest.fixture(autouse=True)
def _no_shared_cache():
    """Keep tests away from any Redis that happens to run on the machine."""
    with patch("app.utils.cache._get_redis", return_value=None):
        yield


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    # Create an in-memory SQLite database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create a session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def search_api():
    """Stand-in for the remote daycare API client."""
    api = MagicMock(spec=SearchClient)
    api.search.return_value = make_page(15, total=37)
    api.get_list.return_value = []
    api.get_daycare.return_value = None
    return api


@pytest.fixture
def auth_signal():
    """Authentication state seen by the app; tests replace ``.value`` to act as a guest."""
    holder = MagicMock()
    holder.value = AuthSignal(user={"preferred_username": "parent@example.com"})
    return holder


@pytest.fixture(scope="function")
def client(db_session, search_api, auth_signal) -> TestClient:
    """Create a test client with a fresh database and a fake daycare API."""

    from app.api.common import get_search_client
    from app.auth import get_auth_signal
    from app.database import get_db

    # Override the get_db dependency to use our test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_search_client] = lambda: search_api
    fastapi_app.dependency_overrides[get_auth_signal] = lambda: auth_signal.value

    # Use base_url to satisfy TrustedHostMiddleware
    with TestClient(fastapi_app, base_url="http://localhost") as test_client:
        yield test_client

    # Clean up
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def as_guest(auth_signal):
    auth_signal.value = AuthSignal(user=None)
    return auth_signal
