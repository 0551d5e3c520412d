"""Root-level pytest fixtures for all tests.

Provides:
- In-memory SQLite engine/session (StaticPool, foreign keys on)
- A fixed-key credential codec
- A fake WordPress site behind ``httpx.MockTransport``
- A scriptable AI backend and a dispatcher that serves it
- A FastAPI TestClient wired to all of the above
"""

import os

# Must be set before wpmanager.db.connection is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WPMANAGER_MONITORING_ENABLED", "false")

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.helpers import FakeAIProvider, FakeWordPress
from wpmanager.config import AppSettings
from wpmanager.db.connection import enable_sqlite_foreign_keys, get_db
from wpmanager.db.models import Base, Site, User
from wpmanager.services.ai import AIDispatcher, AIProviderName
from wpmanager.services.container import AppServices
from wpmanager.services.credential_encryption import CredentialCodec
from wpmanager.services.monitoring_service import SiteMonitor
from wpmanager.services.site_gateway import WordPressGateway

TEST_KEY = bytes(range(32))
TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"
SITE_URL = "https://blog.example.com"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads via StaticPool."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        gemini_api_key="test-gemini-key",
        monitoring_enabled=False,
    )


@pytest.fixture
def codec() -> CredentialCodec:
    return CredentialCodec(TEST_KEY)


@pytest.fixture
def fake_wp() -> FakeWordPress:
    return FakeWordPress()


@pytest.fixture
def gateway(fake_wp) -> WordPressGateway:
    return WordPressGateway(timeout=5, probe_timeout=5, transport=fake_wp.transport())


@pytest.fixture
def fake_ai() -> FakeAIProvider:
    return FakeAIProvider(name="gemini")


@pytest.fixture
def dispatcher(settings, fake_ai) -> AIDispatcher:
    return AIDispatcher(settings, providers={AIProviderName.gemini: fake_ai})


@pytest.fixture
def monitor(session_factory, codec, gateway) -> SiteMonitor:
    return SiteMonitor(session_factory, codec, gateway, interval_seconds=3600)


@pytest.fixture
def services(settings, codec, gateway, dispatcher, monitor) -> AppServices:
    return AppServices(
        settings=settings,
        codec=codec,
        gateway=gateway,
        dispatcher=dispatcher,
        monitor=monitor,
    )


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
def user(db_session) -> User:
    row = User(id=TEST_USER_ID, email="owner@example.com")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def site(db_session, user, codec, fake_wp) -> Site:
    """A connected site whose stored credential matches the fake server."""
    row = Site(
        user_id=user.id,
        name="Example Blog",
        url=SITE_URL,
        username=fake_wp.username,
        encrypted_password=codec.encrypt(fake_wp.password),
        wp_version="6.5.2",
        active_theme="Twenty Twenty-Four",
        plugin_count=2,
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def client(services, session_factory) -> Generator[TestClient, None, None]:
    """TestClient with the service container and DB session overridden."""
    from wpmanager.api.main import create_app

    app = create_app(services=services)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-User-Id": TEST_USER_ID}
