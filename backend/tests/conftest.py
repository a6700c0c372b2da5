"""Pytest fixtures for the webhook work queue.

Provides reusable test fixtures for:
- In-memory SQLite database with foreign key enforcement
- Database session and session factory
- Default and secondary tenants
- Envelope encryption key and ingestion configuration
- Work item factory
- FastAPI test client with dependency overrides

Usage:
    def test_claim(db_session, make_work_item):
        item = make_work_item()
        assert WorkQueueStore(db_session).claim(item.id)
"""

import sys
import os
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Callable, Generator

# Adjust imports based on your project structure
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

# Import directly from modules (avoid relative import issues)
from config import IngestionConfig, Settings, get_settings
from database import configure_sqlite_engine, get_db as database_get_db
from domain.work_items import WorkItemStatus, WorkScope
from infrastructure.encryption import generate_key
from models.base import Base
from models.tenant import Tenant
from models.work_item import WorkItem
from models.work_relation import WorkRelation
from models.audit_log import AuditLog
from ingestion.orchestrator import IngestionOrchestrator

# One in-memory database shared by every session of a test
test_engine = configure_sqlite_engine(
    create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=test_engine,
)

TEST_HMAC_KEY = "test-hmac-key"
SECONDARY_MARKER = "ZAWISZA"


@pytest.fixture(scope="function")
def session_factory() -> Generator[Callable[[], Session], None, None]:
    """Session factory bound to a freshly created schema.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def default_tenant(db_session: Session) -> Tenant:
    """Create the default tenant."""
    tenant = Tenant(name="Default Tenant", api_key="default-api-key")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope="function")
def secondary_tenant(db_session: Session) -> Tenant:
    """Create the secondary tenant (marked marketplace orders)."""
    tenant = Tenant(name="Secondary Tenant", api_key="secondary-api-key")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope="session")
def encryption_key() -> str:
    """Base64 AES-256 key for envelope tests."""
    return generate_key()


@pytest.fixture(scope="function")
def ingestion_config(encryption_key, default_tenant, secondary_tenant) -> IngestionConfig:
    return IngestionConfig(
        encryption_key=encryption_key,
        default_tenant_id=default_tenant.id,
        secondary_tenant_id=secondary_tenant.id,
        marketplace_marker=SECONDARY_MARKER,
    )


@pytest.fixture(scope="function")
def orchestrator(ingestion_config, session_factory) -> IngestionOrchestrator:
    """Orchestrator writing to the test database without retry delays."""
    return IngestionOrchestrator(
        config=ingestion_config,
        session_factory=session_factory,
        retry_base_delay=0,
        retry_max_delay=0,
    )


@pytest.fixture(scope="function")
def make_work_item(db_session: Session, default_tenant: Tenant):
    """Factory creating committed work items.

    Usage:
        item = make_work_item(status=WorkItemStatus.ERROR)
    """

    def _make(
        status: WorkItemStatus = WorkItemStatus.PENDING,
        scope: int = WorkScope.ORDER.value,
        tenant_id: int = None,
        **fields,
    ) -> WorkItem:
        item = WorkItem(
            tenant_id=tenant_id or default_tenant.id,
            scope=int(scope),
            status=int(status),
            request_payload=fields.pop("request_payload", "{}"),
            **fields,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope="function")
def test_settings(encryption_key, secondary_tenant) -> Settings:
    """Settings for the HTTP boundary: signatures on, default tenant from API key."""
    return Settings(
        DATABASE_URL="sqlite://",
        WEBHOOK_ENCRYPTION_KEY=encryption_key,
        WEBHOOK_HMAC_KEY=TEST_HMAC_KEY,
        DEFAULT_TENANT_ID=None,
        SECONDARY_TENANT_ID=secondary_tenant.id,
        SECONDARY_TENANT_MARKETPLACE_MARKER=SECONDARY_MARKER,
        STORE_RETRY_BASE_DELAY_SECONDS=0,
        STORE_RETRY_MAX_DELAY_SECONDS=0,
    )


@pytest.fixture(scope="function")
def client(session_factory, db_session: Session, default_tenant: Tenant, test_settings: Settings):
    """Create a test client wired to the test database.

    Requests authenticate with X-API-Key of default_tenant.
    """
    from main import app
    from webhooks.router import get_session_factory

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: test_settings

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
