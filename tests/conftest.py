"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import os

# WHY: Settings are read at import time; these must be in place before any
# rook module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-not-for-production")
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rook.db.session import get_db
from rook.main import app
from rook.models import Base
from rook.models.user import UserRole
from rook.services.storage import LocalBlobStore, get_blob_store

from tests.factories import OrganizationFactory, UserFactory


# Test database URL
# WHY: Using SQLite for tests eliminates external database dependencies
# and makes tests faster.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_savepoints(engine) -> None:
    """
    Let the sqlite driver run real SAVEPOINTs.

    WHY: The comment store and the bulk processor run each step in a
    nested transaction. pysqlite only starts transactions lazily, so
    SQLAlchemy has to emit BEGIN itself for the savepoints to nest.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state,
    preventing test pollution and ensuring test isolation.
    """
    engine = create_async_engine(TEST_ASYNC_DATABASE_URL, echo=False)
    _enable_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    """
    Session factory bound to the test engine.

    WHY: The device action worker opens its own sessions; tests hand it
    this factory instead of the application's.
    """
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    Yields:
        AsyncSession: Database session for the test
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    """Attachment store rooted in the test's temporary directory."""
    return LocalBlobStore(str(tmp_path / "attachments"))


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, blob_store: LocalBlobStore
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient allows testing FastAPI endpoints without running
    a real server, making tests faster and more reliable.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Tenants and users
# ============================================================================


@pytest_asyncio.fixture
async def org(db_session: AsyncSession):
    """Primary test organization."""
    return await OrganizationFactory.create(db_session, name="Acme Corp")


@pytest_asyncio.fixture
async def other_org(db_session: AsyncSession):
    """Second organization for cross-tenant checks."""
    return await OrganizationFactory.create(db_session, name="Globex")


@pytest_asyncio.fixture
async def user(db_session: AsyncSession, org):
    """Plain user in the primary organization."""
    return await UserFactory.create(db_session, org, email="user@acme.test", role=UserRole.USER)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession, org):
    """Second plain user in the primary organization."""
    return await UserFactory.create(db_session, org, email="other@acme.test", role=UserRole.USER)


@pytest_asyncio.fixture
async def agent(db_session: AsyncSession, org):
    """Agent in the primary organization."""
    return await UserFactory.create(db_session, org, email="agent@acme.test", role=UserRole.AGENT)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession, org):
    """Admin in the primary organization."""
    return await UserFactory.create(db_session, org, email="admin@acme.test", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def foreign_admin(db_session: AsyncSession, other_org):
    """Admin in the second organization."""
    return await UserFactory.create(
        db_session, other_org, email="admin@globex.test", role=UserRole.ADMIN
    )
