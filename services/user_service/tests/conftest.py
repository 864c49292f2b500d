"""Pytest fixtures for User Service tests."""

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from services.user_service.app.auth.jwt import create_access_token
from services.user_service.app.auth.models import Base, Role, UserModel
from services.user_service.app.auth.password import hash_password
from services.user_service.app.dependencies import (
    get_db,
    get_import_dispatcher,
    get_storage_client,
)
from services.user_service.app.imports.artifact import EnqueueReceipt, ImportOutcome
from services.user_service.app.imports.dispatcher import BulkImportDispatcher
from services.user_service.app.main import app
from shared.utils.storage import StorageClient

USER_PASSWORD = "testpassword123"


@pytest.fixture
async def db_engine():
    """Create in-memory SQLite database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


async def _create_user(session_factory, email: str, role: Role, **kwargs) -> UserModel:
    async with session_factory() as session:
        user = UserModel(
            email=email,
            hashed_password=hash_password(USER_PASSWORD),
            full_name=kwargs.pop("full_name", email.split("@")[0].title()),
            role=role.value,
            **kwargs,
        )
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def test_user(session_factory) -> UserModel:
    """Create a regular user."""
    return await _create_user(session_factory, "member@example.com", Role.USER, locale="en")


@pytest.fixture
async def admin_user(session_factory) -> UserModel:
    """Create an administrator."""
    return await _create_user(session_factory, "admin@example.com", Role.ADMIN, locale="en")


@pytest.fixture
async def inactive_user(session_factory) -> UserModel:
    return await _create_user(session_factory, "gone@example.com", Role.USER, is_active=False)


def auth_headers(user: UserModel) -> dict[str, str]:
    token = create_access_token(user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(test_user) -> dict[str, str]:
    return auth_headers(test_user)


@pytest.fixture
def admin_headers(admin_user) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def inactive_headers(inactive_user) -> dict[str, str]:
    return auth_headers(inactive_user)


@pytest.fixture
def mock_storage_client():
    """Create mock storage client for testing."""
    mock = MagicMock(spec=StorageClient)
    mock.put_object = AsyncMock(return_value=None)
    mock.get_object = AsyncMock(return_value=b"")
    mock.delete_object = AsyncMock(return_value=None)
    mock.generate_download_url = AsyncMock(
        side_effect=lambda key, expires_in=3600: f"http://files.test/{key}"
    )
    return mock


@pytest.fixture
def mock_sqs_client():
    """Create mock SQS client for testing."""
    mock = MagicMock()
    mock.send_message = AsyncMock(return_value="test-message-id-123")
    mock.receive_messages = AsyncMock(return_value=[])
    mock.delete_message = AsyncMock(return_value=None)
    mock.change_visibility = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_bulk_create():
    """Inline importer double returning an empty outcome."""
    return AsyncMock(return_value=ImportOutcome(created=2))


@pytest.fixture
def mock_import_queue():
    """Queue double acknowledging every job."""
    mock = MagicMock()
    mock.enqueue = AsyncMock(
        return_value=EnqueueReceipt(
            job_id="2f1c6a52-job",
            queue_name="createUserByCsv",
        )
    )
    return mock


@pytest.fixture
def import_dispatcher(mock_bulk_create, mock_import_queue) -> BulkImportDispatcher:
    return BulkImportDispatcher(mock_bulk_create, mock_import_queue)


@pytest.fixture
async def test_client(
    session_factory,
    mock_storage_client,
    import_dispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with mocked dependencies."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_client] = lambda: mock_storage_client
    app.dependency_overrides[get_import_dispatcher] = lambda: import_dispatcher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
