"""Test fixtures for the backend."""
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from taskflow.config import Settings
from taskflow.credentials import CredentialStore, build_password_context
from taskflow.main import create_app
from taskflow.storage import DatabaseStorage, MemoryStorage, Storage
from taskflow.tasks import TaskRepository

from .fakes import FakeClock

# Lowest allowed cost keeps the suite fast.
TEST_HASH_ROUNDS = 1000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture(params=["memory", "database"])
async def storage(request, tmp_path) -> AsyncIterator[Storage]:
    """Every storage-level test runs against both backends."""

    if request.param == "memory":
        yield MemoryStorage()
        return

    backend = DatabaseStorage.from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await backend.create_schema()
    yield backend
    await backend.drop_schema()
    await backend.close()


@pytest.fixture
def credentials(storage: Storage, clock: FakeClock) -> CredentialStore:
    return CredentialStore(storage, build_password_context(TEST_HASH_ROUNDS), clock=clock)


@pytest.fixture
def repo(storage: Storage, clock: FakeClock) -> TaskRepository:
    return TaskRepository(storage, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key="test-secret",
        storage_backend="memory",
        password_hash_rounds=TEST_HASH_ROUNDS,
    )


@pytest.fixture
def app(settings: Settings, storage: Storage) -> FastAPI:
    return create_app(settings, storage)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an HTTP client for integration tests."""

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def other_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """A second browser with its own cookie jar."""

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
