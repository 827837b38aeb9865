import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401  (registers tables on SQLModel.metadata)
from src.adapter.services.cache_backend import LocalCacheBackend
from src.app.services.idempotency_cache import IdempotencyCache
from src.app.services.retry_classifier import RetryClassifier
from src.depends import (
    get_idempotency_cache,
    get_notification_service,
    get_payment_gateway,
    get_retry_classifier,
    get_session,
)
from tests.fixtures.app_config import TestConfig
from tests.fixtures.payment_gateway import FakePaymentGateway


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions really contend"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'settlement_test.db'}"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def payment_gateway():
    return FakePaymentGateway()


@pytest_asyncio.fixture
async def idempotency_cache():
    return IdempotencyCache(LocalCacheBackend(), ttl_seconds=600)


@pytest_asyncio.fixture
async def client(session_factory, payment_gateway, idempotency_cache):
    """Create test client with a session per request and in-memory collaborators"""
    from src.api.app import create_app

    app = create_app(TestConfig)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_idempotency_cache] = lambda: idempotency_cache
    app.dependency_overrides[get_notification_service] = lambda: None
    app.dependency_overrides[get_retry_classifier] = lambda: RetryClassifier(
        max_retries=3, base_delay_seconds=900, max_delay_seconds=21600
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
