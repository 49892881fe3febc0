from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.common.rate_limit import limiter
from libs.db.base import Base
from libs.db.session import get_async_db
from services.payments_service.app.main import create_app
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from tests.fakes import FakeCatalog, FakeEmailClient, FakeRazorpay


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh file-backed SQLite database per test.

    File-backed rather than in-memory so several sessions (racing callers)
    see the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def gateway() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()


@pytest_asyncio.fixture
async def payments_client(
    session_factory, catalog, gateway, email_client
) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the payments app with the database and every outbound
    client replaced by test doubles. Each request gets its own session.
    """
    app = create_app(
        razorpay_client=gateway, catalog_client=catalog, email_client=email_client
    )

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_test_db
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
