import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from activation_engine import domain  # noqa: F401
from activation_engine.depends import get_session
from tests.fakes import FakePaymentGateway


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create a file-backed SQLite database with all tables"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path / 'activation_test.db'}"

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
    """Session for seeding and inspecting rows outside of requests"""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def payment_gateway():
    return FakePaymentGateway()


@pytest_asyncio.fixture
async def client(session_factory, payment_gateway):
    """Create test client; every request gets its own session on the test database"""
    from activation_engine.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig, payment_gateway=payment_gateway)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
