# tests/conftest.py
import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from unittest.mock import AsyncMock

from ledgersync import models  # noqa: F401
from ledgersync.core.config import Settings
from ledgersync.database import Base
from ledgersync.integrations.registry import ProviderRegistry
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.sync_executor import SyncExecutor
from tests.mocks.mock_provider import MockProvider

WEBHOOK_VERIFIER = "test-verifier-token"

# Wednesday, inside the 07:00-19:00 window
BUSINESS_TIME = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock; call it to read the current time."""

    def __init__(self, now: datetime = BUSINESS_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime):
        self.now = now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def sign(body: bytes, token: str = WEBHOOK_VERIFIER) -> str:
    """Signature as Intuit sends it: base64 HMAC-SHA256 of the raw body."""
    return base64.b64encode(hmac.new(token.encode(), body, hashlib.sha256).digest()).decode()


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        QBO_WEBHOOK_VERIFIER=WEBHOOK_VERIFIER,
        BUSINESS_TIMEZONE="UTC",
        SYNC_RETRY_BACKOFF_SECONDS=0,
        SYNC_SCHEDULE_ENABLED=False,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def registry(mock_provider):
    registry = ProviderRegistry()
    registry.register_provider("quickbooks", mock_provider)
    return registry


@pytest.fixture
def monitoring(settings, clock):
    return MonitoringService(settings=settings, clock=clock, registry=CollectorRegistry())


@pytest.fixture
def executor(session_factory, registry, monitoring, clock):
    return SyncExecutor(session_factory, registry, monitoring=monitoring, clock=clock)


@pytest.fixture
def app(settings, session_factory, registry, clock):
    """App with services wired onto app.state; the scheduler is never started."""
    from ledgersync.main import create_app, init_app_state

    app = create_app(lifespan_handler=None)
    init_app_state(app, settings, session_factory, registry, clock=clock, sleep=AsyncMock())
    return app


@pytest_asyncio.fixture
async def client(app):
    """HTTPX async test client against the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
