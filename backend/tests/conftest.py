"""Pytest fixtures for VendorSync backend tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import vendorsync.models  # noqa: F401
from vendorsync.config import Settings
from vendorsync.database import Base, get_db
from vendorsync.limiter import limiter
from vendorsync.main import app
from vendorsync.models import VendorAccount

# Test database URL - in-memory SQLite, tables built from the ORM metadata
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    """Test settings: credentials set, every delay zeroed."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        vendor_client_id="client-id",
        vendor_client_secret="client-secret",
        page_delay_seconds=0,
        final_page_delay_seconds=0,
        segment_delay_seconds=0,
        stream_delay_seconds=0,
        throttle_initial_delay_seconds=0,
        report_poll_interval_seconds=0,
        report_max_wait_seconds=0,
        scheduler_enabled=False,
        debug=True,
    )


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine for testing."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def account(db_session: AsyncSession) -> VendorAccount:
    """An authorized vendor account for the US marketplace."""
    vendor_account = VendorAccount(
        id="acct-1",
        name="Acme Vendor US",
        country_code="US",
        marketplace_id="ATVPDKIKX0DER",
        access_token="Atza|test",
        is_authorized=True,
        archived=False,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )
    db_session.add(vendor_account)
    await db_session.commit()
    return vendor_account


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def sample_purchase_orders() -> list[dict[str, Any]]:
    """Sample getPurchaseOrders records."""
    return [
        {
            "purchaseOrderNumber": "4Z32PABC",
            "purchaseOrderState": "Acknowledged",
            "orderDetails": {
                "purchaseOrderDate": "2024-07-20T08:15:00Z",
                "sellingParty": {"partyId": "ABCDE"},
                "shipToParty": {"partyId": "ABQ1"},
                "items": [
                    {"itemSequenceNumber": "1", "amazonProductIdentifier": "B07DFVDRAB"},
                    {"itemSequenceNumber": "2", "amazonProductIdentifier": "B07DFYF5CK"},
                ],
            },
        },
        {
            "purchaseOrderNumber": "4Z32PDEF",
            "purchaseOrderState": "New",
            "orderDetails": {
                "purchaseOrderDate": "2024-07-21T10:00:00Z",
                "sellingParty": {"partyId": "ABCDE"},
                "shipToParty": {"partyId": "PHX3"},
                "items": [{"itemSequenceNumber": "1", "amazonProductIdentifier": "B01LNPQ5Y2"}],
            },
        },
    ]


@pytest.fixture
def sample_datetime() -> datetime:
    """Sample datetime for testing."""
    return datetime(2024, 8, 3, 12, 0, 0, tzinfo=UTC)
