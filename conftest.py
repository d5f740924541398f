import inspect
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from valet_quotes.main import app
from valet_quotes.api.deps import get_history_store, get_estimator
from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand
from valet_quotes.core.redis import set_redis
from valet_quotes.models.base import Base
from valet_quotes.schemas.history import HistoricalQuoteRecord
from valet_quotes.schemas.quote import QuoteRequest
from valet_quotes.services.history import InMemoryHistoricalStore


# Thursday afternoon in spring: every demand factor is exactly 1.0
NEUTRAL_NOW = datetime(2025, 4, 17, 14, 0, tzinfo=timezone.utc)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def neutral_now():
    return NEUTRAL_NOW


@pytest.fixture
def event_request():
    return QuoteRequest(
        service_type=ServiceType.EVENT,
        vehicle_category=VehicleCategory.STANDARD,
        location="Maple Grove residential area",
        duration_band=DurationBand.ONE_TO_TWO,
    )


@pytest.fixture
def make_record():
    """Build HistoricalQuoteRecord instances with sensible defaults"""
    counter = {"id": 0}

    def _make_record(days_ago=1, **kwargs):
        counter["id"] += 1
        data = {
            "id": counter["id"],
            "date": NEUTRAL_NOW - timedelta(days=days_ago),
            "service_type": ServiceType.EVENT,
            "vehicle_category": VehicleCategory.STANDARD,
            "location": "Maple Grove residential area",
            "duration_band": DurationBand.ONE_TO_TWO,
            "quoted_price": 50.0,
            "final_price": 50.0,
            "accepted": True,
            "conversion_time_seconds": 600,
            "satisfaction_score": 4.8,
        }
        data.update(kwargs)
        return HistoricalQuoteRecord(**data)

    return _make_record


@pytest.fixture
def memory_store():
    return InMemoryHistoricalStore()


@pytest.fixture
async def sql_session():
    engine = create_async_engine(TEST_DATABASE_URL, future=True, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def fake_redis():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    set_redis(client)
    yield client
    set_redis(None)
    await client.aclose()


@pytest.fixture
async def test_client(memory_store, fake_redis):
    app.dependency_overrides[get_history_store] = lambda: memory_store
    app.dependency_overrides[get_estimator] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def valid_history_data():
    return {
        "service_type": "event",
        "vehicle_category": "standard",
        "location": "Downtown convention center",
        "duration_band": "2-4",
        "quoted_price": 72.0,
        "final_price": 70.0,
        "accepted": True,
        "conversion_time_seconds": 900,
        "satisfaction_score": 4.6,
    }


@pytest.fixture
def valid_quote_data():
    return {
        "service_type": "restaurant",
        "vehicle_category": "luxury",
        "location": "Downtown bistro",
        "duration_band": "1-2",
    }


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "pricing: marks tests related to pricing"
    )
    config.addinivalue_line(
        "markers", "history: marks tests related to the historical store"
    )
    config.addinivalue_line(
        "markers", "estimator: marks tests related to the external estimator"
    )
    config.addinivalue_line(
        "markers", "analytics: marks tests related to analytics reports"
    )
    config.addinivalue_line(
        "markers", "idempotency: marks tests related to idempotency"
    )


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to handle asyncio tests
    """
    for item in items:
        if inspect.iscoroutinefunction(getattr(item, "function", None)):
            item.add_marker(pytest.mark.asyncio)
