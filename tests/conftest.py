"""
Pytest configuration and fixtures
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from wallet_api.api.main import create_app
from wallet_api.auth.jwt_auth import create_admin_session_token
from wallet_api.config.settings import Settings
from wallet_api.database.connection import Database
from wallet_api.database.seed import initialize_token_configs, initialize_app_settings
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.services.ledger import LedgerService
from wallet_api.services.market_quotes import MarketQuoteCache
from wallet_api.services.notifications import NotificationService
from wallet_api.services.price_engine import PriceEngine
from tests.fixtures.sample_data import ManualClock, FakeQuoteSource, START_TIME


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield


@pytest.fixture
def database():
    """In-memory SQLite database with tables created"""
    db = Database()
    db.initialize("sqlite:///:memory:")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def test_db(database: Database):
    """Session on a seeded in-memory database"""
    session = next(database.get_session())
    initialize_token_configs(session, now=START_TIME)
    initialize_app_settings(session)
    yield session
    session.close()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def quote_source():
    return FakeQuoteSource()


@pytest.fixture
def quote_cache(quote_source, clock):
    return MarketQuoteCache(quote_source, clock, cache_seconds=60, stale_factor=2)


@pytest.fixture
def price_engine(quote_cache, clock):
    return PriceEngine(quote_cache, clock, synthetic_symbol="AMC", min_interval_minutes=1)


@pytest.fixture
def delivery():
    from unittest.mock import AsyncMock
    return AsyncMock()


@pytest.fixture
def notifier(delivery):
    return NotificationService(delivery, enabled=True)


@pytest.fixture
def ledger(price_engine, notifier):
    return LedgerService(price_engine, notifier, synthetic_symbol="AMC", max_retries=3)


@pytest.fixture
def app_settings():
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        ADMIN_PASSWORD="letmein",
        BACKGROUND_TASKS_ENABLED=False,
        NOTIFICATIONS_ENABLED=True,
    )


@pytest.fixture
def app(app_settings, clock, quote_source, delivery):
    return create_app(
        app_settings=app_settings,
        clock=clock,
        quote_source=quote_source,
        notification_delivery=delivery
    )


@pytest.fixture
def client(app):
    """Test client with the lifespan (database, seed) running"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_db(app, client):
    """Session on the running app's database"""
    session: Session = next(app.state.database.get_session())
    yield session
    session.close()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_session_token()}"}
