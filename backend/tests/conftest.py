"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.reporting import get_price_service
from api.transactions import get_accounting_service
from database import Base, get_db
from main import app
from services.events import EventBus
from services.lot_accounting_service import LotAccountingService
from services.price_service import PriceService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    account_holder,
    other_holder,
)
from tests.fixtures.mocks import EventRecorder, MockMarketDataProvider


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="session_factory")
def session_factory_fixture(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(name="db")
def db_fixture(session_factory):
    """Create an in-memory SQLite database for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="event_bus")
def event_bus_fixture():
    return EventBus()


@pytest.fixture(name="events")
def events_fixture(event_bus):
    """Record every event published on the test bus."""
    recorder = EventRecorder()
    event_bus.subscribe("*", recorder)
    return recorder


@pytest.fixture(name="service")
def service_fixture(event_bus):
    return LotAccountingService(event_bus=event_bus)


@pytest.fixture(name="market_data")
def market_data_fixture():
    return MockMarketDataProvider()


@pytest.fixture(name="client")
def client_fixture(db, service, market_data):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    price_service = PriceService(provider=market_data, cache_ttl=0)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_accounting_service] = lambda: service
    app.dependency_overrides[get_price_service] = lambda: price_service
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
