"""Shared test fixtures."""

from __future__ import annotations

import os
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"  # In-memory DB for tests

import ratepilot.models.config_record  # noqa: F401
from ratepilot.context import EngineContext, create_context
from ratepilot.database import Base
from ratepilot.events import EventBus
from ratepilot.models.pricing import NotificationChannel, SeasonalPricingConfig
from ratepilot.models.results import DateRange
from ratepilot.modules.collaborators.clients import Collaborators
from ratepilot.modules.pricing.defaults import build_default_config
from ratepilot.modules.pricing.service import SeasonalPricingService
from ratepilot.modules.pricing.signals import MarketSignals, SignalFallbacks

PROPERTY_ID = "prop-1"
ROOM = "deluxe"

# Wednesday; the default weekend rule is valid from 2024-01-01
NOW = datetime(2026, 7, 1, 9, 0, tzinfo=timezone.utc)

# Saturday Jul 4 .. Tuesday Jul 7 2026, inside peak summer
SUMMER_WEEK = DateRange(date(2026, 7, 4), date(2026, 7, 7))


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rates() -> AsyncMock:
    rates = AsyncMock()
    rates.get_base_rate.return_value = 200.0
    rates.get_last_year_rate.return_value = 190.0
    rates.update_rate.return_value = None
    return rates


@pytest.fixture
def forecast() -> AsyncMock:
    forecast = AsyncMock()
    forecast.occupancy_forecast.return_value = 0.80
    forecast.booking_pace.return_value = 0.90
    forecast.current_occupancy.return_value = 0.75
    forecast.current_demand_level.return_value = "high"
    forecast.current_weather.return_value = "sunny"
    forecast.weather_forecast.return_value = "sunny"
    forecast.event_proximity.return_value = 0.0
    return forecast


@pytest.fixture
def competitors() -> AsyncMock:
    competitors = AsyncMock()
    competitors.get_competitor_rate.return_value = 210.0
    return competitors


@pytest.fixture
def collaborators(rates, forecast, competitors) -> Collaborators:
    return Collaborators(rates=rates, forecast=forecast, competitors=competitors)


@pytest.fixture
def sent_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def http_client(sent_requests) -> httpx.AsyncClient:
    """Client whose requests are recorded and answered with 200."""

    def handler(request: httpx.Request) -> httpx.Response:
        sent_requests.append(request)
        return httpx.Response(200, json={})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def summer_config() -> SeasonalPricingConfig:
    """Default config, notifying only the dashboard so no SMTP is attempted."""
    config = build_default_config(PROPERTY_ID)
    config.notifications.channels = [NotificationChannel(type="dashboard")]
    return config


@pytest.fixture
def ctx(collaborators, http_client, clock, summer_config) -> EngineContext:
    ctx = create_context(collaborators, http_client=http_client, clock=clock, seed=False)
    ctx.configs[PROPERTY_ID] = summer_config
    return ctx


@pytest.fixture
def service(ctx) -> SeasonalPricingService:
    return SeasonalPricingService(ctx)


@pytest.fixture
def signals(collaborators) -> MarketSignals:
    return MarketSignals(collaborators, PROPERTY_ID, SUMMER_WEEK, fallbacks=SignalFallbacks(), timeout=1.0)


@pytest.fixture
def event_bus():
    """Create a fresh event bus for each test."""
    return EventBus()


@pytest.fixture
def session_factory():
    """Create a fresh in-memory database for each test, shared across threads."""
    engine = create_engine(
        "sqlite://", echo=False, connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()
