"""External services the pricing engine reads from and writes to.

The engine only depends on the protocols below. The ``Http*`` classes are
thin adapters for the property-management REST API; any of them can be
swapped for another implementation (tests use ``AsyncMock``s).

Adapters raise on transport or HTTP errors. Substituting fallback values is
the caller's job (see ``ratepilot.modules.pricing.signals``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import httpx

from ratepilot.config import get_env, get_section
from ratepilot.models.results import DateRange

logger = logging.getLogger(__name__)


class RatesStore(Protocol):
    async def get_base_rate(self, property_id: str, room_type_id: str, day: date) -> float: ...

    async def get_last_year_rate(self, property_id: str, room_type_id: str, day: date) -> float: ...

    async def update_rate(self, property_id: str, room_type_id: str, day: date, rate: float) -> None: ...


class ForecastService(Protocol):
    async def occupancy_forecast(self, property_id: str, date_range: DateRange) -> float: ...

    async def booking_pace(self, property_id: str, date_range: DateRange) -> float: ...

    async def current_occupancy(self, property_id: str) -> float: ...

    async def current_demand_level(self, property_id: str) -> str: ...

    async def current_weather(self, property_id: str) -> str: ...

    async def weather_forecast(self, property_id: str, date_range: DateRange) -> str: ...

    async def event_proximity(self, property_id: str, date_range: DateRange) -> float: ...


class CompetitorRatesService(Protocol):
    async def get_competitor_rate(self, property_id: str, room_type_id: str) -> float: ...


@dataclass
class Collaborators:
    rates: RatesStore
    forecast: ForecastService
    competitors: CompetitorRatesService


def _range_payload(property_id: str, date_range: DateRange) -> dict[str, str]:
    return {
        "property_id": property_id,
        "start": date_range.start.isoformat(),
        "end": date_range.end.isoformat(),
    }


class _HttpAdapter:
    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._client.post(f"{self._base_url}{path}", json=payload)
        resp.raise_for_status()
        return resp.json()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        resp = await self._client.get(f"{self._base_url}{path}", params=params)
        resp.raise_for_status()
        return resp.json()


def _same_day_last_year(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:  # Feb 29
        return day.replace(year=day.year - 1, day=28)


def _field(data: dict[str, Any], key: str, path: str) -> Any:
    if data.get(key) is None:
        raise ValueError(f"Response from {path} is missing {key!r}")
    return data[key]


class HttpRatesStore(_HttpAdapter):
    """Rates endpoints under ``/properties/{id}/rates/{room_type}``."""

    async def get_base_rate(self, property_id: str, room_type_id: str, day: date) -> float:
        path = f"/properties/{property_id}/rates/{room_type_id}"
        data = await self._get(path, {"date": day.isoformat()})
        return float(_field(data, "base_rate", path))

    async def get_last_year_rate(self, property_id: str, room_type_id: str, day: date) -> float:
        path = f"/properties/{property_id}/rates/{room_type_id}/history"
        data = await self._get(path, {"date": _same_day_last_year(day).isoformat()})
        return float(_field(data, "rate", path))

    async def update_rate(self, property_id: str, room_type_id: str, day: date, rate: float) -> None:
        path = f"/properties/{property_id}/rates/{room_type_id}"
        resp = await self._client.put(
            f"{self._base_url}{path}",
            json={"date": day.isoformat(), "rate": rate},
        )
        resp.raise_for_status()
        logger.debug("Updated rate %s/%s %s -> %.2f", property_id, room_type_id, day, rate)


class HttpForecastService(_HttpAdapter):
    """Analytics endpoints (occupancy, pace, demand, weather, events)."""

    async def occupancy_forecast(self, property_id: str, date_range: DateRange) -> float:
        data = await self._post("/occupancy-forecast", _range_payload(property_id, date_range))
        return float(_field(data, "average_occupancy", "/occupancy-forecast"))

    async def booking_pace(self, property_id: str, date_range: DateRange) -> float:
        data = await self._post("/booking-pace", _range_payload(property_id, date_range))
        return float(_field(data, "pace", "/booking-pace"))

    async def current_occupancy(self, property_id: str) -> float:
        data = await self._get("/occupancy", {"property_id": property_id})
        return float(_field(data, "occupancy", "/occupancy"))

    async def current_demand_level(self, property_id: str) -> str:
        data = await self._get("/demand", {"property_id": property_id})
        return str(_field(data, "level", "/demand"))

    async def current_weather(self, property_id: str) -> str:
        data = await self._get("/weather", {"property_id": property_id})
        return str(_field(data, "condition", "/weather"))

    async def weather_forecast(self, property_id: str, date_range: DateRange) -> str:
        data = await self._post("/weather-forecast", _range_payload(property_id, date_range))
        return str(_field(data, "condition", "/weather-forecast"))

    async def event_proximity(self, property_id: str, date_range: DateRange) -> float:
        data = await self._post("/event-proximity", _range_payload(property_id, date_range))
        return float(_field(data, "score", "/event-proximity"))


class HttpCompetitorRatesService(_HttpAdapter):
    async def get_competitor_rate(self, property_id: str, room_type_id: str) -> float:
        path = f"/{property_id}/{room_type_id}"
        data = await self._get(path)
        return float(_field(data, "rate", path))


def build_http_collaborators(client: httpx.AsyncClient) -> Collaborators:
    """Wire the REST adapters from config.yaml, overridable through the environment."""
    cfg = get_section("collaborators")
    rates_url = get_env("RATES_API_URL") or cfg.get("rates_base_url", "http://localhost:8080/api/os")
    forecast_url = get_env("FORECAST_API_URL") or cfg.get(
        "forecast_base_url", "http://localhost:8080/api/os/analytics"
    )
    competitor_url = get_env("COMPETITOR_API_URL") or cfg.get(
        "competitor_base_url", "http://localhost:8080/api/os/competitors"
    )
    logger.info("Collaborators: rates=%s forecast=%s competitors=%s", rates_url, forecast_url, competitor_url)
    return Collaborators(
        rates=HttpRatesStore(client, rates_url),
        forecast=HttpForecastService(client, forecast_url),
        competitors=HttpCompetitorRatesService(client, competitor_url),
    )
