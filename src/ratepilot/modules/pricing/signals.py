"""Market signals for one pricing request.

Every collaborator read goes through ``MarketSignals``: the call is bounded by
a timeout, a failure is replaced by the configured fallback, and the signal
is recorded as degraded so confidence can be lowered. Values are cached for
the lifetime of the request, so a signal read twice is only fetched once and
both readers see the same value.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable

from ratepilot.config import get_section
from ratepilot.models.results import DateRange
from ratepilot.modules.collaborators.clients import Collaborators

logger = logging.getLogger(__name__)


@dataclass
class SignalFallbacks:
    base_rate: float = 150.0
    last_year_factor: float = 1.05
    competitor_rate: float = 180.0
    occupancy_forecast: float = 0.70
    booking_pace: float = 0.85
    current_occupancy: float = 0.75
    demand_level: str = "high"
    weather: str = "sunny"
    event_proximity: float = 0.0

    @classmethod
    def from_settings(cls) -> SignalFallbacks:
        cfg = get_section("fallbacks")
        known = {k: v for k, v in cfg.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class AmbientConditions:
    """Current-state signals season conditions are matched against."""

    weather: str
    occupancy: float
    demand_level: str
    event_proximity: float


def default_timeout() -> float:
    return float(get_section("collaborators").get("timeout_seconds", 5))


@dataclass
class MarketSignals:
    collaborators: Collaborators
    property_id: str
    date_range: DateRange
    fallbacks: SignalFallbacks = field(default_factory=SignalFallbacks.from_settings)
    timeout: float = field(default_factory=default_timeout)
    degraded: set[str] = field(default_factory=set)
    _cache: dict[tuple, Any] = field(default_factory=dict, init=False, repr=False)

    async def _read(
        self, key: tuple, call: Callable[[], Awaitable[Any]], fallback: Any
    ) -> Any:
        if key in self._cache:
            return self._cache[key]
        try:
            value = await asyncio.wait_for(call(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "%s timed out after %.1fs for %s, using fallback %r",
                key[0], self.timeout, self.property_id, fallback,
            )
            self.degraded.add(key[0])
            value = fallback
        except Exception as e:
            logger.warning(
                "%s unavailable for %s (%s), using fallback %r",
                key[0], self.property_id, e, fallback,
            )
            self.degraded.add(key[0])
            value = fallback
        self._cache[key] = value
        return value

    # --- Forecast ---

    async def occupancy_forecast(self) -> float:
        forecast = self.collaborators.forecast
        return await self._read(
            ("occupancy_forecast",),
            lambda: forecast.occupancy_forecast(self.property_id, self.date_range),
            self.fallbacks.occupancy_forecast,
        )

    async def booking_pace(self) -> float:
        forecast = self.collaborators.forecast
        return await self._read(
            ("booking_pace",),
            lambda: forecast.booking_pace(self.property_id, self.date_range),
            self.fallbacks.booking_pace,
        )

    async def weather_forecast(self) -> str:
        forecast = self.collaborators.forecast
        return await self._read(
            ("weather_forecast",),
            lambda: forecast.weather_forecast(self.property_id, self.date_range),
            self.fallbacks.weather,
        )

    async def event_proximity(self) -> float:
        forecast = self.collaborators.forecast
        return await self._read(
            ("event_proximity",),
            lambda: forecast.event_proximity(self.property_id, self.date_range),
            self.fallbacks.event_proximity,
        )

    async def ambient(self) -> AmbientConditions:
        """Current weather, occupancy, demand and event proximity."""
        forecast = self.collaborators.forecast
        weather = await self._read(
            ("current_weather",),
            lambda: forecast.current_weather(self.property_id),
            self.fallbacks.weather,
        )
        occupancy = await self._read(
            ("current_occupancy",),
            lambda: forecast.current_occupancy(self.property_id),
            self.fallbacks.current_occupancy,
        )
        demand = await self._read(
            ("current_demand_level",),
            lambda: forecast.current_demand_level(self.property_id),
            self.fallbacks.demand_level,
        )
        return AmbientConditions(
            weather=weather,
            occupancy=occupancy,
            demand_level=demand,
            event_proximity=await self.event_proximity(),
        )

    # --- Rates ---

    async def competitor_rate(self, room_type_id: str) -> float:
        competitors = self.collaborators.competitors
        return await self._read(
            ("competitor_rate", room_type_id),
            lambda: competitors.get_competitor_rate(self.property_id, room_type_id),
            self.fallbacks.competitor_rate,
        )

    async def base_rate(self, room_type_id: str, day: date) -> float:
        rates = self.collaborators.rates
        return await self._read(
            ("base_rate", room_type_id, day),
            lambda: rates.get_base_rate(self.property_id, room_type_id, day),
            self.fallbacks.base_rate,
        )

    async def last_year_rate(self, room_type_id: str, day: date, base: float) -> float:
        rates = self.collaborators.rates
        return await self._read(
            ("last_year_rate", room_type_id, day),
            lambda: rates.get_last_year_rate(self.property_id, room_type_id, day),
            round(base * self.fallbacks.last_year_factor, 2),
        )
