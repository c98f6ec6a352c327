"""Tests for season resolution."""

from datetime import date

import pytest

from ratepilot.models.pricing import Season, SeasonalPricingConfig, SeasonCondition
from ratepilot.modules.pricing.defaults import build_default_config
from ratepilot.modules.pricing.seasons import pick_season, resolve_active_season
from ratepilot.modules.pricing.signals import AmbientConditions

AMBIENT = AmbientConditions(weather="sunny", occupancy=0.75, demand_level="high", event_proximity=0.0)


def _season(season_id, priority, window=None, name=None, active=True, conditions=None):
    if conditions is None:
        conditions = [SeasonCondition(type="date_range", operator="between", value=list(window))]
    return Season(
        id=season_id,
        name=name or season_id,
        start_conditions=conditions,
        base_multiplier=1.0,
        priority=priority,
        active=active,
    )


def test_default_seasons_by_date():
    config = build_default_config()
    assert pick_season(config, date(2026, 7, 4), AMBIENT).id == "peak-summer"
    assert pick_season(config, date(2026, 4, 10), AMBIENT).id == "shoulder-spring"
    assert pick_season(config, date(2026, 1, 15), AMBIENT).id == "off-season"
    assert pick_season(config, date(2026, 12, 24), AMBIENT).id == "off-season"


def test_gap_falls_back_to_first_season():
    # Sep 1 .. Oct 31 is not covered by any default season
    config = build_default_config()
    assert pick_season(config, date(2026, 9, 20), AMBIENT).id == "peak-summer"


def test_fallback_prefers_season_named_default():
    config = SeasonalPricingConfig(
        property_id="p",
        seasons=[
            _season("summer", 100, ("06-01", "08-31")),
            _season("base", 0, ("01-01", "01-01"), name="Default"),
        ],
    )
    assert pick_season(config, date(2026, 10, 1), AMBIENT).id == "base"


def test_highest_priority_wins_and_ties_keep_order():
    config = SeasonalPricingConfig(
        property_id="p",
        seasons=[
            _season("a", 50, ("01-01", "12-31")),
            _season("b", 80, ("07-01", "07-31")),
            _season("c", 80, ("06-01", "08-31")),
        ],
    )
    assert pick_season(config, date(2026, 7, 4), AMBIENT).id == "b"


def test_inactive_season_is_ignored():
    config = SeasonalPricingConfig(
        property_id="p",
        seasons=[
            _season("base", 0, ("01-01", "12-31")),
            _season("summer", 100, ("06-01", "08-31"), active=False),
        ],
    )
    assert pick_season(config, date(2026, 7, 4), AMBIENT).id == "base"


def test_all_start_conditions_must_hold():
    rainy_summer = _season(
        "rainy-summer",
        100,
        conditions=[
            SeasonCondition(type="month", operator="in", value=[6, 7, 8]),
            SeasonCondition(type="weather", operator="contains", value="rain"),
        ],
    )
    config = SeasonalPricingConfig(
        property_id="p", seasons=[_season("base", 0, ("01-01", "12-31")), rainy_summer]
    )
    assert pick_season(config, date(2026, 7, 4), AMBIENT).id == "base"
    rainy = AmbientConditions(weather="heavy rain", occupancy=0.5, demand_level="low", event_proximity=0.0)
    assert pick_season(config, date(2026, 7, 4), rainy).id == "rainy-summer"


def test_config_requires_a_season():
    with pytest.raises(ValueError):
        SeasonalPricingConfig(property_id="p", seasons=[])


@pytest.mark.asyncio
async def test_explicit_season_is_used(signals, forecast):
    config = build_default_config()
    season = await resolve_active_season(config, date(2026, 7, 4), signals, "off-season")
    assert season.id == "off-season"
    forecast.current_weather.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_explicit_season_resolves_normally(signals):
    config = build_default_config()
    season = await resolve_active_season(config, date(2026, 7, 4), signals, "no-such-season")
    assert season.id == "peak-summer"


@pytest.mark.asyncio
async def test_calendar_only_config_does_not_fetch_ambient(signals, forecast):
    await resolve_active_season(build_default_config(), date(2026, 7, 4), signals)
    forecast.current_weather.assert_not_called()
    forecast.current_occupancy.assert_not_called()


@pytest.mark.asyncio
async def test_weather_season_uses_forecast_service(signals, forecast):
    forecast.current_weather.return_value = "Thunderstorms and rain"
    config = SeasonalPricingConfig(
        property_id="p",
        seasons=[
            _season("base", 0, ("01-01", "12-31")),
            _season(
                "storm",
                10,
                conditions=[SeasonCondition(type="weather", operator="contains", value="rain")],
            ),
        ],
    )
    season = await resolve_active_season(config, date(2026, 7, 4), signals)
    assert season.id == "storm"
    forecast.current_weather.assert_awaited_once()
