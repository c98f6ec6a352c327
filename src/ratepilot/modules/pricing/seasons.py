"""Season resolution."""

from __future__ import annotations

import logging
from datetime import date

from ratepilot.models.pricing import Season, SeasonalPricingConfig, SeasonConditionType
from ratepilot.modules.pricing.conditions import evaluate, season_condition_value
from ratepilot.modules.pricing.signals import AmbientConditions, MarketSignals

logger = logging.getLogger(__name__)

_AMBIENT_TYPES = {
    SeasonConditionType.WEATHER,
    SeasonConditionType.OCCUPANCY,
    SeasonConditionType.DEMAND_LEVEL,
    SeasonConditionType.EVENT,
}

# Stand-in for configs whose seasons only look at the calendar
_UNOBSERVED = AmbientConditions(weather="", occupancy=0.0, demand_level="", event_proximity=0.0)


def _uses_ambient(config: SeasonalPricingConfig) -> bool:
    return any(
        c.type in _AMBIENT_TYPES
        for s in config.seasons
        if s.active
        for c in s.start_conditions
    )


def season_matches(season: Season, day: date, ambient: AmbientConditions) -> bool:
    """True when every start condition holds. Condition weights are not used."""
    return all(
        evaluate(c.operator, season_condition_value(c.type, day, ambient), c.value)
        for c in season.start_conditions
    )


def pick_season(
    config: SeasonalPricingConfig, day: date, ambient: AmbientConditions
) -> Season:
    """Highest-priority active season whose start conditions hold on ``day``.

    Ties keep configuration order. When nothing qualifies the config's default
    season is used, so this never fails for a valid config.
    """
    best: Season | None = None
    for season in config.seasons:
        if not season.active or not season_matches(season, day, ambient):
            continue
        if best is None or season.priority > best.priority:
            best = season
    if best is None:
        best = config.default_season()
        logger.info(
            "No season matched %s for %s, falling back to %s",
            day, config.property_id, best.id,
        )
    return best


async def resolve_active_season(
    config: SeasonalPricingConfig,
    reference_date: date,
    signals: MarketSignals,
    explicit_season_id: str | None = None,
) -> Season:
    """Season to price with. An explicit id that exists in the config wins."""
    if explicit_season_id:
        season = config.season_by_id(explicit_season_id)
        if season is not None:
            return season
        logger.warning(
            "Requested season %r not in config for %s, resolving instead",
            explicit_season_id, config.property_id,
        )
    if _uses_ambient(config):
        ambient = await signals.ambient()
    else:
        ambient = _UNOBSERVED
    season = pick_season(config, reference_date, ambient)
    logger.debug("Resolved season %s for %s on %s", season.id, config.property_id, reference_date)
    return season
