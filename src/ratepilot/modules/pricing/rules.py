"""Rule selection: which pricing rules apply to a season and room type."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable

from ratepilot.models.pricing import (
    ALL,
    PricingCondition,
    PricingConditionType,
    PricingRule,
    Season,
    SeasonalPricingConfig,
)
from ratepilot.modules.pricing.conditions import evaluate
from ratepilot.modules.pricing.signals import MarketSignals

logger = logging.getLogger(__name__)


@dataclass
class RuleSelection:
    rules: list[PricingRule] = field(default_factory=list)
    # Rule id -> number of non-required conditions that did not hold
    failed_optional: dict[str, int] = field(default_factory=dict)


@dataclass
class _ConditionContext:
    signals: MarketSignals
    room_type_id: str
    reference_date: date
    today: date


async def _lead_time(ctx: _ConditionContext) -> int:
    return (ctx.reference_date - ctx.today).days


_CONDITION_VALUES: dict[PricingConditionType, Callable[[_ConditionContext], Awaitable[Any]]] = {
    PricingConditionType.OCCUPANCY_FORECAST: lambda ctx: ctx.signals.occupancy_forecast(),
    PricingConditionType.BOOKING_PACE: lambda ctx: ctx.signals.booking_pace(),
    PricingConditionType.LEAD_TIME: _lead_time,
    PricingConditionType.COMPETITOR_RATE: lambda ctx: ctx.signals.competitor_rate(ctx.room_type_id),
    PricingConditionType.WEATHER_FORECAST: lambda ctx: ctx.signals.weather_forecast(),
    PricingConditionType.EVENT_PROXIMITY: lambda ctx: ctx.signals.event_proximity(),
}


def is_date_scoped(condition: PricingCondition) -> bool:
    """day_of_week conditions are checked per priced date by the calculator."""
    return condition.type == PricingConditionType.DAY_OF_WEEK


def rule_in_scope(rule: PricingRule, season: Season, room_type_id: str, today: date) -> bool:
    """Static filters: active, season, room type and validity window."""
    if not rule.active:
        return False
    if rule.season_id not in (season.id, ALL):
        return False
    if ALL not in rule.room_types and room_type_id not in rule.room_types:
        return False
    if rule.valid_from and today < rule.valid_from:
        return False
    if rule.valid_to and today > rule.valid_to:
        return False
    return True


async def select_applicable_rules(
    config: SeasonalPricingConfig,
    room_type_id: str,
    season: Season,
    reference_date: date,
    today: date,
    signals: MarketSignals,
) -> RuleSelection:
    """Rules that may adjust prices, highest priority first.

    The validity window is checked against ``today`` (the clock date), not the
    dates being priced. A failed required condition drops the rule; a failed
    optional one is only counted so the calculator can lower confidence.
    """
    ctx = _ConditionContext(signals, room_type_id, reference_date, today)
    selection = RuleSelection()

    for rule in config.pricing_rules:
        if not rule_in_scope(rule, season, room_type_id, today):
            continue

        qualified = True
        failed = 0
        for condition in rule.conditions:
            if is_date_scoped(condition):
                continue
            actual = await _CONDITION_VALUES[condition.type](ctx)
            if evaluate(condition.operator, actual, condition.value):
                continue
            if condition.required:
                logger.debug(
                    "Rule %s dropped: required %s %s %r failed (observed %r)",
                    rule.id, condition.type.value, condition.operator.value, condition.value, actual,
                )
                qualified = False
                break
            logger.info(
                "Rule %s: optional condition %s not met (observed %r)",
                rule.id, condition.type.value, actual,
            )
            failed += 1

        if qualified:
            selection.rules.append(rule)
            if failed:
                selection.failed_optional[rule.id] = failed

    selection.rules.sort(key=lambda r: r.priority, reverse=True)
    logger.info(
        "Selected %d rule(s) for %s/%s in season %s",
        len(selection.rules), config.property_id, room_type_id, season.id,
    )
    return selection
