"""Condition operators and season-condition value extraction.

Both season start conditions and rule conditions are evaluated through
``evaluate``. A comparison between incompatible values (``None`` against a
number, a string against a list bound, ...) is simply false.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Callable

from ratepilot.models.pricing import Operator, SeasonConditionType

if TYPE_CHECKING:
    from ratepilot.modules.pricing.signals import AmbientConditions

logger = logging.getLogger(__name__)


def _between(actual: Any, bounds: Any) -> bool:
    lo, hi = bounds
    if lo <= hi:
        return lo <= actual <= hi
    # Wrapping interval, e.g. ["11-01", "03-14"] or [5, 1]
    return actual >= lo or actual <= hi


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return expected.lower() in actual.lower()
    return expected in actual


_OPERATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUALS: lambda actual, expected: actual == expected,
    Operator.BETWEEN: _between,
    Operator.GREATER_THAN: lambda actual, expected: actual > expected,
    Operator.LESS_THAN: lambda actual, expected: actual < expected,
    Operator.IN: lambda actual, expected: actual in expected,
    Operator.CONTAINS: _contains,
}


def evaluate(operator: Operator, actual: Any, expected: Any) -> bool:
    """Apply ``operator`` to an observed value and a configured one."""
    check = _OPERATORS.get(operator)
    if check is None:
        logger.warning("Unknown condition operator %r", operator)
        return False
    try:
        return bool(check(actual, expected))
    except (TypeError, ValueError):
        return False


def _month_day(day: date, ambient: AmbientConditions) -> str:
    return day.strftime("%m-%d")


# Each extractor turns (reference date, ambient conditions) into the value a
# season condition of that type is compared against.
_SEASON_VALUES: dict[SeasonConditionType, Callable[[date, "AmbientConditions"], Any]] = {
    SeasonConditionType.DATE_RANGE: _month_day,
    SeasonConditionType.MONTH: lambda day, ambient: day.month,
    SeasonConditionType.DAY_OF_WEEK: lambda day, ambient: day.weekday(),
    SeasonConditionType.WEATHER: lambda day, ambient: ambient.weather,
    SeasonConditionType.OCCUPANCY: lambda day, ambient: ambient.occupancy,
    SeasonConditionType.DEMAND_LEVEL: lambda day, ambient: ambient.demand_level,
    SeasonConditionType.EVENT: lambda day, ambient: ambient.event_proximity,
}


def season_condition_value(
    condition_type: SeasonConditionType, day: date, ambient: AmbientConditions
) -> Any:
    """Observed value for a season condition. Custom conditions observe ``None``."""
    extractor = _SEASON_VALUES.get(condition_type)
    if extractor is None:
        return None
    return extractor(day, ambient)


def weekday_matches(operator: Operator, expected: Any, day: date) -> bool:
    """Evaluate a day_of_week condition for one date (Monday=0 .. Sunday=6)."""
    return evaluate(operator, day.weekday(), expected)
