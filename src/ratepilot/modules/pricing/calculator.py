"""Per-date price calculation.

The calculator is pure: base rates and reference rates are fetched by the
caller, so the same inputs always yield the same adjustments.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Protocol

from ratepilot.config import get_section
from ratepilot.exceptions import UnsupportedAlgorithmError
from ratepilot.models.pricing import (
    AdjustmentLimits,
    AdjustmentTarget,
    AdjustmentType,
    Algorithm,
    PriceAdjustment,
    PricingRule,
    Season,
    SeasonalPricingConfig,
)
from ratepilot.models.results import PriceAdjustmentResult
from ratepilot.modules.pricing.conditions import weekday_matches
from ratepilot.modules.pricing.rules import is_date_scoped

logger = logging.getLogger(__name__)

NO_RULE = "none"

# Occupancy the dynamic adjustment is neutral at
REFERENCE_OCCUPANCY = 0.70


@dataclass
class ReferenceRates:
    """Rates adjustments can target besides the base rate."""

    competitor_rate: float = 180.0
    last_year_rates: dict[date, float] = field(default_factory=dict)
    last_year_factor: float = 1.05

    def last_year(self, day: date, base: float) -> float:
        return self.last_year_rates.get(day, base * self.last_year_factor)


@dataclass
class PricingInputs:
    """Everything besides rules and season that one calculation needs."""

    base_rates: dict[date, float]
    reference: ReferenceRates = field(default_factory=ReferenceRates)
    occupancy_forecast: float = REFERENCE_OCCUPANCY
    degraded_signals: int = 0
    failed_optional: dict[str, int] = field(default_factory=dict)


# --- Formulas ---


def _stepped(target: float, value: float, step: float) -> float:
    raw = target * (1 + value / 100)
    if raw >= target:
        return math.ceil(raw / step) * step
    return math.floor(raw / step) * step


def apply_formula(
    adjustment: PriceAdjustment, target: float, occupancy_forecast: float, step: float = 5.0
) -> float:
    formulas: dict[AdjustmentType, Callable[[float, float], float]] = {
        AdjustmentType.PERCENTAGE: lambda t, v: t * (1 + v / 100),
        AdjustmentType.FIXED_AMOUNT: lambda t, v: t + v,
        AdjustmentType.MULTIPLIER: lambda t, v: t * v,
        AdjustmentType.STEPPED: lambda t, v: _stepped(t, v, step),
        AdjustmentType.DYNAMIC: lambda t, v: t * (1 + v / 100 * occupancy_forecast / REFERENCE_OCCUPANCY),
    }
    return formulas[adjustment.type](target, adjustment.value)


def resolve_target(
    target: AdjustmentTarget, base: float, running: float, day: date, reference: ReferenceRates
) -> float:
    if target == AdjustmentTarget.BASE_RATE:
        return base
    if target == AdjustmentTarget.CURRENT_RATE:
        return running
    if target == AdjustmentTarget.COMPETITOR_RATE:
        return reference.competitor_rate
    return reference.last_year(day, base)


def within_limits(candidate: float, base: float, limits: AdjustmentLimits) -> bool:
    """Bounds check against the base rate. min_increase/min_decrease are not enforced."""
    if candidate < limits.absolute_min:
        return False
    if limits.absolute_max is not None and candidate > limits.absolute_max:
        return False
    if base <= 0:
        return True
    change_pct = (candidate - base) / base * 100
    if change_pct > 0 and change_pct > limits.max_increase:
        return False
    if change_pct < 0 and -change_pct > limits.max_decrease:
        return False
    return True


# --- Strategies ---


class AdjustmentStrategy(Protocol):
    algorithm: Algorithm

    def compute(
        self, rules: list[PricingRule], season: Season, inputs: PricingInputs
    ) -> list[PriceAdjustmentResult]: ...


class RuleBasedStrategy:
    """Walk rules by priority and take the first adjustment that passes its limits."""

    algorithm = Algorithm.RULE_BASED

    def __init__(self) -> None:
        self._config = get_section("pricing")

    @property
    def base_confidence(self) -> float:
        return self._config.get("base_confidence", 0.85)

    def compute(
        self, rules: list[PricingRule], season: Season, inputs: PricingInputs
    ) -> list[PriceAdjustmentResult]:
        ordered = sorted(rules, key=lambda r: r.priority, reverse=True)
        return [
            self._price_date(day, base, ordered, season, inputs)
            for day, base in sorted(inputs.base_rates.items())
        ]

    def _price_date(
        self,
        day: date,
        base: float,
        rules: list[PricingRule],
        season: Season,
        inputs: PricingInputs,
    ) -> PriceAdjustmentResult:
        step = self._config.get("price_step", 5.0)
        rate = base
        accepted: PricingRule | None = None
        failed_optional = 0

        for rule in rules:
            rule_failed = 0
            applies = True
            for condition in rule.conditions:
                if not is_date_scoped(condition):
                    continue
                if weekday_matches(condition.operator, condition.value, day):
                    continue
                if condition.required:
                    applies = False
                    break
                rule_failed += 1
            if not applies:
                continue

            for adjustment in rule.adjustments:
                target = resolve_target(adjustment.target, base, rate, day, inputs.reference)
                candidate = apply_formula(adjustment, target, inputs.occupancy_forecast, step)
                if within_limits(candidate, base, adjustment.limits):
                    rate = candidate
                    accepted = rule
                    failed_optional = rule_failed + inputs.failed_optional.get(rule.id, 0)
                    break
                logger.debug(
                    "%s: %s adjustment of rule %s rejected (%.2f -> %.2f)",
                    day, adjustment.type.value, rule.id, base, candidate,
                )
            if accepted is not None:
                break

        adjusted = round(rate * season.base_multiplier, 2)
        amount = round(adjusted - base, 2)
        percentage = round(amount / base * 100, 2) if base else 0.0
        return PriceAdjustmentResult(
            date=day,
            original_price=base,
            adjusted_price=adjusted,
            adjustment_amount=amount,
            adjustment_percentage=percentage,
            season_multiplier=season.base_multiplier,
            rule_applied=accepted.name if accepted else NO_RULE,
            confidence=self._confidence(inputs.degraded_signals, failed_optional),
        )

    def _confidence(self, degraded: int, failed_optional: int) -> float:
        value = (
            self.base_confidence
            - degraded * self._config.get("fallback_penalty", 0.10)
            - failed_optional * self._config.get("optional_condition_penalty", 0.05)
        )
        return round(min(1.0, max(0.0, value)), 4)


_STRATEGIES: dict[Algorithm, type] = {
    Algorithm.RULE_BASED: RuleBasedStrategy,
}


def get_strategy(config: SeasonalPricingConfig) -> AdjustmentStrategy:
    """Strategy for the config's first active adjustment method (rule_based if none)."""
    method = next((m for m in config.adjustment_methods if m.active), None)
    algorithm = method.algorithm if method else Algorithm.RULE_BASED
    strategy_cls = _STRATEGIES.get(algorithm)
    if strategy_cls is None:
        raise UnsupportedAlgorithmError(algorithm.value)
    return strategy_cls()


def compute_adjustments(
    rules: list[PricingRule],
    season: Season,
    inputs: PricingInputs,
    strategy: AdjustmentStrategy | None = None,
) -> list[PriceAdjustmentResult]:
    """One PriceAdjustmentResult per date in ``inputs.base_rates``, in date order."""
    return (strategy or RuleBasedStrategy()).compute(rules, season, inputs)
