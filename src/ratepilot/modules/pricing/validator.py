"""Business-constraint checks on computed prices."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from ratepilot.models.pricing import (
    PriceValidationRule,
    SeasonalPricingConfig,
    ValidationRuleType,
)
from ratepilot.models.results import (
    PriceAdjustmentResult,
    ValidationFailure,
    ValidationOverride,
    ValidationResult,
    ValidationWarning,
)

logger = logging.getLogger(__name__)

Checker = Callable[[list[PriceAdjustmentResult], float], int]


def _below_min(adjustments: list[PriceAdjustmentResult], threshold: float) -> int:
    return sum(1 for a in adjustments if a.adjusted_price < threshold)


def _above_max(adjustments: list[PriceAdjustmentResult], threshold: float) -> int:
    return sum(1 for a in adjustments if a.adjusted_price > threshold)


def _price_jumps(adjustments: list[PriceAdjustmentResult], threshold: float) -> int:
    """Consecutive dates whose price moves more than ``threshold`` percent."""
    count = 0
    for prev, cur in zip(adjustments, adjustments[1:]):
        if prev.adjusted_price <= 0:
            continue
        change = abs(cur.adjusted_price - prev.adjusted_price) / prev.adjusted_price * 100
        if change > threshold:
            count += 1
    return count


def _historical_variance(adjustments: list[PriceAdjustmentResult], threshold: float) -> int:
    return sum(1 for a in adjustments if abs(a.adjustment_percentage) > threshold)


_CHECKERS: dict[ValidationRuleType, Checker] = {
    ValidationRuleType.MIN_PRICE: _below_min,
    ValidationRuleType.MAX_PRICE: _above_max,
    ValidationRuleType.PRICE_JUMP: _price_jumps,
    ValidationRuleType.HISTORICAL_VARIANCE: _historical_variance,
}

_MESSAGES = {
    ValidationRuleType.MIN_PRICE: "{n} price(s) below minimum {t:.2f}",
    ValidationRuleType.MAX_PRICE: "{n} price(s) above maximum {t:.2f}",
    ValidationRuleType.PRICE_JUMP: "{n} day-to-day price change(s) above {t:.0f}%",
    ValidationRuleType.HISTORICAL_VARIANCE: "{n} adjustment(s) deviate more than {t:.0f}% from base",
}


def warning_severity(violations: int, total: int) -> str:
    ratio = violations / total if total else 0.0
    if ratio > 0.5:
        return "high"
    if ratio > 0.1:
        return "medium"
    return "low"


def _active_override(
    rule: PriceValidationRule, overrides: Sequence[ValidationOverride], now: datetime
) -> ValidationOverride | None:
    if not rule.override:
        return None
    return next((o for o in overrides if o.rule_id == rule.id and o.is_active(now)), None)


def validate(
    adjustments: list[PriceAdjustmentResult],
    config: SeasonalPricingConfig,
    overrides: Sequence[ValidationOverride] = (),
    now: datetime | None = None,
) -> ValidationResult:
    """Run every configured price validation rule.

    The result is valid unless a rule with error/block severity is violated
    and not covered by an active override.
    """
    now = now or datetime.now(timezone.utc)
    result = ValidationResult(valid=True)

    for rule in config.validation.price_validation:
        checker = _CHECKERS.get(rule.rule)
        if checker is None:
            logger.info("Validation rule %s (%s) is not checked, skipping", rule.id, rule.rule.value)
            continue

        violations = checker(adjustments, rule.threshold)
        if not violations:
            continue
        message = _MESSAGES[rule.rule].format(n=violations, t=rule.threshold)

        if rule.blocking:
            override = _active_override(rule, overrides, now)
            if override is None:
                logger.warning("Validation %s failed: %s", rule.id, message)
                result.errors.append(
                    ValidationFailure(
                        type=rule.rule.value,
                        message=message,
                        rule_id=rule.id,
                        violations=violations,
                    )
                )
                continue
            logger.info("Validation %s overridden by %s: %s", rule.id, override.approved_by, override.reason)
            result.overrides.append(override)
            message = f"{message} (overridden: {override.reason})"

        result.warnings.append(
            ValidationWarning(
                type=rule.rule.value,
                message=message,
                severity=warning_severity(violations, len(adjustments)),
                rule_id=rule.id,
                violations=violations,
                recommendation=f"Review '{rule.name}' against the affected dates",
            )
        )

    result.valid = not any(e.blocking for e in result.errors)
    return result
