"""Tests for the adjustment calculator."""

from datetime import date, timedelta

import pytest

from ratepilot.exceptions import UnsupportedAlgorithmError
from ratepilot.models.pricing import (
    AdjustmentLimits,
    AdjustmentMethod,
    PriceAdjustment,
    PricingCondition,
    PricingRule,
    Season,
)
from ratepilot.modules.pricing.calculator import (
    NO_RULE,
    PricingInputs,
    ReferenceRates,
    RuleBasedStrategy,
    apply_formula,
    compute_adjustments,
    get_strategy,
    within_limits,
)
from ratepilot.modules.pricing.defaults import build_default_config, weekend_premium_rule

SATURDAY = date(2026, 7, 4)
TUESDAY = date(2026, 7, 7)

PEAK = Season(id="peak-summer", name="Peak Summer", base_multiplier=1.4, priority=100)
NEUTRAL = Season(id="base", name="Default", base_multiplier=1.0)


def _rule(rule_id, adjustments, priority=0, conditions=None):
    return PricingRule(
        id=rule_id, name=rule_id, priority=priority,
        adjustments=adjustments, conditions=conditions or [],
    )


def _by_date(results):
    return {r.date: r for r in results}


def test_peak_summer_weekend_example():
    inputs = PricingInputs(base_rates={SATURDAY: 200.0, TUESDAY: 200.0})
    results = _by_date(compute_adjustments([weekend_premium_rule()], PEAK, inputs))

    saturday = results[SATURDAY]
    assert saturday.adjusted_price == 336.0
    assert saturday.rule_applied == "Weekend Premium Pricing"
    assert saturday.adjustment_amount == 136.0
    assert saturday.adjustment_percentage == 68.0
    assert saturday.season_multiplier == 1.4

    tuesday = results[TUESDAY]
    assert tuesday.adjusted_price == 280.0
    assert tuesday.rule_applied == NO_RULE


def test_fixed_amount_beyond_absolute_max_is_rejected():
    rule = _rule(
        "huge",
        [PriceAdjustment(type="fixed_amount", value=2000, limits=AdjustmentLimits(absolute_max=1000))],
    )
    [result] = compute_adjustments([rule], NEUTRAL, PricingInputs(base_rates={TUESDAY: 200.0}))
    assert result.adjusted_price == 200.0
    assert result.rule_applied == NO_RULE


def test_first_passing_adjustment_wins_without_stacking():
    rules = [
        _rule("second", [PriceAdjustment(type="percentage", value=50)], priority=10),
        _rule(
            "first",
            [
                # Rejected: +30% breaks max_increase 20
                PriceAdjustment(type="percentage", value=30, limits=AdjustmentLimits(max_increase=20)),
                PriceAdjustment(type="percentage", value=10),
                PriceAdjustment(type="percentage", value=15),
            ],
            priority=90,
        ),
    ]
    [result] = compute_adjustments(rules, NEUTRAL, PricingInputs(base_rates={TUESDAY: 100.0}))
    assert result.adjusted_price == 110.0
    assert result.rule_applied == "first"


def test_falls_through_to_lower_priority_rule():
    rules = [
        _rule("capped", [PriceAdjustment(type="multiplier", value=3, limits=AdjustmentLimits(max_increase=50))], 90),
        _rule("fallback", [PriceAdjustment(type="fixed_amount", value=-20)], 10),
    ]
    [result] = compute_adjustments(rules, NEUTRAL, PricingInputs(base_rates={TUESDAY: 100.0}))
    assert result.adjusted_price == 80.0
    assert result.rule_applied == "fallback"


def test_accepted_prices_respect_limits():
    limits = AdjustmentLimits(max_increase=25, max_decrease=10, absolute_min=90, absolute_max=130)
    rule = _rule(
        "bounded",
        [
            PriceAdjustment(type="percentage", value=40, limits=limits),
            PriceAdjustment(type="percentage", value=-30, limits=limits),
            PriceAdjustment(type="percentage", value=20, limits=limits),
        ],
    )
    days = [TUESDAY + timedelta(days=i) for i in range(5)]
    base_rates = dict(zip(days, [100.0, 105.0, 110.0, 95.0, 120.0]))
    for result in compute_adjustments([rule], NEUTRAL, PricingInputs(base_rates=base_rates)):
        if result.rule_applied == NO_RULE:
            continue
        assert 90 <= result.adjusted_price <= 130
        assert -10 <= result.adjustment_percentage <= 25


def test_within_limits_without_ceiling():
    limits = AdjustmentLimits(max_increase=500)
    assert within_limits(10_000.0, 2000.0, limits)
    assert not within_limits(40.0, 100.0, AdjustmentLimits(max_decrease=50))


@pytest.mark.parametrize(
    "adj_type, value, target, expected",
    [
        ("percentage", 20, 200.0, 240.0),
        ("percentage", -10, 200.0, 180.0),
        ("fixed_amount", 25, 200.0, 225.0),
        ("multiplier", 1.5, 200.0, 300.0),
        # 203.0 stepped up to the next 5
        ("stepped", 1.5, 200.0, 205.0),
        # 197.0 stepped down
        ("stepped", -1.5, 200.0, 195.0),
    ],
)
def test_formulas(adj_type, value, target, expected):
    adjustment = PriceAdjustment(type=adj_type, value=value)
    assert apply_formula(adjustment, target, occupancy_forecast=0.70) == pytest.approx(expected)


def test_dynamic_scales_with_occupancy():
    adjustment = PriceAdjustment(type="dynamic", value=10)
    assert apply_formula(adjustment, 100.0, occupancy_forecast=0.70) == pytest.approx(110.0)
    assert apply_formula(adjustment, 100.0, occupancy_forecast=0.35) == pytest.approx(105.0)
    assert apply_formula(adjustment, 100.0, occupancy_forecast=1.40) == pytest.approx(120.0)


def test_competitor_and_last_year_targets():
    inputs = PricingInputs(
        base_rates={TUESDAY: 200.0, SATURDAY: 200.0},
        reference=ReferenceRates(competitor_rate=220.0, last_year_rates={TUESDAY: 190.0}),
    )
    match_competitor = _rule("match", [PriceAdjustment(type="percentage", value=-5, target="competitor_rate")])
    results = _by_date(compute_adjustments([match_competitor], NEUTRAL, inputs))
    assert results[TUESDAY].adjusted_price == 209.0

    last_year = _rule("yoy", [PriceAdjustment(type="percentage", value=10, target="last_year_rate")])
    results = _by_date(compute_adjustments([last_year], NEUTRAL, inputs))
    assert results[TUESDAY].adjusted_price == 209.0
    # No last-year rate for Saturday: base * 1.05 * 1.10
    assert results[SATURDAY].adjusted_price == 231.0


def test_confidence_penalties():
    rule = _rule(
        "weekend-ish",
        [PriceAdjustment(type="percentage", value=5)],
        conditions=[PricingCondition(type="day_of_week", operator="in", value=[4, 5])],
    )
    inputs = PricingInputs(
        base_rates={SATURDAY: 100.0, TUESDAY: 100.0},
        degraded_signals=1,
        failed_optional={"weekend-ish": 1},
    )
    results = _by_date(compute_adjustments([rule], NEUTRAL, inputs))
    # 0.85 - 0.10 (one fallback) - 0.05 (selector-level optional miss)
    assert results[SATURDAY].confidence == pytest.approx(0.70)
    # The optional weekday condition also misses on Tuesday
    assert results[TUESDAY].confidence == pytest.approx(0.65)
    assert results[TUESDAY].rule_applied == "weekend-ish"


def test_confidence_is_clamped():
    inputs = PricingInputs(base_rates={TUESDAY: 100.0}, degraded_signals=12)
    [result] = compute_adjustments([], NEUTRAL, inputs)
    assert result.confidence == 0.0


def test_results_are_in_date_order_and_deterministic():
    base_rates = {TUESDAY: 150.0, SATURDAY: 200.0, date(2026, 7, 5): 180.0}
    first = compute_adjustments([weekend_premium_rule()], PEAK, PricingInputs(base_rates=base_rates))
    second = compute_adjustments([weekend_premium_rule()], PEAK, PricingInputs(base_rates=dict(base_rates)))
    assert [r.date for r in first] == sorted(base_rates)
    assert first == second


def test_get_strategy_defaults_to_rule_based():
    config = build_default_config()
    assert isinstance(get_strategy(config), RuleBasedStrategy)
    config.adjustment_methods = []
    assert isinstance(get_strategy(config), RuleBasedStrategy)


def test_unsupported_algorithm_fails_fast():
    config = build_default_config()
    config.adjustment_methods = [AdjustmentMethod(id="ml", name="ML", algorithm="ml_based")]
    with pytest.raises(UnsupportedAlgorithmError):
        get_strategy(config)


def test_inactive_method_is_skipped():
    config = build_default_config()
    config.adjustment_methods = [
        AdjustmentMethod(id="ml", name="ML", algorithm="ml_based", active=False),
        AdjustmentMethod(id="rb", name="Rules", algorithm="rule_based"),
    ]
    assert isinstance(get_strategy(config), RuleBasedStrategy)
