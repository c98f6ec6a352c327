"""Tests for pricing history and analytics."""

from datetime import date, timedelta

from ratepilot.models.results import DateRange, PriceAdjustmentResult
from ratepilot.modules.pricing.analytics import PricingHistory, build_analytics

START = date(2026, 7, 4)


def _adjustments(prices, base=200.0, rule="Weekend Premium Pricing", start=START):
    return [
        PriceAdjustmentResult(
            date=start + timedelta(days=i),
            original_price=base,
            adjusted_price=price,
            adjustment_amount=round(price - base, 2),
            adjustment_percentage=round((price - base) / base * 100, 2),
            season_multiplier=1.4,
            rule_applied=rule,
            confidence=0.85,
        )
        for i, price in enumerate(prices)
    ]


def test_latest_entry_per_date_wins():
    history = PricingHistory()
    history.record("p", "deluxe", "peak-summer", "Peak Summer", _adjustments([300, 300]))
    history.record("p", "deluxe", "peak-summer", "Peak Summer", _adjustments([320]))
    entries = history.latest_for_property("p", DateRange(START, START + timedelta(days=5)))
    assert [e.adjustment.adjusted_price for e in entries] == [320, 300]


def test_entries_are_filtered_by_property_and_period():
    history = PricingHistory()
    history.record("p", "deluxe", "s", "S", _adjustments([300, 300, 300]))
    history.record("other", "deluxe", "s", "S", _adjustments([300]))
    entries = history.latest_for_property("p", DateRange(START + timedelta(days=1), START + timedelta(days=1)))
    assert len(entries) == 1
    assert entries[0].adjustment.date == START + timedelta(days=1)


def test_mark_applied_only_touches_given_dates():
    history = PricingHistory()
    entries = history.record("p", "deluxe", "s", "S", _adjustments([300, 300]))
    history.mark_applied(entries, [START])
    assert [e.applied for e in history.entries("p", "deluxe")] == [True, False]


def test_summary_and_performance():
    history = PricingHistory()
    applied = history.record("p", "deluxe", "peak-summer", "Peak Summer", _adjustments([300, 260]))
    history.mark_applied(applied, [START, START + timedelta(days=1)])
    history.record(
        "p", "standard", "off-season", "Off Season",
        _adjustments([170], base=200.0, rule="none", start=START + timedelta(days=2)),
    )
    period = DateRange(START, START + timedelta(days=10))
    analytics = build_analytics(history.latest_for_property("p", period), period)

    summary = analytics.summary
    assert summary.total_adjustments == 3
    assert summary.revenue_impact == 130.0
    assert summary.rule_hit_rate == round(2 / 3, 4)
    assert summary.automation_rate == round(2 / 3, 4)

    top, bottom = analytics.performance
    assert top.season_id == "peak-summer"
    assert top.days_priced == 2
    assert top.average_adjusted_price == 280.0
    assert bottom.season_id == "off-season"
    assert bottom.revenue_impact == -30.0

    assert analytics.insights[0].type == "opportunity"
    assert analytics.insights[0].title == "Peak Summer Optimization"


def test_trend_detection():
    history = PricingHistory()
    history.record("p", "deluxe", "s", "S", _adjustments([200, 202, 204, 230, 232, 234]))
    period = DateRange(START, START + timedelta(days=10))
    [trend] = build_analytics(history.latest_for_property("p", period), period).trends
    assert trend.trend == "increasing"
    assert trend.change_rate > 0


def test_volatile_prices():
    history = PricingHistory()
    history.record("p", "deluxe", "s", "S", _adjustments([200, 300, 180, 320, 190]))
    period = DateRange(START, START + timedelta(days=10))
    [trend] = build_analytics(history.latest_for_property("p", period), period).trends
    assert trend.trend == "volatile"


def test_empty_history():
    period = DateRange(START, START)
    analytics = build_analytics([], period)
    assert analytics.summary.total_adjustments == 0
    assert analytics.performance == []
    assert analytics.trends == []
    assert analytics.insights == []
