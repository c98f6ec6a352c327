"""Calculation history and seasonal analytics over it."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from statistics import mean, pstdev

from ratepilot.models.results import (
    AnalyticsInsight,
    DateRange,
    PriceAdjustmentResult,
    SeasonalAnalytics,
    SeasonalSummary,
    SeasonalTrend,
    SeasonPerformance,
)
from ratepilot.modules.pricing.calculator import NO_RULE

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    room_type_id: str
    season_id: str
    season_name: str
    adjustment: PriceAdjustmentResult
    applied: bool = False
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PricingHistory:
    """Append-only record of calculated prices, keyed by (property, room type)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], list[HistoryEntry]] = defaultdict(list)

    def record(
        self,
        property_id: str,
        room_type_id: str,
        season_id: str,
        season_name: str,
        adjustments: list[PriceAdjustmentResult],
    ) -> list[HistoryEntry]:
        entries = [
            HistoryEntry(room_type_id, season_id, season_name, adj) for adj in adjustments
        ]
        self._entries[(property_id, room_type_id)].extend(entries)
        return entries

    def mark_applied(self, entries: list[HistoryEntry], dates: list[date]) -> None:
        applied = set(dates)
        for entry in entries:
            if entry.adjustment.date in applied:
                entry.applied = True

    def entries(self, property_id: str, room_type_id: str) -> list[HistoryEntry]:
        return list(self._entries.get((property_id, room_type_id), []))

    def latest_for_property(self, property_id: str, period: DateRange) -> list[HistoryEntry]:
        """Most recent entry per (room type, date) within ``period``, in date order."""
        latest: dict[tuple[str, date], HistoryEntry] = {}
        for (prop, _room), entries in self._entries.items():
            if prop != property_id:
                continue
            for entry in entries:
                if entry.adjustment.date in period:
                    latest[(entry.room_type_id, entry.adjustment.date)] = entry
        return sorted(latest.values(), key=lambda e: (e.adjustment.date, e.room_type_id))


def _summary(entries: list[HistoryEntry]) -> SeasonalSummary:
    if not entries:
        return SeasonalSummary(0, 0.0, 0.0, 0.0, 0.0)
    adjustments = [e.adjustment for e in entries]
    return SeasonalSummary(
        total_adjustments=len(entries),
        average_adjustment=round(mean(a.adjustment_percentage for a in adjustments), 2),
        revenue_impact=round(sum(a.adjustment_amount for a in adjustments), 2),
        rule_hit_rate=round(sum(1 for a in adjustments if a.rule_applied != NO_RULE) / len(entries), 4),
        automation_rate=round(sum(1 for e in entries if e.applied) / len(entries), 4),
    )


def _performance(entries: list[HistoryEntry]) -> list[SeasonPerformance]:
    by_season: dict[str, list[HistoryEntry]] = defaultdict(list)
    for entry in entries:
        by_season[entry.season_id].append(entry)

    performance = []
    for season_id, group in by_season.items():
        adjustments = [e.adjustment for e in group]
        performance.append(
            SeasonPerformance(
                season_id=season_id,
                season_name=group[0].season_name,
                days_priced=len(group),
                average_adjusted_price=round(mean(a.adjusted_price for a in adjustments), 2),
                average_adjustment=round(mean(a.adjustment_percentage for a in adjustments), 2),
                revenue_impact=round(sum(a.adjustment_amount for a in adjustments), 2),
            )
        )
    performance.sort(key=lambda p: p.revenue_impact, reverse=True)
    return performance


def _price_trend(entries: list[HistoryEntry]) -> SeasonalTrend | None:
    daily: dict[date, list[float]] = defaultdict(list)
    for entry in entries:
        daily[entry.adjustment.date].append(entry.adjustment.adjusted_price)
    prices = [mean(daily[d]) for d in sorted(daily)]
    if len(prices) < 2:
        return None

    half = len(prices) // 2
    first, second = mean(prices[:half]), mean(prices[half:])
    change_rate = round((second - first) / first, 4) if first else 0.0

    day_changes = [(b - a) / a * 100 for a, b in zip(prices, prices[1:]) if a]
    if day_changes and pstdev(day_changes) > 10:
        trend = "volatile"
    elif change_rate > 0.02:
        trend = "increasing"
    elif change_rate < -0.02:
        trend = "decreasing"
    else:
        trend = "stable"
    return SeasonalTrend(metric="adjusted_price", period="daily", trend=trend, change_rate=change_rate)


def _insights(summary: SeasonalSummary, performance: list[SeasonPerformance]) -> list[AnalyticsInsight]:
    insights = []
    if performance and performance[0].revenue_impact > 0:
        top = performance[0]
        insights.append(
            AnalyticsInsight(
                type="opportunity",
                priority="medium",
                title=f"{top.season_name} Optimization",
                description=f"{top.season_name} carries most of the revenue uplift from seasonal pricing",
                evidence=[
                    f"Revenue impact {top.revenue_impact:.2f} over {top.days_priced} day(s)",
                    f"Average adjustment {top.average_adjustment:+.1f}%",
                ],
            )
        )
    if summary.total_adjustments and summary.rule_hit_rate < 0.5:
        insights.append(
            AnalyticsInsight(
                type="risk",
                priority="low",
                title="Low Rule Coverage",
                description="Most priced days were not adjusted by any rule",
                evidence=[f"Rule hit rate {summary.rule_hit_rate:.0%}"],
            )
        )
    return insights


def build_analytics(entries: list[HistoryEntry], period: DateRange) -> SeasonalAnalytics:
    summary = _summary(entries)
    performance = _performance(entries)
    trend = _price_trend(entries)
    logger.debug("Analytics over %d entries for %s..%s", len(entries), period.start, period.end)
    return SeasonalAnalytics(
        period=period,
        summary=summary,
        performance=performance,
        trends=[trend] if trend else [],
        insights=_insights(summary, performance),
    )
