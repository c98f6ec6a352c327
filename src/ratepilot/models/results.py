"""Request and result types produced by the pricing engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


class AutomationState(str, Enum):
    DISABLED = "disabled"
    IDLE = "idle"
    EVALUATING = "evaluating"
    PENDING_APPROVAL = "pending_approval"
    APPLYING = "applying"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"


@dataclass
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Date range end {self.end} is before start {self.start}")

    def days(self) -> list[date]:
        """Every date from start to end, inclusive."""
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class SeasonalPricingRequest:
    property_id: str
    room_type_id: str
    date_range: DateRange
    season_id: str | None = None
    force_recalculation: bool = False
    preview_mode: bool = False


@dataclass
class PriceAdjustmentResult:
    date: date
    original_price: float
    adjusted_price: float
    adjustment_amount: float
    adjustment_percentage: float
    season_multiplier: float
    rule_applied: str  # Name of the accepted rule, "none" if nothing passed its limits
    confidence: float


@dataclass
class ValidationWarning:
    type: str
    message: str
    severity: str  # low, medium, high
    rule_id: str | None = None
    violations: int = 0
    recommendation: str | None = None


@dataclass
class ValidationFailure:
    type: str
    message: str
    rule_id: str | None = None
    violations: int = 0
    blocking: bool = True


@dataclass
class ValidationOverride:
    rule_id: str
    reason: str
    approved_by: str
    approved_at: datetime
    expires_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or now < self.expires_at


@dataclass
class ValidationResult:
    valid: bool
    warnings: list[ValidationWarning] = field(default_factory=list)
    errors: list[ValidationFailure] = field(default_factory=list)
    overrides: list[ValidationOverride] = field(default_factory=list)


@dataclass
class RecommendationImpact:
    revenue: float
    occupancy: float
    competitive_position: str
    risk_level: str  # low, medium, high
    confidence: float


@dataclass
class ImplementationGuide:
    steps: list[str]
    timeline: str
    resources: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass
class PricingRecommendation:
    type: str  # adjustment, strategy, timing, competitive
    priority: str  # low, medium, high, urgent
    title: str
    description: str
    impact: RecommendationImpact
    implementation: ImplementationGuide


@dataclass
class AdjustmentSummary:
    total_days: int
    average_adjustment: float
    revenue_impact: float
    occupancy_impact: float
    competitive_position: str
    seasonal_trend: str


@dataclass
class ResponseMetadata:
    generated_at: datetime
    calculation_time_ms: float
    data_points: int
    algorithm_used: str
    version: str
    cache_status: str  # hit, miss, refreshed
    degraded_signals: list[str] = field(default_factory=list)


@dataclass
class ApplyReport:
    status: AutomationState
    applied_dates: list[date] = field(default_factory=list)
    failed_dates: list[date] = field(default_factory=list)
    notified_channels: list[str] = field(default_factory=list)
    failed_channels: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.applied_dates) and bool(self.failed_dates)


@dataclass
class SeasonalPricingResponse:
    property_id: str
    room_type_id: str
    season_id: str
    adjustments: list[PriceAdjustmentResult]
    summary: AdjustmentSummary
    validation: ValidationResult
    recommendations: list[PricingRecommendation]
    metadata: ResponseMetadata
    apply: ApplyReport | None = None


# --- Analytics ---


@dataclass
class SeasonalSummary:
    total_adjustments: int
    average_adjustment: float
    revenue_impact: float
    rule_hit_rate: float  # Share of priced days where some rule was accepted
    automation_rate: float  # Share of priced days that were pushed to the rates store


@dataclass
class SeasonPerformance:
    season_id: str
    season_name: str
    days_priced: int
    average_adjusted_price: float
    average_adjustment: float
    revenue_impact: float


@dataclass
class SeasonalTrend:
    metric: str
    period: str
    trend: str  # increasing, decreasing, stable, volatile
    change_rate: float


@dataclass
class AnalyticsInsight:
    type: str  # opportunity, risk, trend, anomaly
    priority: str
    title: str
    description: str
    evidence: list[str] = field(default_factory=list)


@dataclass
class SeasonalAnalytics:
    period: DateRange
    summary: SeasonalSummary
    performance: list[SeasonPerformance] = field(default_factory=list)
    trends: list[SeasonalTrend] = field(default_factory=list)
    insights: list[AnalyticsInsight] = field(default_factory=list)


@dataclass
class RollbackTrigger:
    metric: str
    threshold: float
    observed: float


def response_to_dict(obj: Any) -> Any:
    """Dataclass -> JSON-friendly dict (dates as ISO strings, enums as values)."""
    if is_dataclass(obj):
        return response_to_dict(asdict(obj))
    if isinstance(obj, dict):
        return {k: response_to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [response_to_dict(v) for v in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj
