"""Seasonal pricing configuration model.

These are the shapes a property's pricing setup is written in, whether it
comes from config.yaml, the JSON API, or the configuration store.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

ALL = "all"


class SeasonType(str, Enum):
    CALENDAR = "calendar"
    WEATHER = "weather"
    DEMAND = "demand"
    CUSTOM = "custom"


class SeasonConditionType(str, Enum):
    DATE_RANGE = "date_range"
    DAY_OF_WEEK = "day_of_week"
    MONTH = "month"
    WEATHER = "weather"
    OCCUPANCY = "occupancy"
    DEMAND_LEVEL = "demand_level"
    EVENT = "event"
    CUSTOM = "custom"


class PricingConditionType(str, Enum):
    OCCUPANCY_FORECAST = "occupancy_forecast"
    BOOKING_PACE = "booking_pace"
    LEAD_TIME = "lead_time"
    DAY_OF_WEEK = "day_of_week"
    COMPETITOR_RATE = "competitor_rate"
    WEATHER_FORECAST = "weather_forecast"
    EVENT_PROXIMITY = "event_proximity"


class Operator(str, Enum):
    EQUALS = "equals"
    BETWEEN = "between"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    CONTAINS = "contains"


class AdjustmentType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    MULTIPLIER = "multiplier"
    STEPPED = "stepped"
    DYNAMIC = "dynamic"


class AdjustmentTarget(str, Enum):
    BASE_RATE = "base_rate"
    CURRENT_RATE = "current_rate"
    COMPETITOR_RATE = "competitor_rate"
    LAST_YEAR_RATE = "last_year_rate"


class Algorithm(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    LOGARITHMIC = "logarithmic"
    STEPPED = "stepped"
    ML_BASED = "ml_based"
    RULE_BASED = "rule_based"


class ValidationRuleType(str, Enum):
    MIN_PRICE = "min_price"
    MAX_PRICE = "max_price"
    PRICE_JUMP = "price_jump"
    COMPETITOR_PARITY = "competitor_parity"
    HISTORICAL_VARIANCE = "historical_variance"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    BLOCK = "block"


class ChannelType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    SLACK = "slack"
    WEBHOOK = "webhook"
    DASHBOARD = "dashboard"


class RollbackMetric(str, Enum):
    OCCUPANCY_DROP = "occupancy_drop"
    REVENUE_LOSS = "revenue_loss"
    BOOKING_PACE_DECLINE = "booking_pace_decline"
    ERROR_RATE = "error_rate"


# --- Seasons ---


class SeasonCondition(BaseModel):
    type: SeasonConditionType
    operator: Operator
    value: Any = None
    weight: float = 1.0  # Reserved: carried through, not used in matching


class HistoricalSeasonData(BaseModel):
    average_occupancy: float = 0.0
    average_adr: float = 0.0
    year_over_year_growth: float = 0.0
    booking_lead_time: int = 0


class SeasonMetadata(BaseModel):
    tags: list[str] = Field(default_factory=list)
    historical_data: HistoricalSeasonData | None = None


class Season(BaseModel):
    id: str
    name: str
    description: str = ""
    type: SeasonType = SeasonType.CALENDAR
    start_conditions: list[SeasonCondition] = Field(default_factory=list)
    end_conditions: list[SeasonCondition] = Field(default_factory=list)
    base_multiplier: float = Field(default=1.0, ge=0)
    priority: int = 0
    active: bool = True
    metadata: SeasonMetadata = Field(default_factory=SeasonMetadata)


# --- Rules and adjustments ---


class PricingCondition(BaseModel):
    type: PricingConditionType
    operator: Operator
    value: Any = None
    weight: float = 1.0  # Reserved, see SeasonCondition.weight
    required: bool = False


class AdjustmentLimits(BaseModel):
    """Bounds a candidate rate must satisfy. Percentages are relative to the base rate."""

    min_increase: float = 0.0
    max_increase: float = 100.0
    min_decrease: float = 0.0
    max_decrease: float = 100.0
    absolute_min: float = 0.0
    absolute_max: float | None = None  # None means no ceiling


class RampUpConfig(BaseModel):
    enabled: bool = False
    periods: int = 1
    increment_per_period: float = 0.0
    period_duration: int = 0


class AdjustmentTiming(BaseModel):
    advance_notice: int = 0
    implementation_delay: int = 0
    effective_date: date | None = None
    duration: int | None = None
    ramp_up: RampUpConfig | None = None


class PriceAdjustment(BaseModel):
    type: AdjustmentType
    value: float
    target: AdjustmentTarget = AdjustmentTarget.BASE_RATE
    limits: AdjustmentLimits = Field(default_factory=AdjustmentLimits)
    timing: AdjustmentTiming = Field(default_factory=AdjustmentTiming)


class ChannelRestriction(BaseModel):
    channel_id: str
    restriction: str  # blocked, reduced_allocation, rate_markup, minimum_stay
    value: Any = None


class PricingConstraints(BaseModel):
    """Booking constraints attached to a rule. Not enforced by the calculator."""

    minimum_stay: int | None = None
    maximum_stay: int | None = None
    advance_booking: int | None = None
    cancellation_policy: str | None = None
    refund_policy: str | None = None
    blackout_dates: list[date] = Field(default_factory=list)
    channel_restrictions: list[ChannelRestriction] = Field(default_factory=list)


class PricingRule(BaseModel):
    id: str
    name: str
    description: str = ""
    season_id: str = ALL
    room_types: list[str] = Field(default_factory=lambda: [ALL])
    conditions: list[PricingCondition] = Field(default_factory=list)
    adjustments: list[PriceAdjustment] = Field(default_factory=list)
    constraints: PricingConstraints = Field(default_factory=PricingConstraints)
    priority: int = 0
    active: bool = True
    valid_from: date | None = None
    valid_to: date | None = None


class AdjustmentMethod(BaseModel):
    id: str
    name: str
    algorithm: Algorithm
    parameters: dict[str, Any] = Field(default_factory=dict)
    active: bool = True


# --- Automation ---


class Approver(BaseModel):
    role: str
    user_id: str
    level: int = 1


class ApprovalWorkflow(BaseModel):
    enabled: bool = False
    approvers: list[Approver] = Field(default_factory=list)
    timeout_hours: int = 24
    default_action: str = "approve"  # approve, reject, escalate


class ProcessingWindow(BaseModel):
    start: str = "00:00"
    end: str = "23:59"
    timezone: str = "UTC"
    days_of_week: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])


class RetryPolicy(BaseModel):
    max_retries: int = 3
    backoff_strategy: str = "exponential"
    initial_delay: int = 60
    max_delay: int = 300


class BatchProcessingConfig(BaseModel):
    enabled: bool = False
    batch_size: int = 100
    processing_window: ProcessingWindow = Field(default_factory=ProcessingWindow)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)


class RollbackCondition(BaseModel):
    metric: RollbackMetric
    threshold: float
    time_window_hours: int = 24


class RollbackConfig(BaseModel):
    enabled: bool = False
    trigger_conditions: list[RollbackCondition] = Field(default_factory=list)
    auto_rollback: bool = False
    rollback_delay: int = 0
    preserve_history: bool = True


class AlertThreshold(BaseModel):
    metric: str
    operator: Operator
    value: Any = None
    severity: str = "medium"
    action: str = "notify"


class MonitoringConfig(BaseModel):
    real_time_tracking: bool = False
    alert_thresholds: list[AlertThreshold] = Field(default_factory=list)
    reporting_frequency: str = "daily"


class AutomationSettings(BaseModel):
    auto_apply_changes: bool = False
    review_required: bool = False
    approval_workflow: ApprovalWorkflow = Field(default_factory=ApprovalWorkflow)
    batch_processing: BatchProcessingConfig = Field(default_factory=BatchProcessingConfig)
    rollback: RollbackConfig = Field(default_factory=RollbackConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


# --- Validation ---


class PriceValidationRule(BaseModel):
    id: str
    name: str
    rule: ValidationRuleType
    threshold: float
    severity: Severity = Severity.WARNING
    override: bool = False

    @property
    def blocking(self) -> bool:
        return self.severity in (Severity.ERROR, Severity.BLOCK)


class CompetitorCheckConfig(BaseModel):
    enabled: bool = False
    competitors: list[str] = Field(default_factory=list)
    tolerance: float = 0.15
    frequency: int = 24
    alert_on_deviation: bool = False


class HistoricalComparisonConfig(BaseModel):
    enabled: bool = False
    lookback_periods: list[int] = Field(default_factory=list)
    variance_threshold: float = 0.25
    seasonal_adjustment: bool = False


class ValidationSettings(BaseModel):
    price_validation: list[PriceValidationRule] = Field(default_factory=list)
    competitor_checks: CompetitorCheckConfig = Field(default_factory=CompetitorCheckConfig)
    historical_comparison: HistoricalComparisonConfig = Field(
        default_factory=HistoricalComparisonConfig
    )


# --- Notifications ---


class ChannelConfig(BaseModel):
    endpoint: str | None = None
    credentials: dict[str, str] = Field(default_factory=dict)
    formatting: str | None = None


class NotificationChannel(BaseModel):
    type: ChannelType
    enabled: bool = True
    priority: int = 1
    config: ChannelConfig = Field(default_factory=ChannelConfig)


class NotificationRecipient(BaseModel):
    id: str
    name: str
    contact: str
    role: str = ""
    notifications: list[ChannelType] = Field(default_factory=list)


class NotificationTemplate(BaseModel):
    id: str  # Notification type this template renders, e.g. seasonal_pricing_applied
    name: str
    subject: str
    content: str
    content_type: str = "text"


class NotificationSettings(BaseModel):
    channels: list[NotificationChannel] = Field(default_factory=list)
    recipients: list[NotificationRecipient] = Field(default_factory=list)
    templates: list[NotificationTemplate] = Field(default_factory=list)

    def template_for(self, notification_type: str) -> NotificationTemplate | None:
        return next((t for t in self.templates if t.id == notification_type), None)


# --- Overrides / analytics / recommendations ---


class ExpirationPolicy(BaseModel):
    default_duration_hours: int = 168
    max_duration_hours: int = 720
    auto_expire: bool = True
    warning_period_hours: int = 24


class OverrideSettings(BaseModel):
    manual_overrides: bool = True
    emergency_overrides: bool = False
    override_roles: list[str] = Field(default_factory=list)
    approval_required: bool = False
    audit_trail: bool = True
    expiration_policy: ExpirationPolicy = Field(default_factory=ExpirationPolicy)


class AnalyticsMetric(BaseModel):
    name: str
    type: str = "gauge"
    tags: list[str] = Field(default_factory=list)
    aggregation: str = "sum"


class ReportingConfig(BaseModel):
    frequency: str = "daily"
    format: str = "json"
    distribution: list[str] = Field(default_factory=list)
    retention: int = 365


class AnalyticsSettings(BaseModel):
    tracking_enabled: bool = True
    metrics: list[AnalyticsMetric] = Field(default_factory=list)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)


class RecommendationSettings(BaseModel):
    competitor_response_threshold: float = 15.0
    low_confidence_threshold: float = 0.7


# --- Top-level ---


class SeasonalPricingConfig(BaseModel):
    property_id: str
    enabled: bool = True
    seasons: list[Season] = Field(default_factory=list, validate_default=True)
    pricing_rules: list[PricingRule] = Field(default_factory=list)
    adjustment_methods: list[AdjustmentMethod] = Field(default_factory=list)
    automation: AutomationSettings = Field(default_factory=AutomationSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    overrides: OverrideSettings = Field(default_factory=OverrideSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    recommendations: RecommendationSettings = Field(default_factory=RecommendationSettings)

    @field_validator("seasons")
    @classmethod
    def validate_seasons(cls, v: list[Season]) -> list[Season]:
        if not v:
            raise ValueError("at least one season is required as the fallback season")
        ids = [s.id for s in v]
        if len(ids) != len(set(ids)):
            raise ValueError("season ids must be unique")
        return v

    def season_by_id(self, season_id: str) -> Season | None:
        return next((s for s in self.seasons if s.id == season_id), None)

    def default_season(self) -> Season:
        """The fallback season: the one named "default", else the first configured."""
        for season in self.seasons:
            if season.name.lower() == "default":
                return season
        return self.seasons[0]
