"""Configuration seeded for the "default" property and config.yaml properties."""

from __future__ import annotations

from datetime import date

from ratepilot.models.pricing import (
    AdjustmentLimits,
    AdjustmentMethod,
    AdjustmentTiming,
    AlertThreshold,
    Algorithm,
    AutomationSettings,
    BatchProcessingConfig,
    CompetitorCheckConfig,
    HistoricalComparisonConfig,
    HistoricalSeasonData,
    MonitoringConfig,
    NotificationChannel,
    NotificationRecipient,
    NotificationSettings,
    NotificationTemplate,
    Operator,
    OverrideSettings,
    PriceAdjustment,
    PriceValidationRule,
    PricingCondition,
    PricingRule,
    ProcessingWindow,
    RollbackCondition,
    RollbackConfig,
    Season,
    SeasonalPricingConfig,
    SeasonCondition,
    SeasonMetadata,
    ValidationSettings,
)

DEFAULT_PROPERTY_ID = "default"

APPLIED = "seasonal_pricing_applied"
ROLLED_BACK = "seasonal_pricing_rollback"
PENDING_APPROVAL = "seasonal_pricing_pending_approval"


def _calendar_season(
    season_id: str,
    name: str,
    description: str,
    window: tuple[str, str],
    multiplier: float,
    priority: int,
    tags: list[str],
    history: HistoricalSeasonData,
) -> Season:
    return Season(
        id=season_id,
        name=name,
        description=description,
        start_conditions=[SeasonCondition(type="date_range", operator="between", value=list(window))],
        end_conditions=[SeasonCondition(type="date_range", operator="greater_than", value=window[1])],
        base_multiplier=multiplier,
        priority=priority,
        metadata=SeasonMetadata(tags=tags, historical_data=history),
    )


def default_seasons() -> list[Season]:
    return [
        _calendar_season(
            "peak-summer", "Peak Summer Season", "High demand summer period",
            ("06-15", "08-31"), 1.4, 100, ["high-demand", "summer", "vacation"],
            HistoricalSeasonData(
                average_occupancy=0.92, average_adr=280, year_over_year_growth=0.08, booking_lead_time=45
            ),
        ),
        _calendar_season(
            "shoulder-spring", "Spring Shoulder Season", "Moderate demand spring period",
            ("03-15", "06-14"), 1.15, 80, ["moderate-demand", "spring", "shoulder"],
            HistoricalSeasonData(
                average_occupancy=0.78, average_adr=195, year_over_year_growth=0.05, booking_lead_time=30
            ),
        ),
        _calendar_season(
            "off-season", "Off Season", "Low demand period",
            ("11-01", "03-14"), 0.85, 60, ["low-demand", "winter", "off-season"],
            HistoricalSeasonData(
                average_occupancy=0.62, average_adr=150, year_over_year_growth=0.02, booking_lead_time=21
            ),
        ),
    ]


def weekend_premium_rule() -> PricingRule:
    return PricingRule(
        id="weekend-premium",
        name="Weekend Premium Pricing",
        description="Apply premium rates for weekends",
        conditions=[
            # Friday and Saturday nights
            PricingCondition(type="day_of_week", operator=Operator.IN, value=[4, 5], required=True),
        ],
        adjustments=[
            PriceAdjustment(
                type="percentage",
                value=20,
                target="base_rate",
                limits=AdjustmentLimits(
                    max_increase=50, max_decrease=0, absolute_min=100, absolute_max=1000
                ),
                timing=AdjustmentTiming(advance_notice=14),
            )
        ],
        priority=90,
        valid_from=date(2024, 1, 1),
    )


def default_notifications() -> NotificationSettings:
    return NotificationSettings(
        channels=[NotificationChannel(type="email", priority=1)],
        recipients=[
            NotificationRecipient(
                id="revenue-manager",
                name="Revenue Manager",
                contact="revenue@example.com",
                role="manager",
                notifications=["email"],
            )
        ],
        templates=[
            NotificationTemplate(
                id=APPLIED,
                name="Seasonal Pricing Applied",
                subject="Seasonal Pricing Changes Applied",
                content=(
                    "Seasonal pricing adjustments have been applied for {{ property_id }} "
                    "{{ room_type_id }}. Revenue impact: {{ summary.revenue_impact }}"
                ),
            ),
            NotificationTemplate(
                id=ROLLED_BACK,
                name="Seasonal Pricing Rolled Back",
                subject="Seasonal Pricing Changes Rolled Back",
                content=(
                    "Seasonal pricing for {{ property_id }} {{ room_type_id }} was rolled back "
                    "on {{ dates | length }} date(s). Reason: {{ reason }}"
                ),
            ),
            NotificationTemplate(
                id=PENDING_APPROVAL,
                name="Seasonal Pricing Awaiting Approval",
                subject="Seasonal Pricing Changes Need Approval",
                content=(
                    "{{ summary.total_days }} seasonal price change(s) for {{ property_id }} "
                    "{{ room_type_id }} are waiting for approval. "
                    "Revenue impact: {{ summary.revenue_impact }}"
                ),
            ),
        ],
    )


def build_default_config(property_id: str = DEFAULT_PROPERTY_ID) -> SeasonalPricingConfig:
    return SeasonalPricingConfig(
        property_id=property_id,
        seasons=default_seasons(),
        pricing_rules=[weekend_premium_rule()],
        adjustment_methods=[
            AdjustmentMethod(
                id="rule-based",
                name="Rule-Based Adjustment",
                algorithm=Algorithm.RULE_BASED,
                parameters={"seasonal_weight": 0.4, "demand_weight": 0.3, "competitor_weight": 0.3},
            )
        ],
        automation=AutomationSettings(
            auto_apply_changes=True,
            batch_processing=BatchProcessingConfig(
                enabled=True,
                processing_window=ProcessingWindow(start="02:00", end="04:00"),
            ),
            rollback=RollbackConfig(
                enabled=True,
                trigger_conditions=[RollbackCondition(metric="occupancy_drop", threshold=0.15)],
                rollback_delay=2,
            ),
            monitoring=MonitoringConfig(
                real_time_tracking=True,
                alert_thresholds=[
                    AlertThreshold(
                        metric="revenue_impact", operator="less_than", value=-1000, severity="high"
                    )
                ],
            ),
        ),
        validation=ValidationSettings(
            price_validation=[
                PriceValidationRule(
                    id="min-price-check", name="Minimum Price Validation",
                    rule="min_price", threshold=50, severity="error", override=True,
                ),
                PriceValidationRule(
                    id="max-price-check", name="Maximum Price Validation",
                    rule="max_price", threshold=800, severity="warning", override=True,
                ),
            ],
            competitor_checks=CompetitorCheckConfig(
                enabled=True, competitors=["comp-001", "comp-002"], alert_on_deviation=True
            ),
            historical_comparison=HistoricalComparisonConfig(
                enabled=True, lookback_periods=[1, 2, 3], seasonal_adjustment=True
            ),
        ),
        notifications=default_notifications(),
        overrides=OverrideSettings(
            emergency_overrides=True,
            override_roles=["revenue_manager", "general_manager"],
            approval_required=True,
        ),
    )
