"""Advisory recommendations and the per-response adjustment summary."""

from __future__ import annotations

from statistics import mean

from ratepilot.models.pricing import SeasonalPricingConfig
from ratepilot.models.results import (
    AdjustmentSummary,
    ImplementationGuide,
    PriceAdjustmentResult,
    PricingRecommendation,
    RecommendationImpact,
    ValidationResult,
)

# Estimated occupancy response per percent of price change
OCCUPANCY_ELASTICITY = -0.5


def generate(
    adjustments: list[PriceAdjustmentResult],
    validation: ValidationResult,
    config: SeasonalPricingConfig,
) -> list[PricingRecommendation]:
    thresholds = config.recommendations
    recommendations: list[PricingRecommendation] = []

    if validation.warnings:
        recommendations.append(
            PricingRecommendation(
                type="adjustment",
                priority="medium",
                title="Review Price Adjustments",
                description="Some price adjustments triggered validation warnings",
                impact=RecommendationImpact(
                    revenue=0.0,
                    occupancy=0.0,
                    competitive_position="neutral",
                    risk_level="medium",
                    confidence=0.7,
                ),
                implementation=ImplementationGuide(
                    steps=["Review validation warnings", "Adjust pricing rules if necessary"],
                    timeline="1-2 days",
                    resources=["Revenue Manager"],
                ),
            )
        )

    if not adjustments:
        return recommendations

    average = mean(a.adjustment_percentage for a in adjustments)
    if average > thresholds.competitor_response_threshold:
        recommendations.append(
            PricingRecommendation(
                type="competitive",
                priority="high",
                title="Monitor Competitor Response",
                description="Significant price increases may trigger competitor reactions",
                impact=RecommendationImpact(
                    revenue=round(sum(a.adjustment_amount for a in adjustments), 2),
                    occupancy=round(average * OCCUPANCY_ELASTICITY, 2),
                    competitive_position="aggressive",
                    risk_level="high",
                    confidence=0.8,
                ),
                implementation=ImplementationGuide(
                    steps=["Monitor competitor rates daily", "Prepare contingency pricing"],
                    timeline="Ongoing",
                    resources=["Revenue Manager", "Marketing Team"],
                    dependencies=["Competitor monitoring system"],
                ),
            )
        )

    if mean(a.confidence for a in adjustments) < thresholds.low_confidence_threshold:
        recommendations.append(
            PricingRecommendation(
                type="timing",
                priority="low",
                title="Verify Market Data",
                description="Prices were computed with fallback market data and may be less reliable",
                impact=RecommendationImpact(
                    revenue=0.0,
                    occupancy=0.0,
                    competitive_position="neutral",
                    risk_level="low",
                    confidence=0.6,
                ),
                implementation=ImplementationGuide(
                    steps=["Check forecast and competitor feeds", "Recalculate once data is available"],
                    timeline="Same day",
                    resources=["Revenue Manager"],
                ),
            )
        )

    return recommendations


def _position(average: float, threshold: float) -> str:
    if average > threshold:
        return "aggressive"
    if average < -threshold:
        return "discounted"
    return "competitive"


def _trend(adjustments: list[PriceAdjustmentResult]) -> str:
    """Compare the first and second half of the window's adjusted prices."""
    if len(adjustments) < 2:
        return "stable"
    half = len(adjustments) // 2
    first = mean(a.adjusted_price for a in adjustments[:half])
    second = mean(a.adjusted_price for a in adjustments[half:])
    if not first:
        return "stable"
    change = (second - first) / first
    if change > 0.02:
        return "increasing"
    if change < -0.02:
        return "decreasing"
    return "stable"


def summarize(
    adjustments: list[PriceAdjustmentResult], competitor_threshold: float = 15.0
) -> AdjustmentSummary:
    if not adjustments:
        return AdjustmentSummary(
            total_days=0,
            average_adjustment=0.0,
            revenue_impact=0.0,
            occupancy_impact=0.0,
            competitive_position="competitive",
            seasonal_trend="stable",
        )
    average = mean(a.adjustment_percentage for a in adjustments)
    return AdjustmentSummary(
        total_days=len(adjustments),
        average_adjustment=round(average, 2),
        revenue_impact=round(sum(a.adjustment_amount for a in adjustments), 2),
        occupancy_impact=round(average * OCCUPANCY_ELASTICITY, 2),
        competitive_position=_position(average, competitor_threshold),
        seasonal_trend=_trend(adjustments),
    )
