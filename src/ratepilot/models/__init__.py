"""Configuration, result and database models."""

from ratepilot.models.config_record import PricingConfigRecord
from ratepilot.models.pricing import (
    PriceAdjustment,
    PricingCondition,
    PricingRule,
    Season,
    SeasonalPricingConfig,
)
from ratepilot.models.results import (
    DateRange,
    PriceAdjustmentResult,
    SeasonalPricingRequest,
    SeasonalPricingResponse,
    ValidationResult,
)

__all__ = [
    "DateRange",
    "PriceAdjustment",
    "PriceAdjustmentResult",
    "PricingCondition",
    "PricingConfigRecord",
    "PricingRule",
    "Season",
    "SeasonalPricingConfig",
    "SeasonalPricingRequest",
    "SeasonalPricingResponse",
    "ValidationResult",
]
