"""Season resolution, rule selection, price calculation and validation."""

from ratepilot.modules.pricing.calculator import compute_adjustments, get_strategy
from ratepilot.modules.pricing.defaults import build_default_config
from ratepilot.modules.pricing.rules import select_applicable_rules
from ratepilot.modules.pricing.seasons import resolve_active_season
from ratepilot.modules.pricing.validator import validate

__all__ = [
    "build_default_config",
    "compute_adjustments",
    "get_strategy",
    "resolve_active_season",
    "select_applicable_rules",
    "validate",
]
