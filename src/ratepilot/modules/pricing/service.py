"""Seasonal pricing service: the engine's public operations."""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from datetime import timedelta

from ratepilot import __version__
from ratepilot.config import get_section
from ratepilot.context import CachedResponse, EngineContext
from ratepilot.events import Event, EventType
from ratepilot.exceptions import OverrideNotAllowedError, PricingNotConfiguredError
from ratepilot.models.pricing import (
    AdjustmentTarget,
    AdjustmentType,
    PricingRule,
    SeasonalPricingConfig,
)
from ratepilot.models.results import (
    ApplyReport,
    AutomationState,
    DateRange,
    ResponseMetadata,
    RollbackTrigger,
    SeasonalAnalytics,
    SeasonalPricingRequest,
    SeasonalPricingResponse,
    ValidationOverride,
)
from ratepilot.modules.automation.pipeline import ApplyPipeline
from ratepilot.modules.pricing import recommendations
from ratepilot.modules.pricing.analytics import build_analytics
from ratepilot.modules.pricing.calculator import (
    REFERENCE_OCCUPANCY,
    PricingInputs,
    ReferenceRates,
    get_strategy,
)
from ratepilot.modules.pricing.rules import select_applicable_rules
from ratepilot.modules.pricing.seasons import resolve_active_season
from ratepilot.modules.pricing.signals import MarketSignals
from ratepilot.modules.pricing.validator import validate

logger = logging.getLogger(__name__)


def _targets(rules: list[PricingRule]) -> set[AdjustmentTarget]:
    return {adj.target for rule in rules for adj in rule.adjustments}


def _uses_dynamic(rules: list[PricingRule]) -> bool:
    return any(adj.type == AdjustmentType.DYNAMIC for rule in rules for adj in rule.adjustments)


class SeasonalPricingService:
    """Calculates, validates and (optionally) applies seasonal prices."""

    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx
        self._pipeline = ApplyPipeline(ctx)
        self._config = get_section("pricing")

    @property
    def pipeline(self) -> ApplyPipeline:
        return self._pipeline

    def _require_config(self, property_id: str) -> SeasonalPricingConfig:
        config = self._ctx.configs.get(property_id)
        if config is None or not config.enabled:
            raise PricingNotConfiguredError(property_id)
        return config

    def _configured(self, property_id: str) -> SeasonalPricingConfig:
        """Config regardless of its enabled flag, for management operations."""
        config = self._ctx.configs.get(property_id)
        if config is None:
            raise PricingNotConfiguredError(property_id)
        return config

    # --- Calculation ---

    async def calculate_seasonal_pricing(self, request: SeasonalPricingRequest) -> SeasonalPricingResponse:
        """Price every date of the request range.

        Preview requests never touch the rates store and may be answered from
        the response cache. Other requests go through the apply pipeline.
        """
        started = time.perf_counter()
        config = self._require_config(request.property_id)
        strategy = get_strategy(config)

        cache_key = (
            request.property_id,
            request.room_type_id,
            request.date_range.start,
            request.date_range.end,
            request.season_id,
        )
        if request.preview_mode and not request.force_recalculation:
            cached = self._cached(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", cache_key)
                response = copy.deepcopy(cached)
                response.metadata.cache_status = "hit"
                return response

        key = (request.property_id, request.room_type_id)
        if not request.preview_mode:
            self._pipeline.set_state(key, AutomationState.EVALUATING)

        signals = MarketSignals(
            self._ctx.collaborators, request.property_id, request.date_range, timeout=self._ctx.timeout
        )
        reference_date = request.date_range.start
        season = await resolve_active_season(config, reference_date, signals, request.season_id)
        selection = await select_applicable_rules(
            config, request.room_type_id, season, reference_date, self._ctx.today(), signals
        )

        days = request.date_range.days()
        base_values = await asyncio.gather(
            *(signals.base_rate(request.room_type_id, d) for d in days)
        )
        base_rates = dict(zip(days, base_values))
        reference = await self._reference_rates(selection.rules, signals, request.room_type_id, base_rates)
        occupancy = await signals.occupancy_forecast() if _uses_dynamic(selection.rules) else REFERENCE_OCCUPANCY

        inputs = PricingInputs(
            base_rates=base_rates,
            reference=reference,
            occupancy_forecast=occupancy,
            degraded_signals=len(signals.degraded),
            failed_optional=selection.failed_optional,
        )
        adjustments = strategy.compute(selection.rules, season, inputs)
        validation = validate(
            adjustments, config, self._ctx.active_overrides(request.property_id), self._ctx.now()
        )

        response = SeasonalPricingResponse(
            property_id=request.property_id,
            room_type_id=request.room_type_id,
            season_id=season.id,
            adjustments=adjustments,
            summary=recommendations.summarize(
                adjustments, config.recommendations.competitor_response_threshold
            ),
            validation=validation,
            recommendations=recommendations.generate(adjustments, validation, config),
            metadata=ResponseMetadata(
                generated_at=self._ctx.now(),
                calculation_time_ms=round((time.perf_counter() - started) * 1000, 2),
                data_points=len(adjustments),
                algorithm_used=strategy.algorithm.value,
                version=__version__,
                cache_status="refreshed" if request.force_recalculation else "miss",
                degraded_signals=sorted(signals.degraded),
            ),
        )
        logger.info(
            "Priced %d day(s) for %s/%s in %s: valid=%s degraded=%s",
            len(adjustments), request.property_id, request.room_type_id,
            season.id, validation.valid, response.metadata.degraded_signals,
        )
        self._ctx.event_bus.publish(
            Event(
                event_type=EventType.PRICING_CALCULATED,
                data={
                    "property_id": request.property_id,
                    "room_type_id": request.room_type_id,
                    "season_id": season.id,
                    "preview": request.preview_mode,
                },
            )
        )

        if request.preview_mode:
            self._store_cached(cache_key, response)
            return response

        entries = self._ctx.history.record(
            request.property_id, request.room_type_id, season.id, season.name, adjustments
        )
        response.apply = await self._pipeline.process(config, response, entries)
        return response

    def _cached(self, cache_key: tuple) -> SeasonalPricingResponse | None:
        cached = self._ctx.cache.get(cache_key)
        if cached is None:
            return None
        ttl = timedelta(seconds=self._config.get("cache_ttl_seconds", 300))
        if self._ctx.now() - cached.stored_at > ttl:
            del self._ctx.cache[cache_key]
            return None
        return cached.response

    def _store_cached(self, cache_key: tuple, response: SeasonalPricingResponse) -> None:
        """Cache a copy of ``response``, dropping expired entries and the oldest beyond the cap."""
        now = self._ctx.now()
        ttl = timedelta(seconds=self._config.get("cache_ttl_seconds", 300))
        cache = self._ctx.cache
        for key in [k for k, v in cache.items() if now - v.stored_at > ttl]:
            del cache[key]
        max_entries = self._config.get("cache_max_entries", 256)
        while cache and len(cache) >= max_entries:
            del cache[min(cache, key=lambda k: cache[k].stored_at)]
        cache[cache_key] = CachedResponse(now, copy.deepcopy(response))

    async def _reference_rates(
        self,
        rules: list[PricingRule],
        signals: MarketSignals,
        room_type_id: str,
        base_rates: dict,
    ) -> ReferenceRates:
        """Fetch only the reference rates some selected adjustment targets."""
        targets = _targets(rules)
        reference = ReferenceRates(
            competitor_rate=signals.fallbacks.competitor_rate,
            last_year_factor=signals.fallbacks.last_year_factor,
        )
        if AdjustmentTarget.COMPETITOR_RATE in targets:
            reference.competitor_rate = await signals.competitor_rate(room_type_id)
        if AdjustmentTarget.LAST_YEAR_RATE in targets:
            for day, base in base_rates.items():
                reference.last_year_rates[day] = await signals.last_year_rate(room_type_id, day, base)
        return reference

    # --- Configuration ---

    async def update_configuration(
        self, property_id: str, config: SeasonalPricingConfig
    ) -> SeasonalPricingConfig:
        if config.property_id != property_id:
            config = config.model_copy(update={"property_id": property_id})
        self._ctx.configs[property_id] = config
        self._ctx.invalidate_cache(property_id)
        await self._persist(config)
        self._ctx.event_bus.publish(
            Event(event_type=EventType.CONFIG_UPDATED, data={"property_id": property_id})
        )
        logger.info("Updated pricing config for %s", property_id)
        return config

    async def get_configuration(self, property_id: str) -> SeasonalPricingConfig | None:
        return self._ctx.configs.get(property_id)

    async def _persist(self, config: SeasonalPricingConfig) -> None:
        if self._ctx.store is not None:
            await asyncio.to_thread(self._ctx.store.save, config)

    # --- Analytics ---

    async def get_analytics(self, property_id: str, date_range: DateRange) -> SeasonalAnalytics:
        entries = self._ctx.history.latest_for_property(property_id, date_range)
        return build_analytics(entries, date_range)

    # --- Automation ---

    async def _set_auto_apply(self, property_id: str, enabled: bool) -> None:
        config = self._configured(property_id)
        config.automation.auto_apply_changes = enabled
        await self._persist(config)
        state = AutomationState.IDLE if enabled else AutomationState.DISABLED
        for key in [k for k in self._ctx.states if k[0] == property_id]:
            self._pipeline.set_state(key, state)
        self._ctx.event_bus.publish(
            Event(
                event_type=EventType.AUTOMATION_RESUMED if enabled else EventType.AUTOMATION_PAUSED,
                data={"property_id": property_id},
            )
        )

    async def pause_automation(self, property_id: str) -> None:
        await self._set_auto_apply(property_id, False)
        logger.info("Paused automation for %s", property_id)

    async def resume_automation(self, property_id: str) -> None:
        await self._set_auto_apply(property_id, True)
        logger.info("Resumed automation for %s", property_id)

    async def stop_automation(self) -> None:
        """Stop periodic re-evaluation for every property."""
        scheduler = self._ctx.scheduler
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Seasonal pricing automation stopped")

    async def approve_pending(self, property_id: str, room_type_id: str) -> ApplyReport:
        return await self._pipeline.approve(self._configured(property_id), property_id, room_type_id)

    async def reject_pending(self, property_id: str, room_type_id: str) -> None:
        self._pipeline.reject(property_id, room_type_id)

    async def trigger_rollback(self, property_id: str, room_type_id: str, reason: str) -> ApplyReport:
        return await self._pipeline.rollback(self._configured(property_id), property_id, room_type_id, reason)

    async def evaluate_rollback_triggers(
        self, property_id: str, room_type_id: str, metrics: dict[str, float]
    ) -> list[RollbackTrigger]:
        return await self._pipeline.evaluate_triggers(
            self._configured(property_id), property_id, room_type_id, metrics
        )

    # --- Overrides ---

    async def add_validation_override(
        self,
        property_id: str,
        rule_id: str,
        reason: str,
        approved_by: str,
        duration_hours: int | None = None,
    ) -> ValidationOverride:
        """Let an overridable validation rule pass as a warning for a while."""
        config = self._configured(property_id)
        settings = config.overrides
        if not settings.manual_overrides:
            raise OverrideNotAllowedError(f"Manual overrides are disabled for {property_id}")
        rule = next((r for r in config.validation.price_validation if r.id == rule_id), None)
        if rule is None:
            raise OverrideNotAllowedError(f"Unknown validation rule {rule_id!r}")
        if not rule.override:
            raise OverrideNotAllowedError(f"Validation rule {rule_id!r} cannot be overridden")

        policy = settings.expiration_policy
        now = self._ctx.now()
        expires_at = None
        if policy.auto_expire:
            hours = min(duration_hours or policy.default_duration_hours, policy.max_duration_hours)
            expires_at = now + timedelta(hours=hours)

        override = ValidationOverride(
            rule_id=rule_id,
            reason=reason,
            approved_by=approved_by,
            approved_at=now,
            expires_at=expires_at,
        )
        self._ctx.overrides[property_id].append(override)
        self._ctx.invalidate_cache(property_id)
        logger.info("Override for %s/%s by %s until %s", property_id, rule_id, approved_by, expires_at)
        return override
