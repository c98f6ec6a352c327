"""APScheduler setup for periodic seasonal pricing re-evaluation."""

from __future__ import annotations

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ratepilot.config import get_section
from ratepilot.context import EngineContext
from ratepilot.models.pricing import ALL
from ratepilot.models.results import DateRange, SeasonalPricingRequest
from ratepilot.modules.pricing.service import SeasonalPricingService

logger = logging.getLogger(__name__)


async def run_pricing_cycle(ctx: EngineContext, service: SeasonalPricingService) -> list[str]:
    """Re-price the rolling horizon for every property with automation on.

    A property whose previous run is still in flight is skipped. Returns the
    property ids that were processed.
    """
    horizon = get_section("scheduler").get("horizon_days", 30)
    tomorrow = ctx.today() + timedelta(days=1)
    window = DateRange(tomorrow, tomorrow + timedelta(days=horizon))

    await service.pipeline.expire_pending()

    processed = []
    for property_id, config in list(ctx.configs.items()):
        if not (config.enabled and config.automation.auto_apply_changes):
            continue
        if property_id in ctx.in_flight:
            logger.info("Pricing run for %s still in flight, skipping", property_id)
            continue

        ctx.in_flight.add(property_id)
        try:
            await service.calculate_seasonal_pricing(
                SeasonalPricingRequest(
                    property_id=property_id,
                    room_type_id=ALL,
                    date_range=window,
                    force_recalculation=True,
                )
            )
            processed.append(property_id)
        except Exception:
            logger.exception("Scheduled pricing failed for %s", property_id)
        finally:
            ctx.in_flight.discard(property_id)

    logger.info("Pricing cycle done: %d propert(ies) processed", len(processed))
    return processed


def create_scheduler(ctx: EngineContext, service: SeasonalPricingService) -> AsyncIOScheduler:
    """Create and configure the scheduler. The caller starts it."""
    sched_config = get_section("scheduler")
    scheduler = AsyncIOScheduler(timezone=sched_config.get("timezone", "UTC"))

    scheduler.add_job(
        run_pricing_cycle,
        "interval",
        minutes=sched_config.get("pricing_interval_minutes", 60),
        args=[ctx, service],
        id="seasonal_pricing",
        name="Seasonal Pricing",
        max_instances=1,
        coalesce=True,
    )

    ctx.scheduler = scheduler
    logger.info("Scheduler configured with %d jobs", len(scheduler.get_jobs()))
    return scheduler


def _next_run(job) -> str | None:
    # Jobs added before the scheduler starts have no next_run_time yet
    next_run = getattr(job, "next_run_time", None)
    return next_run.isoformat() if next_run else None


def scheduler_status(ctx: EngineContext) -> dict:
    scheduler = ctx.scheduler
    if scheduler is None:
        return {"running": False, "jobs": []}
    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": _next_run(job),
            }
            for job in scheduler.get_jobs()
        ],
        "in_flight": sorted(ctx.in_flight),
    }
