"""FastAPI application exposing the seasonal pricing engine as a JSON API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field, ValidationError, model_validator

from ratepilot.config import get_section
from ratepilot.context import EngineContext, create_context, init_context, shutdown_context
from ratepilot.database import init_db
from ratepilot.exceptions import (
    NoPendingApprovalError,
    OverrideNotAllowedError,
    PricingNotConfiguredError,
    RollbackUnavailableError,
    UnsupportedAlgorithmError,
)
from ratepilot.models.pricing import SeasonalPricingConfig
from ratepilot.models.results import DateRange, SeasonalPricingRequest, response_to_dict
from ratepilot.modules.collaborators.store import SqlConfigStore
from ratepilot.modules.pricing.service import SeasonalPricingService
from ratepilot.scheduler import create_scheduler, scheduler_status

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting RatePilot...")
    store = None
    if get_section("persistence").get("enabled", False):
        init_db()
        store = SqlConfigStore()

    ctx = create_context(store=store)
    await init_context(ctx)
    service = SeasonalPricingService(ctx)
    app.state.ctx = ctx
    app.state.service = service

    scheduler = create_scheduler(ctx, service)
    scheduler.start()
    logger.info("Scheduler started.")

    yield

    await shutdown_context(ctx)
    logger.info("RatePilot shut down.")


app = FastAPI(title="RatePilot", lifespan=lifespan)


# --- Request bodies ---


class CalculateBody(BaseModel):
    property_id: str
    room_type_id: str
    start: date
    end: date
    season_id: str | None = None
    force_recalculation: bool = False
    preview_mode: bool = False

    @model_validator(mode="after")
    def check_range(self) -> CalculateBody:
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class RollbackBody(BaseModel):
    reason: str = "manual"


class RollbackMetricsBody(BaseModel):
    metrics: dict[str, float]


class OverrideBody(BaseModel):
    rule_id: str
    reason: str
    approved_by: str
    duration_hours: int | None = Field(default=None, gt=0)


# --- Helpers ---


def _service(request: Request) -> SeasonalPricingService:
    return request.app.state.service


def _ctx(request: Request) -> EngineContext:
    return request.app.state.ctx


def _not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


# --- Pricing ---


@app.post("/api/pricing/calculate")
async def calculate(body: CalculateBody, request: Request):
    """Calculate (and, unless previewing, possibly apply) seasonal prices."""
    pricing_request = SeasonalPricingRequest(
        property_id=body.property_id,
        room_type_id=body.room_type_id,
        date_range=DateRange(body.start, body.end),
        season_id=body.season_id,
        force_recalculation=body.force_recalculation,
        preview_mode=body.preview_mode,
    )
    try:
        response = await _service(request).calculate_seasonal_pricing(pricing_request)
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    except UnsupportedAlgorithmError as e:
        raise HTTPException(status_code=501, detail=str(e))
    return response_to_dict(response)


@app.get("/api/pricing/config/{property_id}")
async def get_config(property_id: str, request: Request):
    config = await _service(request).get_configuration(property_id)
    if config is None:
        raise HTTPException(status_code=404, detail=f"No pricing config for {property_id!r}")
    return config.model_dump(mode="json")


@app.put("/api/pricing/config/{property_id}")
async def put_config(property_id: str, request: Request):
    """Replace a property's configuration. Invalid configs are rejected whole."""
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=422, detail="Body must be a JSON object")
    if isinstance(payload, dict):
        payload.setdefault("property_id", property_id)
    try:
        config = SeasonalPricingConfig.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    saved = await _service(request).update_configuration(property_id, config)
    return saved.model_dump(mode="json")


@app.get("/api/pricing/analytics/{property_id}")
async def analytics(property_id: str, request: Request, start: date = Query(...), end: date = Query(...)):
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    result = await _service(request).get_analytics(property_id, DateRange(start, end))
    return response_to_dict(result)


# --- Automation ---


@app.post("/api/pricing/automation/stop")
async def stop_automation(request: Request):
    await _service(request).stop_automation()
    return {"status": "stopped"}


@app.post("/api/pricing/automation/{property_id}/pause")
async def pause_automation(property_id: str, request: Request):
    try:
        await _service(request).pause_automation(property_id)
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    return {"property_id": property_id, "auto_apply_changes": False}


@app.post("/api/pricing/automation/{property_id}/resume")
async def resume_automation(property_id: str, request: Request):
    try:
        await _service(request).resume_automation(property_id)
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    return {"property_id": property_id, "auto_apply_changes": True}


@app.post("/api/pricing/approvals/{property_id}/{room_type_id}/approve")
async def approve(property_id: str, room_type_id: str, request: Request):
    try:
        report = await _service(request).approve_pending(property_id, room_type_id)
    except (PricingNotConfiguredError, NoPendingApprovalError) as e:
        raise _not_found(e)
    return response_to_dict(report)


@app.post("/api/pricing/approvals/{property_id}/{room_type_id}/reject")
async def reject(property_id: str, room_type_id: str, request: Request):
    try:
        await _service(request).reject_pending(property_id, room_type_id)
    except NoPendingApprovalError as e:
        raise _not_found(e)
    return {"status": "rejected"}


@app.post("/api/pricing/rollback/{property_id}/{room_type_id}")
async def rollback(property_id: str, room_type_id: str, body: RollbackBody, request: Request):
    try:
        report = await _service(request).trigger_rollback(property_id, room_type_id, body.reason)
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    except RollbackUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return response_to_dict(report)


@app.post("/api/pricing/rollback/{property_id}/{room_type_id}/evaluate")
async def evaluate_rollback(
    property_id: str, room_type_id: str, body: RollbackMetricsBody, request: Request
):
    try:
        fired = await _service(request).evaluate_rollback_triggers(property_id, room_type_id, body.metrics)
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    return {"fired": response_to_dict(fired)}


@app.post("/api/pricing/overrides/{property_id}")
async def add_override(property_id: str, body: OverrideBody, request: Request):
    try:
        override = await _service(request).add_validation_override(
            property_id, body.rule_id, body.reason, body.approved_by, body.duration_hours
        )
    except PricingNotConfiguredError as e:
        raise _not_found(e)
    except OverrideNotAllowedError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return response_to_dict(override)


@app.get("/api/scheduler/status")
async def get_scheduler_status(request: Request):
    return scheduler_status(_ctx(request))


def main() -> None:
    """Entry point for running the app."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    uvicorn.run(
        "ratepilot.app:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
