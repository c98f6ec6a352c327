"""Engine context: every piece of mutable engine state, created once per process.

Nothing in the engine keeps module-level state. The FastAPI app, the
scheduler and tests each build an ``EngineContext`` with ``create_context``
and hand it to ``SeasonalPricingService``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

import httpx

from ratepilot.events import EventBus
from ratepilot.models.pricing import SeasonalPricingConfig
from ratepilot.models.results import AutomationState, SeasonalPricingResponse, ValidationOverride
from ratepilot.modules.automation.notifier import Notifier
from ratepilot.modules.automation.pipeline import AppliedBatch, PendingApproval
from ratepilot.modules.collaborators.clients import Collaborators, build_http_collaborators
from ratepilot.modules.collaborators.store import ConfigStore
from ratepilot.modules.pricing.analytics import PricingHistory
from ratepilot.modules.pricing.defaults import DEFAULT_PROPERTY_ID, build_default_config
from ratepilot.modules.pricing.signals import default_timeout

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

Key = tuple[str, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CachedResponse:
    stored_at: datetime
    response: SeasonalPricingResponse


@dataclass
class EngineContext:
    collaborators: Collaborators
    notifier: Notifier
    event_bus: EventBus
    http_client: httpx.AsyncClient | None = None
    store: ConfigStore | None = None
    clock: Callable[[], datetime] = utcnow
    timeout: float = field(default_factory=default_timeout)
    scheduler: AsyncIOScheduler | None = None

    configs: dict[str, SeasonalPricingConfig] = field(default_factory=dict)
    history: PricingHistory = field(default_factory=PricingHistory)
    states: dict[Key, AutomationState] = field(default_factory=dict)
    pending: dict[Key, PendingApproval] = field(default_factory=dict)
    applied: dict[Key, list[AppliedBatch]] = field(default_factory=dict)
    rolled_back: dict[Key, list[AppliedBatch]] = field(default_factory=dict)
    overrides: dict[str, list[ValidationOverride]] = field(default_factory=lambda: defaultdict(list))
    cache: dict[tuple, CachedResponse] = field(default_factory=dict)
    in_flight: set[str] = field(default_factory=set)
    _locks: dict[Key, asyncio.Lock] = field(default_factory=dict, init=False, repr=False)

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def lock_for(self, key: Key) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def active_overrides(self, property_id: str) -> list[ValidationOverride]:
        now = self.now()
        return [o for o in self.overrides.get(property_id, []) if o.is_active(now)]

    def invalidate_cache(self, property_id: str) -> None:
        for key in [k for k in self.cache if k[0] == property_id]:
            del self.cache[key]


def seed_configs(ctx: EngineContext, property_ids: list[Any] | None = None) -> None:
    """Install the default configuration, plus a copy for each configured property."""
    ctx.configs[DEFAULT_PROPERTY_ID] = build_default_config()
    if property_ids is None:
        from ratepilot.config import settings

        property_ids = settings.get("properties") or []
    for entry in property_ids:
        property_id = entry["id"] if isinstance(entry, dict) else str(entry)
        ctx.configs.setdefault(property_id, build_default_config(property_id))
    logger.info("Seeded pricing configs: %s", sorted(ctx.configs))


def create_context(
    collaborators: Collaborators | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    store: ConfigStore | None = None,
    clock: Callable[[], datetime] | None = None,
    seed: bool = True,
) -> EngineContext:
    timeout = default_timeout()
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=timeout)
    event_bus = EventBus()
    ctx = EngineContext(
        collaborators=collaborators or build_http_collaborators(http_client),
        notifier=Notifier(http_client, event_bus),
        event_bus=event_bus,
        http_client=http_client,
        store=store,
        clock=clock or utcnow,
        timeout=timeout,
    )
    if seed:
        seed_configs(ctx)
    return ctx


async def init_context(ctx: EngineContext) -> None:
    """Load persisted configurations over the seeded ones."""
    if ctx.store is None:
        return
    configs = await asyncio.to_thread(ctx.store.load_all)
    for config in configs:
        ctx.configs[config.property_id] = config
    logger.info("Loaded %d persisted pricing config(s)", len(configs))


async def shutdown_context(ctx: EngineContext) -> None:
    if ctx.scheduler is not None and ctx.scheduler.running:
        ctx.scheduler.shutdown(wait=False)
    if ctx.http_client is not None:
        await ctx.http_client.aclose()
    logger.info("Engine context shut down")
