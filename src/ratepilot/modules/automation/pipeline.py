"""Apply pipeline: pushing validated prices to the rates store.

State is tracked per (property_id, room_type_id)::

    disabled / idle -> evaluating -> pending_approval -> applying -> applied -> rolled_back

Rate updates for one key are serialised by a lock on the engine context, so
an approval, a scheduled run and a rollback never interleave their writes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from ratepilot.events import Event, EventType
from ratepilot.exceptions import NoPendingApprovalError, RollbackUnavailableError
from ratepilot.models.pricing import SeasonalPricingConfig
from ratepilot.models.results import (
    ApplyReport,
    AutomationState,
    RollbackTrigger,
    SeasonalPricingResponse,
)
from ratepilot.modules.pricing.analytics import HistoryEntry
from ratepilot.modules.pricing.defaults import APPLIED, PENDING_APPROVAL, ROLLED_BACK

if TYPE_CHECKING:
    from ratepilot.context import EngineContext

logger = logging.getLogger(__name__)

Key = tuple[str, str]


@dataclass
class PendingApproval:
    response: SeasonalPricingResponse
    entries: list[HistoryEntry]
    requested_at: datetime


@dataclass
class AppliedBatch:
    """Prices written by one apply, with what they replaced."""

    applied_at: datetime
    new_prices: dict[date, float] = field(default_factory=dict)
    original_prices: dict[date, float] = field(default_factory=dict)


class ApplyPipeline:
    def __init__(self, ctx: EngineContext) -> None:
        self._ctx = ctx

    def state(self, property_id: str, room_type_id: str) -> AutomationState:
        return self._ctx.states.get((property_id, room_type_id), AutomationState.IDLE)

    def set_state(self, key: Key, state: AutomationState) -> None:
        previous = self._ctx.states.get(key)
        self._ctx.states[key] = state
        if previous != state:
            logger.debug("%s/%s: %s -> %s", key[0], key[1], previous and previous.value, state.value)

    def _publish(self, event_type: EventType, key: Key, **data) -> None:
        self._ctx.event_bus.publish(
            Event(event_type=event_type, data={"property_id": key[0], "room_type_id": key[1], **data})
        )

    async def process(
        self,
        config: SeasonalPricingConfig,
        response: SeasonalPricingResponse,
        entries: list[HistoryEntry],
    ) -> ApplyReport | None:
        """Decide what happens to a freshly calculated, non-preview response."""
        key = (response.property_id, response.room_type_id)
        automation = config.automation

        if not response.validation.valid:
            logger.warning(
                "Blocking validation errors for %s/%s, not applying: %s",
                key[0], key[1], [e.message for e in response.validation.errors],
            )
            self._publish(EventType.PRICING_BLOCKED, key, errors=len(response.validation.errors))
            self.set_state(key, AutomationState.IDLE if automation.auto_apply_changes else AutomationState.DISABLED)
            return None

        if not automation.auto_apply_changes:
            self.set_state(key, AutomationState.DISABLED)
            return None

        if automation.approval_workflow.enabled:
            self._ctx.pending[key] = PendingApproval(response, entries, self._ctx.now())
            self.set_state(key, AutomationState.PENDING_APPROVAL)
            self._publish(EventType.APPROVAL_REQUESTED, key, days=len(response.adjustments))
            sent, failed = await self._ctx.notifier.notify(
                config, PENDING_APPROVAL, self._notification_context(response)
            )
            return ApplyReport(
                status=AutomationState.PENDING_APPROVAL,
                notified_channels=sent,
                failed_channels=failed,
            )

        return await self.apply(config, response, entries)

    async def apply(
        self,
        config: SeasonalPricingConfig,
        response: SeasonalPricingResponse,
        entries: list[HistoryEntry],
    ) -> ApplyReport:
        key = (response.property_id, response.room_type_id)
        rates = self._ctx.collaborators.rates
        report = ApplyReport(status=AutomationState.APPLYING)

        async with self._ctx.lock_for(key):
            self.set_state(key, AutomationState.APPLYING)
            batch = AppliedBatch(applied_at=self._ctx.now())
            for adj in response.adjustments:
                try:
                    await asyncio.wait_for(
                        rates.update_rate(key[0], key[1], adj.date, adj.adjusted_price),
                        timeout=self._ctx.timeout,
                    )
                except Exception as e:
                    logger.warning(
                        "Failed to apply rate for %s/%s on %s: %s", key[0], key[1], adj.date, e
                    )
                    report.failed_dates.append(adj.date)
                    continue
                report.applied_dates.append(adj.date)
                batch.new_prices[adj.date] = adj.adjusted_price
                batch.original_prices[adj.date] = adj.original_price

            if not report.applied_dates:
                logger.error("No rates applied for %s/%s", key[0], key[1])
                report.status = AutomationState.IDLE
                self.set_state(key, AutomationState.IDLE)
                return report

            self._ctx.applied.setdefault(key, []).append(batch)
            self._ctx.history.mark_applied(entries, report.applied_dates)
            report.status = AutomationState.APPLIED
            self.set_state(key, AutomationState.APPLIED)

        if report.partial:
            logger.warning(
                "Partial apply for %s/%s: %d applied, %d failed",
                key[0], key[1], len(report.applied_dates), len(report.failed_dates),
            )
            self._publish(
                EventType.PRICING_APPLY_PARTIAL, key,
                applied=len(report.applied_dates), failed=[d.isoformat() for d in report.failed_dates],
            )
        else:
            logger.info("Applied %d rate(s) for %s/%s", len(report.applied_dates), key[0], key[1])
            self._publish(EventType.PRICING_APPLIED, key, applied=len(report.applied_dates))

        report.notified_channels, report.failed_channels = await self._ctx.notifier.notify(
            config, APPLIED, self._notification_context(response, dates=report.applied_dates)
        )
        return report

    # --- Approval ---

    async def approve(self, config: SeasonalPricingConfig, property_id: str, room_type_id: str) -> ApplyReport:
        pending = self._ctx.pending.pop((property_id, room_type_id), None)
        if pending is None:
            raise NoPendingApprovalError(property_id, room_type_id)
        logger.info("Pricing change for %s/%s approved", property_id, room_type_id)
        return await self.apply(config, pending.response, pending.entries)

    def reject(self, property_id: str, room_type_id: str) -> None:
        key = (property_id, room_type_id)
        if self._ctx.pending.pop(key, None) is None:
            raise NoPendingApprovalError(property_id, room_type_id)
        logger.info("Pricing change for %s/%s rejected", property_id, room_type_id)
        self.set_state(key, AutomationState.IDLE)

    async def expire_pending(self) -> int:
        """Resolve approvals older than their workflow timeout with its default action."""
        now = self._ctx.now()
        resolved = 0
        for key, pending in list(self._ctx.pending.items()):
            config = self._ctx.configs.get(key[0])
            if config is None:
                continue
            workflow = config.automation.approval_workflow
            if now - pending.requested_at < timedelta(hours=workflow.timeout_hours):
                continue
            if workflow.default_action == "approve":
                await self.approve(config, *key)
            elif workflow.default_action == "reject":
                self.reject(*key)
            else:
                logger.warning(
                    "Approval for %s/%s timed out, escalation required", key[0], key[1]
                )
                continue
            resolved += 1
        return resolved

    # --- Rollback ---

    async def rollback(
        self, config: SeasonalPricingConfig, property_id: str, room_type_id: str, reason: str
    ) -> ApplyReport:
        """Restore the original prices of the last applied batch."""
        key = (property_id, room_type_id)
        if not config.automation.rollback.enabled:
            raise RollbackUnavailableError(f"Rollback is disabled for {property_id}")
        batches = self._ctx.applied.get(key)
        if not batches:
            raise RollbackUnavailableError(f"Nothing applied to roll back for {property_id}/{room_type_id}")

        rates = self._ctx.collaborators.rates
        report = ApplyReport(status=AutomationState.ROLLED_BACK)
        async with self._ctx.lock_for(key):
            batch = batches.pop()
            for day, price in sorted(batch.original_prices.items()):
                try:
                    await asyncio.wait_for(
                        rates.update_rate(property_id, room_type_id, day, price),
                        timeout=self._ctx.timeout,
                    )
                    report.applied_dates.append(day)
                except Exception as e:
                    logger.warning("Failed to restore rate for %s/%s on %s: %s", property_id, room_type_id, day, e)
                    report.failed_dates.append(day)
            if config.automation.rollback.preserve_history:
                self._ctx.rolled_back.setdefault(key, []).append(batch)
            self.set_state(key, AutomationState.ROLLED_BACK)

        logger.warning("Rolled back %d rate(s) for %s/%s: %s", len(report.applied_dates), property_id, room_type_id, reason)
        self._publish(EventType.PRICING_ROLLED_BACK, key, reason=reason, restored=len(report.applied_dates))
        report.notified_channels, report.failed_channels = await self._ctx.notifier.notify(
            config,
            ROLLED_BACK,
            {
                "property_id": property_id,
                "room_type_id": room_type_id,
                "reason": reason,
                "dates": report.applied_dates,
            },
        )
        return report

    async def evaluate_triggers(
        self,
        config: SeasonalPricingConfig,
        property_id: str,
        room_type_id: str,
        metrics: dict[str, float],
    ) -> list[RollbackTrigger]:
        """Compare observed metrics with rollback thresholds; auto-rollback if configured.

        A fired condition only causes an automatic rollback while the last
        applied batch is inside the condition's time window.
        """
        rollback = config.automation.rollback
        fired = []
        for condition in rollback.trigger_conditions:
            observed = metrics.get(condition.metric.value)
            if observed is not None and observed >= condition.threshold:
                fired.append(RollbackTrigger(condition.metric.value, condition.threshold, observed))
        if not fired:
            return fired

        logger.warning("Rollback triggers fired for %s/%s: %s", property_id, room_type_id, [t.metric for t in fired])
        batches = self._ctx.applied.get((property_id, room_type_id))
        if not (rollback.enabled and rollback.auto_rollback and batches):
            return fired

        age = self._ctx.now() - batches[-1].applied_at
        windows = {c.metric.value: c.time_window_hours for c in rollback.trigger_conditions}
        if any(age <= timedelta(hours=windows[t.metric]) for t in fired):
            reason = ", ".join(f"{t.metric} {t.observed:g} >= {t.threshold:g}" for t in fired)
            await self.rollback(config, property_id, room_type_id, reason)
        return fired

    @staticmethod
    def _notification_context(response: SeasonalPricingResponse, dates: list[date] | None = None) -> dict:
        return {
            "property_id": response.property_id,
            "room_type_id": response.room_type_id,
            "season_id": response.season_id,
            "summary": response.summary,
            "dates": dates if dates is not None else [a.date for a in response.adjustments],
        }
