"""Applying prices, approvals, rollback and notifications."""

from ratepilot.modules.automation.notifier import Notifier
from ratepilot.modules.automation.pipeline import ApplyPipeline

__all__ = ["ApplyPipeline", "Notifier"]
