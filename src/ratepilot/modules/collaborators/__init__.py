"""Rates, forecast and competitor services, and the configuration store."""

from ratepilot.modules.collaborators.clients import Collaborators, build_http_collaborators
from ratepilot.modules.collaborators.store import ConfigStore, SqlConfigStore

__all__ = ["Collaborators", "ConfigStore", "SqlConfigStore", "build_http_collaborators"]
