"""config.yaml + .env settings for the pricing engine."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


def _find_project_root() -> Path:
    """Walk up from this file to the directory holding config.yaml."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "config.yaml").exists():
            return current
        current = current.parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()


def _load_settings(root: Path) -> dict[str, Any]:
    load_dotenv(root / ".env")
    config_path = root / "config.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"config.yaml not found at {config_path}")
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def get_env(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def get_database_url() -> str:
    """DATABASE_URL, or a SQLite file beside config.yaml."""
    return get_env("DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'ratepilot.db'}")


def get_section(name: str) -> dict[str, Any]:
    """A private copy of a top-level config.yaml section, empty if missing."""
    return copy.deepcopy(settings.get(name) or {})


settings: dict[str, Any] = _load_settings(PROJECT_ROOT)
