"""Tests for persisted pricing configurations."""

from unittest.mock import patch

import pytest

from ratepilot.context import create_context, init_context
from ratepilot.models.config_record import PricingConfigRecord
from ratepilot.modules.collaborators.store import SqlConfigStore
from ratepilot.modules.pricing.defaults import build_default_config


@pytest.fixture
def store(session_factory):
    with patch("ratepilot.modules.collaborators.store.get_session", side_effect=session_factory):
        yield SqlConfigStore()


def test_save_and_load(store):
    config = build_default_config("prop-1")
    config.automation.auto_apply_changes = False
    store.save(config)

    [loaded] = store.load_all()
    assert loaded.property_id == "prop-1"
    assert loaded.automation.auto_apply_changes is False
    assert loaded.seasons[0].id == config.seasons[0].id


def test_save_overwrites_existing_row(store, session_factory):
    config = build_default_config("prop-1")
    store.save(config)
    config.enabled = False
    store.save(config)

    session = session_factory()
    assert session.query(PricingConfigRecord).count() == 1
    session.close()
    assert store.load_all()[0].enabled is False


def test_invalid_rows_are_skipped(store, session_factory):
    session = session_factory()
    session.add(PricingConfigRecord(property_id="broken", payload={"seasons": "nope"}))
    session.commit()
    session.close()
    store.save(build_default_config("prop-1"))

    assert [c.property_id for c in store.load_all()] == ["prop-1"]


@pytest.mark.asyncio
async def test_init_context_loads_over_seeded_configs(store, collaborators, http_client):
    saved = build_default_config("default")
    saved.enabled = False
    store.save(saved)
    store.save(build_default_config("prop-9"))

    ctx = create_context(collaborators, http_client=http_client, store=store)
    assert ctx.configs["default"].enabled is True

    await init_context(ctx)
    assert ctx.configs["default"].enabled is False
    assert "prop-9" in ctx.configs
