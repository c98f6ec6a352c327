"""Optional persistence for per-property pricing configurations."""

from __future__ import annotations

import logging
from typing import Protocol

from ratepilot.database import get_session
from ratepilot.models.config_record import PricingConfigRecord
from ratepilot.models.pricing import SeasonalPricingConfig

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    def load_all(self) -> list[SeasonalPricingConfig]: ...

    def save(self, config: SeasonalPricingConfig) -> None: ...


class SqlConfigStore:
    """Stores each property's configuration as one JSON row."""

    def load_all(self) -> list[SeasonalPricingConfig]:
        session = get_session()
        try:
            configs = []
            for record in session.query(PricingConfigRecord).all():
                try:
                    configs.append(SeasonalPricingConfig.model_validate(record.payload))
                except ValueError:
                    logger.exception("Stored config for %s is invalid, skipping", record.property_id)
            return configs
        finally:
            session.close()

    def save(self, config: SeasonalPricingConfig) -> None:
        session = get_session()
        try:
            payload = config.model_dump(mode="json")
            record = session.get(PricingConfigRecord, config.property_id)
            if record:
                record.payload = payload
            else:
                session.add(PricingConfigRecord(property_id=config.property_id, payload=payload))
            session.commit()
            logger.info("Saved pricing config for %s", config.property_id)
        finally:
            session.close()
