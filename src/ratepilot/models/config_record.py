"""Persisted seasonal pricing configuration."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ratepilot.database import Base


class PricingConfigRecord(Base):
    __tablename__ = "pricing_configs"

    property_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)  # SeasonalPricingConfig.model_dump(mode="json")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<PricingConfigRecord property_id={self.property_id!r}>"
