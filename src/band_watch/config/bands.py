from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

# Unset values fall back to the process settings (env / .env).


class MarketConfig(BaseModel):
    coin_id: Optional[str] = None
    vs_currency: Optional[str] = None
    history_days: Optional[int] = Field(default=None, ge=1)


class BandsConfig(BaseModel):
    period: Optional[int] = Field(default=None, ge=1)
    std_dev: Optional[float] = Field(default=None, ge=0)


class PollingConfig(BaseModel):
    interval_seconds: Optional[float] = Field(default=None, gt=0)


class AlertsConfig(BaseModel):
    cooldown_seconds: Optional[float] = Field(default=None, ge=0)
    history_limit: Optional[int] = Field(default=None, ge=1)


class NotificationsConfig(BaseModel):
    channel: Optional[Literal["telegram", "log"]] = None
    relay: Optional[bool] = None


class BandWatchConfig(BaseModel):
    market: MarketConfig = Field(default_factory=MarketConfig)
    bands: BandsConfig = Field(default_factory=BandsConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)

    def validate_logic(self) -> None:
        for name in ("coin_id", "vs_currency"):
            value = getattr(self.market, name)
            if value is not None and not value.strip():
                raise ValueError(f"market.{name} must not be blank")


def load_band_watch_config(path: Path) -> BandWatchConfig:
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    cfg = BandWatchConfig.model_validate(raw)
    cfg.validate_logic()
    return cfg
