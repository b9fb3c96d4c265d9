from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from band_watch.types import NotificationPermission

NotificationChannel = Literal["telegram", "log"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # CoinGecko
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        validation_alias="COINGECKO_BASE_URL",
    )
    coin_id: str = Field(default="bitcoin", validation_alias="COIN_ID")
    vs_currency: str = Field(default="usd", validation_alias="VS_CURRENCY")
    history_days: int = Field(default=1, ge=1, validation_alias="HISTORY_DAYS")

    # Bands
    bb_period: int = Field(default=20, ge=1, validation_alias="BB_PERIOD")
    bb_std_dev: float = Field(default=2.0, ge=0, validation_alias="BB_STD_DEV")

    # Polling / alerts
    poll_interval_seconds: float = Field(default=30.0, gt=0, validation_alias="POLL_INTERVAL_SECONDS")
    alert_cooldown_seconds: float = Field(
        default=300.0,
        ge=0,
        validation_alias="ALERT_COOLDOWN_SECONDS",
    )
    alert_history_limit: int = Field(default=10, ge=1, validation_alias="ALERT_HISTORY_LIMIT")

    # Notifications
    notification_permission: Optional[NotificationPermission] = Field(
        default=None,
        validation_alias="NOTIFICATION_PERMISSION",
    )
    notification_channel: NotificationChannel = Field(
        default="telegram",
        validation_alias="NOTIFICATION_CHANNEL",
    )
    notification_relay: bool = Field(default=False, validation_alias="NOTIFICATION_RELAY")

    # Telegram
    telegram_bot_token: str = Field(default="", validation_alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str = Field(default="", validation_alias="TELEGRAM_CHAT_ID")

    # API
    api_host: str = Field(default="127.0.0.1", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token.strip() and self.telegram_chat_id.strip())
