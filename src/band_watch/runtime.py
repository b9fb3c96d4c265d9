from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TypeVar

from band_watch.alerts import AlertEvaluator
from band_watch.config.bands import BandWatchConfig
from band_watch.engine.monitor import BandMonitor
from band_watch.market import CoinGeckoClient
from band_watch.notifications import Notifier, build_notifier
from band_watch.settings import NotificationChannel, Settings


@dataclass(frozen=True)
class RuntimeOptions:
    coin_id: str
    vs_currency: str
    history_days: int
    period: int
    std_dev: float
    poll_interval_seconds: float
    cooldown_seconds: float
    history_limit: int
    channel: NotificationChannel
    relay: bool


T = TypeVar("T")


def _pick(value: Optional[T], fallback: T) -> T:
    return fallback if value is None else value


def resolve_options(
    settings: Settings,
    cfg: Optional[BandWatchConfig] = None,
    *,
    channel: Optional[NotificationChannel] = None,
) -> RuntimeOptions:
    cfg = cfg if cfg is not None else BandWatchConfig()
    return RuntimeOptions(
        coin_id=_pick(cfg.market.coin_id, settings.coin_id).strip(),
        vs_currency=_pick(cfg.market.vs_currency, settings.vs_currency).strip(),
        history_days=_pick(cfg.market.history_days, settings.history_days),
        period=_pick(cfg.bands.period, settings.bb_period),
        std_dev=_pick(cfg.bands.std_dev, settings.bb_std_dev),
        poll_interval_seconds=_pick(cfg.polling.interval_seconds, settings.poll_interval_seconds),
        cooldown_seconds=_pick(cfg.alerts.cooldown_seconds, settings.alert_cooldown_seconds),
        history_limit=_pick(cfg.alerts.history_limit, settings.alert_history_limit),
        channel=channel or _pick(cfg.notifications.channel, settings.notification_channel),
        relay=_pick(cfg.notifications.relay, settings.notification_relay),
    )


def build_client(settings: Settings, options: RuntimeOptions) -> CoinGeckoClient:
    return CoinGeckoClient(
        coin_id=options.coin_id,
        vs_currency=options.vs_currency,
        history_days=options.history_days,
        base_url=settings.coingecko_base_url,
    )


def build_monitor(
    *,
    options: RuntimeOptions,
    client: CoinGeckoClient,
    notifier: Notifier,
) -> BandMonitor:
    return BandMonitor(
        gateway=client,
        notifier=notifier,
        evaluator=AlertEvaluator(
            cooldown_seconds=options.cooldown_seconds,
            history_limit=options.history_limit,
        ),
        period=options.period,
        std_dev=options.std_dev,
        poll_interval_seconds=options.poll_interval_seconds,
    )


def build_runtime_notifier(settings: Settings, options: RuntimeOptions) -> Notifier:
    return build_notifier(settings, channel=options.channel, relay=options.relay)
