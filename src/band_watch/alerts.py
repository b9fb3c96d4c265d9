from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from band_watch.types import AlertRecord, Band, BandAlert, BollingerBands, NotificationPermission

ALERT_TITLE = "Bitcoin Price Alert!"
DEFAULT_COOLDOWN_SECONDS = 300.0
DEFAULT_HISTORY_LIMIT = 10

_BAND_LABELS: dict[Band, str] = {"upper": "Upper Band", "lower": "Lower Band"}


def format_price(price: Decimal) -> str:
    return f"{price:,.2f}"


def touched_band(price: Decimal, bands: BollingerBands) -> Optional[Band]:
    # Inclusive on both sides; upper wins when a degenerate band satisfies both.
    if price >= bands.upper:
        return "upper"
    if price <= bands.lower:
        return "lower"
    return None


def alert_message(band: Band, price: Decimal) -> str:
    return f"Price touched {_BAND_LABELS[band]} at ${format_price(price)}"


@dataclass
class AlertState:
    last_alert_time_s: Optional[float] = None
    records: deque[AlertRecord] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT)
    )


class AlertEvaluator:
    def __init__(
        self,
        *,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")
        if history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        self.cooldown_seconds = float(cooldown_seconds)
        self.state = AlertState(records=deque(maxlen=history_limit))

    @property
    def alerts(self) -> list[AlertRecord]:
        """Recorded alerts, newest first."""
        return list(self.state.records)

    def in_cooldown(self, now_s: float) -> bool:
        last = self.state.last_alert_time_s
        return last is not None and now_s - last <= self.cooldown_seconds

    def evaluate(
        self,
        *,
        price: Decimal,
        bands: Optional[BollingerBands],
        permission: NotificationPermission,
        now_s: Optional[float] = None,
    ) -> Optional[BandAlert]:
        """Decide whether ``price`` should raise a band alert.

        Nothing is recorded unless notifications are granted, bands are
        available and the cooldown has elapsed. On an alert the cooldown
        restarts and the record is prepended to :attr:`alerts`.
        """
        if bands is None or permission != "granted":
            return None

        now = time.time() if now_s is None else now_s
        if self.in_cooldown(now):
            return None

        band = touched_band(price, bands)
        if band is None:
            return None

        record = AlertRecord(
            message=alert_message(band, price),
            time=datetime.fromtimestamp(now).strftime("%H:%M:%S"),
        )
        self.state.last_alert_time_s = now
        self.state.records.appendleft(record)
        return BandAlert(band=band, price=price, bands=bands, record=record)
