from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Protocol

from band_watch.alerts import ALERT_TITLE, AlertEvaluator, format_price, touched_band
from band_watch.math_utils import bollinger_bands
from band_watch.notifications.base import Notifier
from band_watch.types import Band, BandAlert, BollingerBands, Notification

logger = logging.getLogger("band_watch.monitor")


def _q(value: Decimal, pattern: str = "0.01") -> str:
    return str(value.quantize(Decimal(pattern)))

ALERT_ICON = "chart_increasing"
TEST_NOTIFICATION = Notification(
    title="Test Notification",
    body="Success! Your notification channel is set up to receive alerts.",
    icon="thumbs_up",
)


class PriceGateway(Protocol):
    coin_id: str
    vs_currency: str

    async def price_history(self, *, limit: int = 20) -> list[Decimal]: ...

    async def current_price(self) -> Decimal: ...


@dataclass
class MonitorState:
    history: deque[Decimal] = field(default_factory=lambda: deque(maxlen=20))
    current_price: Optional[Decimal] = None
    bands: Optional[BollingerBands] = None
    started: bool = False
    last_error: Optional[str] = None


class BandMonitor:
    def __init__(
        self,
        *,
        gateway: PriceGateway,
        notifier: Notifier,
        evaluator: Optional[AlertEvaluator] = None,
        period: int = 20,
        std_dev: float = 2,
        poll_interval_seconds: float = 30.0,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be > 0")
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")
        self._gateway = gateway
        self._notifier = notifier
        self._evaluator = evaluator if evaluator is not None else AlertEvaluator()
        self._period = period
        self._std_dev = std_dev
        self._poll_interval_seconds = poll_interval_seconds
        self._state = MonitorState(history=deque(maxlen=period))
        self._closed = False

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def evaluator(self) -> AlertEvaluator:
        return self._evaluator

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def _log_extra(self, **extra: Any) -> dict[str, Any]:
        return {"coin": self._gateway.coin_id, "vs_currency": self._gateway.vs_currency, **extra}

    async def start(self) -> None:
        """Seed the history and compute the initial bands.

        Gateway errors propagate: without a seeded history there is nothing
        to show.
        """
        history = await self._gateway.price_history(limit=self._period)
        if history:
            current = history[-1]
        else:
            current = await self._gateway.current_price()

        self._state.history.clear()
        self._state.history.extend(history)
        self._state.current_price = current
        self._state.bands = self._compute_bands()
        self._state.started = True
        self._closed = False
        self._state.last_error = None
        logger.info(
            "monitor_started",
            extra=self._log_extra(price=str(current), **self._bands_extra()),
        )

    async def run(self) -> None:
        """Seed, then poll every ``poll_interval_seconds`` until cancelled."""
        await self.start()
        await self.poll_forever()

    async def poll_forever(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._poll_interval_seconds)
                await self.poll_once()
        finally:
            self.close()
            logger.info("monitor_stopped", extra=self._log_extra())

    async def poll_once(self) -> Optional[BandAlert]:
        """Fetch the current price and run it through bands and alerts.

        Fetch errors are logged and leave the previous state untouched.
        """
        try:
            price = await self._gateway.current_price()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._state.last_error = f"{type(e).__name__}: {e}"
            logger.exception("poll_failed", extra=self._log_extra())
            return None

        if self._closed:
            logger.debug("poll_discarded", extra=self._log_extra(price=str(price)))
            return None

        self._apply_price(price)

        alert = self._evaluator.evaluate(
            price=price,
            bands=self._state.bands,
            permission=self._notifier.permission(),
        )
        if alert is None:
            logger.debug("no_alert", extra=self._log_extra(price=str(price), **self._bands_extra()))
            return None

        logger.info(
            "band_alert",
            extra=self._log_extra(price=str(price), band=alert.band, **self._bands_extra()),
        )
        await self._safe_notify(
            Notification(title=ALERT_TITLE, body=alert.record.message, icon=ALERT_ICON)
        )
        return alert

    async def check_once(self) -> Optional[Band]:
        """Take a fresh price into the window and report the band it touches.

        Same bookkeeping as :meth:`poll_once`, but nothing is recorded as an
        alert and nothing is sent. Fetch errors propagate.
        """
        price = await self._gateway.current_price()
        self._apply_price(price)
        bands = self._state.bands
        return touched_band(price, bands) if bands is not None else None

    async def send_test_notification(self) -> bool:
        if not self._notifier.enabled():
            logger.warning(
                "test_notification_skipped",
                extra=self._log_extra(channel=self._notifier.channel),
            )
            return False
        await self._notifier.notify(TEST_NOTIFICATION)
        return True

    def close(self) -> None:
        self._closed = True

    def snapshot(self) -> dict[str, Any]:
        bands = self._state.bands
        price = self._state.current_price
        return {
            "coin": self._gateway.coin_id,
            "vs_currency": self._gateway.vs_currency,
            "started": self._state.started,
            "current_price": str(price) if price is not None else None,
            "current_price_display": f"${format_price(price)}" if price is not None else None,
            "bands": (
                {
                    "upper": _q(bands.upper),
                    "middle": _q(bands.middle),
                    "lower": _q(bands.lower),
                }
                if bands is not None
                else None
            ),
            "history_len": len(self._state.history),
            "period": self._period,
            "std_dev": self._std_dev,
            "notification_channel": self._notifier.channel,
            "notification_permission": self._notifier.permission(),
            "alerts": [
                {"message": r.message, "time": r.time} for r in self._evaluator.alerts
            ],
            "last_error": self._state.last_error,
        }

    def _apply_price(self, price: Decimal) -> None:
        self._state.history.append(price)
        self._state.bands = self._compute_bands()
        self._state.current_price = price
        self._state.last_error = None

    def _compute_bands(self) -> Optional[BollingerBands]:
        return bollinger_bands(list(self._state.history), self._period, self._std_dev)

    def _bands_extra(self) -> dict[str, str]:
        bands = self._state.bands
        if bands is None:
            return {}
        return {"upper": _q(bands.upper), "middle": _q(bands.middle), "lower": _q(bands.lower)}

    async def _safe_notify(self, notification: Notification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception:
            logger.exception("notify_failed", extra=self._log_extra(channel=self._notifier.channel))
