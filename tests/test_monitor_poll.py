import asyncio
from contextlib import suppress
from decimal import Decimal

import pytest

from band_watch.alerts import AlertEvaluator
from band_watch.engine.monitor import BandMonitor
from band_watch.market import MarketDataError
from band_watch.notifications.base import Notifier
from band_watch.types import Notification, NotificationPermission


class _FakeGateway:
    coin_id = "bitcoin"
    vs_currency = "usd"

    def __init__(self, *, history: list[Decimal], prices: list[Decimal] | None = None) -> None:
        self.history = history
        self.prices = list(prices or [])
        self.fail_with: Exception | None = None
        self.current_calls = 0

    async def price_history(self, *, limit: int = 20) -> list[Decimal]:
        return list(self.history[-limit:])

    async def current_price(self) -> Decimal:
        self.current_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return self.prices.pop(0)


class _CollectingNotifier(Notifier):
    channel = "collect"

    def __init__(self, permission: NotificationPermission = "granted") -> None:
        super().__init__(permission=permission)
        self.sent: list[Notification] = []

    def _default_permission(self) -> NotificationPermission:
        return "granted"

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)


def _flat(n: int = 20, value: str = "10") -> list[Decimal]:
    return [Decimal(value)] * n


def test_start_seeds_history_and_bands() -> None:
    history = [Decimal(v) for v in range(100, 120)]
    monitor = BandMonitor(gateway=_FakeGateway(history=history), notifier=_CollectingNotifier())

    asyncio.run(monitor.start())

    assert list(monitor.state.history) == history
    assert monitor.state.current_price == Decimal("119")
    assert monitor.state.bands is not None
    assert monitor.state.bands.middle == Decimal("109.5")
    assert monitor.state.started is True


def test_start_without_history_fetches_current_price() -> None:
    gateway = _FakeGateway(history=[], prices=[Decimal("65000")])
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier())

    asyncio.run(monitor.start())

    assert monitor.state.current_price == Decimal("65000")
    assert monitor.state.bands is None
    assert len(monitor.state.history) == 0


def test_start_failure_propagates() -> None:
    gateway = _FakeGateway(history=[])
    gateway.fail_with = MarketDataError("down")
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier())

    with pytest.raises(MarketDataError):
        asyncio.run(monitor.start())
    assert monitor.state.started is False


def test_poll_evicts_oldest_price() -> None:
    history = [Decimal(v) for v in range(100, 120)]
    gateway = _FakeGateway(history=history, prices=[Decimal("110")])
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier())

    asyncio.run(monitor.start())
    asyncio.run(monitor.poll_once())

    assert len(monitor.state.history) == 20
    assert monitor.state.history[0] == Decimal("101")
    assert monitor.state.history[-1] == Decimal("110")
    assert monitor.state.current_price == Decimal("110")


def test_flat_history_touch_dispatches_upper_alert() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10")])
    notifier = _CollectingNotifier()
    monitor = BandMonitor(gateway=gateway, notifier=notifier)

    asyncio.run(monitor.start())
    alert = asyncio.run(monitor.poll_once())

    assert alert is not None and alert.band == "upper"
    assert notifier.sent == [
        Notification(
            title="Bitcoin Price Alert!",
            body="Price touched Upper Band at $10.00",
            icon=notifier.sent[0].icon,
        )
    ]
    assert [a.message for a in monitor.evaluator.alerts] == ["Price touched Upper Band at $10.00"]


def test_two_touches_inside_cooldown_alert_once() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10"), Decimal("10")])
    notifier = _CollectingNotifier()
    monitor = BandMonitor(
        gateway=gateway,
        notifier=notifier,
        evaluator=AlertEvaluator(cooldown_seconds=300),
    )

    asyncio.run(monitor.start())
    first = asyncio.run(monitor.poll_once())
    second = asyncio.run(monitor.poll_once())

    assert first is not None
    assert second is None
    assert len(notifier.sent) == 1
    assert len(monitor.evaluator.alerts) == 1


def test_denied_permission_records_nothing() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10")])
    notifier = _CollectingNotifier(permission="denied")
    monitor = BandMonitor(gateway=gateway, notifier=notifier)

    asyncio.run(monitor.start())
    alert = asyncio.run(monitor.poll_once())

    assert alert is None
    assert notifier.sent == []
    assert monitor.evaluator.alerts == []
    assert monitor.state.history[-1] == Decimal("10")


def test_poll_failure_keeps_previous_state() -> None:
    history = [Decimal(v) for v in range(100, 120)]
    gateway = _FakeGateway(history=history)
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier())

    asyncio.run(monitor.start())
    bands_before = monitor.state.bands
    gateway.fail_with = MarketDataError("upstream unreachable")

    assert asyncio.run(monitor.poll_once()) is None

    assert list(monitor.state.history) == history
    assert monitor.state.bands == bands_before
    assert monitor.state.current_price == Decimal("119")
    assert monitor.state.last_error is not None
    assert "upstream unreachable" in monitor.state.last_error


def test_poll_after_close_is_discarded() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10")])
    notifier = _CollectingNotifier()
    monitor = BandMonitor(gateway=gateway, notifier=notifier)

    asyncio.run(monitor.start())
    monitor.close()

    assert asyncio.run(monitor.poll_once()) is None
    assert gateway.current_calls == 1
    assert len(monitor.state.history) == 20
    assert monitor.state.current_price == Decimal("10")
    assert notifier.sent == []


def test_run_polls_on_interval_until_cancelled() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10")] * 100)
    monitor = BandMonitor(
        gateway=gateway,
        notifier=_CollectingNotifier(permission="denied"),
        poll_interval_seconds=0.01,
    )

    async def _run() -> None:
        task = asyncio.create_task(monitor.run())
        await asyncio.sleep(0.2)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(_run())

    assert gateway.current_calls >= 2
    assert len(monitor.state.history) == 20


def test_snapshot_reports_bands_and_alerts() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("10")])
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier())

    asyncio.run(monitor.start())
    asyncio.run(monitor.poll_once())
    snap = monitor.snapshot()

    assert snap["coin"] == "bitcoin"
    assert snap["current_price_display"] == "$10.00"
    assert snap["bands"] == {"upper": "10.00", "middle": "10.00", "lower": "10.00"}
    assert snap["history_len"] == 20
    assert snap["notification_permission"] == "granted"
    assert snap["alerts"][0]["message"] == "Price touched Upper Band at $10.00"


def test_snapshot_bands_use_two_decimals_with_float_multiplier() -> None:
    history = [Decimal(v) for v in range(100, 120)]
    gateway = _FakeGateway(history=history)
    monitor = BandMonitor(gateway=gateway, notifier=_CollectingNotifier(), std_dev=2.0)

    asyncio.run(monitor.start())
    bands = monitor.snapshot()["bands"]

    assert bands["middle"] == "109.50"
    # sd of 100..119 is sqrt(33.25) = 5.766...
    assert bands["upper"] == "121.03"
    assert bands["lower"] == "97.97"


def test_check_once_recomputes_bands_with_fresh_price() -> None:
    # Seeded bands put the upper band at 102; with 102.2 in the window it moves above.
    history = [Decimal("99"), Decimal("101")] * 10
    gateway = _FakeGateway(history=history, prices=[Decimal("102.2")])
    notifier = _CollectingNotifier()
    monitor = BandMonitor(gateway=gateway, notifier=notifier)

    asyncio.run(monitor.start())
    assert monitor.state.bands is not None
    assert monitor.state.bands.upper == Decimal("102")

    touched = asyncio.run(monitor.check_once())

    assert touched is None
    assert len(monitor.state.history) == 20
    assert monitor.state.history[-1] == Decimal("102.2")
    assert monitor.state.current_price == Decimal("102.2")
    assert monitor.state.bands.upper > Decimal("102.2")
    assert monitor.snapshot()["alerts"] == []
    assert notifier.sent == []


def test_check_once_reports_touch_without_alerting() -> None:
    gateway = _FakeGateway(history=_flat(), prices=[Decimal("150")])
    notifier = _CollectingNotifier()
    monitor = BandMonitor(gateway=gateway, notifier=notifier)

    asyncio.run(monitor.start())
    assert asyncio.run(monitor.check_once()) == "upper"
    assert monitor.snapshot()["alerts"] == []
    assert notifier.sent == []
