from datetime import datetime
from decimal import Decimal

from band_watch.alerts import AlertEvaluator, format_price
from band_watch.types import BollingerBands

BANDS = BollingerBands(upper=Decimal("110"), middle=Decimal("100"), lower=Decimal("90"))
NOW = 1_700_000_000.0


def test_upper_touch_is_inclusive() -> None:
    ev = AlertEvaluator()
    alert = ev.evaluate(price=Decimal("110"), bands=BANDS, permission="granted", now_s=NOW)
    assert alert is not None
    assert alert.band == "upper"
    assert alert.record.message == "Price touched Upper Band at $110.00"
    assert ev.alerts == [alert.record]
    assert ev.state.last_alert_time_s == NOW


def test_lower_touch_is_inclusive() -> None:
    ev = AlertEvaluator()
    alert = ev.evaluate(price=Decimal("90"), bands=BANDS, permission="granted", now_s=NOW)
    assert alert is not None
    assert alert.band == "lower"
    assert alert.record.message == "Price touched Lower Band at $90.00"


def test_price_inside_bands_is_not_an_alert() -> None:
    ev = AlertEvaluator()
    assert ev.evaluate(price=Decimal("100"), bands=BANDS, permission="granted", now_s=NOW) is None
    assert ev.alerts == []
    assert ev.state.last_alert_time_s is None


def test_missing_bands_or_permission_skip_everything() -> None:
    ev = AlertEvaluator()
    assert ev.evaluate(price=Decimal("200"), bands=None, permission="granted", now_s=NOW) is None
    for permission in ("default", "denied", "prompt"):
        assert (
            ev.evaluate(price=Decimal("200"), bands=BANDS, permission=permission, now_s=NOW)
            is None
        )
    assert ev.alerts == []
    assert ev.state.last_alert_time_s is None


def test_cooldown_suppresses_second_alert() -> None:
    ev = AlertEvaluator(cooldown_seconds=300)
    assert ev.evaluate(price=Decimal("120"), bands=BANDS, permission="granted", now_s=NOW)
    assert ev.evaluate(price=Decimal("80"), bands=BANDS, permission="granted", now_s=NOW + 10) is None
    # boundary is still inside the cooldown
    assert ev.evaluate(price=Decimal("80"), bands=BANDS, permission="granted", now_s=NOW + 300) is None

    later = ev.evaluate(price=Decimal("80"), bands=BANDS, permission="granted", now_s=NOW + 300.5)
    assert later is not None and later.band == "lower"
    assert len(ev.alerts) == 2


def test_degenerate_band_resolves_to_upper() -> None:
    flat = BollingerBands(upper=Decimal("10"), middle=Decimal("10"), lower=Decimal("10"))
    alert = AlertEvaluator().evaluate(price=Decimal("10"), bands=flat, permission="granted", now_s=NOW)
    assert alert is not None
    assert alert.band == "upper"


def test_alert_list_keeps_ten_newest_first() -> None:
    ev = AlertEvaluator(cooldown_seconds=0)
    for i in range(12):
        ev.evaluate(price=Decimal(111 + i), bands=BANDS, permission="granted", now_s=NOW + i)

    alerts = ev.alerts
    assert len(alerts) == 10
    assert alerts[0].message == "Price touched Upper Band at $122.00"
    assert alerts[-1].message == "Price touched Upper Band at $113.00"


def test_alert_time_is_wall_clock() -> None:
    now = datetime(2024, 1, 1, 12, 34, 56).timestamp()
    alert = AlertEvaluator().evaluate(price=Decimal("95000"), bands=BANDS, permission="granted", now_s=now)
    assert alert is not None
    assert alert.record.time == "12:34:56"


def test_format_price_uses_thousands_separator() -> None:
    assert format_price(Decimal("67123.456")) == "67,123.46"
    assert format_price(Decimal("5")) == "5.00"
