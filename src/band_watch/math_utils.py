from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Optional, Union

from band_watch.types import BollingerBands

Number = Union[Decimal, int, float]


def _window(values: Sequence[Decimal], period: int) -> list[Decimal]:
    if period <= 0:
        raise ValueError("period must be > 0")
    if len(values) < period:
        raise ValueError("not enough values")
    return list(values)[-period:]


def sma(values: Sequence[Decimal], period: int) -> Decimal:
    return sum(_window(values, period), Decimal(0)) / Decimal(period)


def population_stddev(values: Sequence[Decimal], period: int) -> Decimal:
    window = _window(values, period)
    mean = sum(window, Decimal(0)) / Decimal(period)
    variance = sum(((v - mean) ** 2 for v in window), Decimal(0)) / Decimal(period)
    return variance.sqrt()


def bollinger_bands(
    values: Sequence[Decimal],
    period: int = 20,
    std_dev: Number = 2,
) -> Optional[BollingerBands]:
    """Bollinger Bands over the last ``period`` values.

    Uses the population standard deviation (divisor ``period``). Returns
    ``None`` when fewer than ``period`` values are available.
    """
    if period <= 0:
        raise ValueError("period must be > 0")
    k = Decimal(str(std_dev))
    if k < 0:
        raise ValueError("std_dev must be >= 0")
    if k == k.to_integral_value():
        # 2.0 -> 2, so a zero-width band keeps the exponent of the prices.
        k = k.to_integral_value()
    if len(values) < period:
        return None

    middle = sma(values, period)
    width = population_stddev(values, period) * k
    return BollingerBands(upper=middle + width, middle=middle, lower=middle - width)
