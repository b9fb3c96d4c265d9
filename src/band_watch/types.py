from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

Band = Literal["upper", "lower"]
NotificationPermission = Literal["default", "granted", "denied", "prompt"]


@dataclass(frozen=True)
class BollingerBands:
    upper: Decimal
    middle: Decimal
    lower: Decimal


@dataclass(frozen=True)
class AlertRecord:
    message: str
    # Wall-clock "HH:MM:SS" of the alert.
    time: str


@dataclass(frozen=True)
class BandAlert:
    band: Band
    price: Decimal
    bands: BollingerBands
    record: AlertRecord


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    icon: str = ""
