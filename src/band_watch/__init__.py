"""Bitcoin Bollinger Band monitor with touch alerts."""

__version__ = "0.1.0"
