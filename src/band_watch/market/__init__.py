__all__ = [
    "CoinGeckoApiError",
    "CoinGeckoClient",
    "MarketDataError",
    "MarketDataFormatError",
]

from band_watch.market.coingecko import (
    CoinGeckoApiError,
    CoinGeckoClient,
    MarketDataError,
    MarketDataFormatError,
)
