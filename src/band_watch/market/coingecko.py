from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_BASE_SECONDS = 0.5
_DEFAULT_RETRY_MAX_SECONDS = 8.0


class MarketDataError(RuntimeError):
    """Raised when price data cannot be fetched or decoded."""


class CoinGeckoApiError(MarketDataError):
    def __init__(self, *, status_code: int, payload: Any):
        super().__init__(f"CoinGecko API error: status={status_code} payload={payload!r}")
        self.status_code = status_code
        self.payload = payload


class MarketDataFormatError(MarketDataError):
    pass


def _to_price(value: Any) -> Decimal:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise MarketDataFormatError(f"invalid price value: {value!r}")
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise MarketDataFormatError(f"invalid price value: {value!r}") from e
    if not price.is_finite():
        raise MarketDataFormatError(f"invalid price value: {value!r}")
    return price


def parse_market_chart(payload: Any, *, limit: int) -> list[Decimal]:
    """Extract the last ``limit`` prices from a ``/coins/{id}/market_chart`` body.

    The body carries ``prices`` as ``[[timestamp_ms, price], ...]``; only the
    ordering of the timestamps is kept.
    """
    if not isinstance(payload, dict):
        raise MarketDataFormatError("market_chart payload is not an object")
    rows = payload.get("prices")
    if not isinstance(rows, list):
        raise MarketDataFormatError("market_chart payload has no prices list")

    prices: list[Decimal] = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            raise MarketDataFormatError(f"invalid market_chart row: {row!r}")
        prices.append(_to_price(row[1]))
    return prices[-limit:] if limit > 0 else []


def parse_simple_price(payload: Any, *, coin_id: str, vs_currency: str) -> Decimal:
    if not isinstance(payload, dict):
        raise MarketDataFormatError("simple/price payload is not an object")
    coin = payload.get(coin_id)
    if not isinstance(coin, dict) or not coin.get(vs_currency):
        raise MarketDataFormatError(
            f"simple/price payload has no {coin_id}.{vs_currency} price"
        )
    return _to_price(coin[vs_currency])


class CoinGeckoClient:
    def __init__(
        self,
        *,
        coin_id: str = "bitcoin",
        vs_currency: str = "usd",
        history_days: int = 1,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout_seconds: float = 10.0,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_base_seconds: float = _DEFAULT_RETRY_BASE_SECONDS,
        retry_max_seconds: float = _DEFAULT_RETRY_MAX_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.coin_id = coin_id
        self.vs_currency = vs_currency
        self._history_days = int(max(1, history_days))
        self._base_url = base_url.rstrip("/")
        self._max_retries = int(max(0, max_retries))
        self._retry_base_seconds = float(max(0.0, retry_base_seconds))
        self._retry_max_seconds = float(max(self._retry_base_seconds, retry_max_seconds))
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def ping(self) -> dict[str, Any]:
        data = await self._request("GET", "/ping", params={})
        if not isinstance(data, dict):
            raise MarketDataFormatError("ping payload is not an object")
        return data

    async def price_history(self, *, limit: int = 20) -> list[Decimal]:
        """Last ``limit`` hourly prices (oldest first)."""
        data = await self._request(
            "GET",
            f"/coins/{self.coin_id}/market_chart",
            params={"vs_currency": self.vs_currency, "days": self._history_days},
        )
        return parse_market_chart(data, limit=limit)

    async def current_price(self) -> Decimal:
        data = await self._request(
            "GET",
            "/simple/price",
            params={"ids": self.coin_id, "vs_currencies": self.vs_currency},
        )
        return parse_simple_price(data, coin_id=self.coin_id, vs_currency=self.vs_currency)

    async def _request(self, method: str, path: str, *, params: dict[str, Any]) -> Any:
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, params=params)
            except (httpx.TimeoutException, httpx.TransportError) as e:
                if attempt >= self._max_retries:
                    raise MarketDataError(f"CoinGecko request failed: {type(e).__name__}: {e}") from e
                await asyncio.sleep(self._retry_delay_seconds(attempt=attempt, response=None))
                attempt += 1
                continue

            if response.status_code >= 400:
                if (
                    _should_retry_http_error(status_code=response.status_code)
                    and attempt < self._max_retries
                ):
                    await asyncio.sleep(
                        self._retry_delay_seconds(attempt=attempt, response=response)
                    )
                    attempt += 1
                    continue

                payload: Any
                try:
                    payload = response.json()
                except ValueError:
                    payload = response.text
                raise CoinGeckoApiError(status_code=response.status_code, payload=payload)

            try:
                return response.json()
            except ValueError as e:
                raise MarketDataFormatError("CoinGecko response is not valid JSON") from e

    def _retry_delay_seconds(
        self,
        *,
        attempt: int,
        response: httpx.Response | None,
    ) -> float:
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    value = float(retry_after)
                    if value > 0:
                        return min(value, self._retry_max_seconds)
                except ValueError:
                    pass
        delay = self._retry_base_seconds * (2**attempt)
        return float(min(delay, self._retry_max_seconds))


def _should_retry_http_error(*, status_code: int) -> bool:
    return status_code == 429 or status_code >= 500
