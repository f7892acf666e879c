"""Finnhub daily candles over httpx."""

import logging
from datetime import date, datetime, time, timedelta, timezone

import httpx
import pandas as pd

from market_intel.core.circuit_breaker import CircuitBreaker, market_data_breaker
from market_intel.integrations.market_data.base import MarketDataProvider, returns_from_closes
from market_intel.schemas.validation import MarketReturn

logger = logging.getLogger("market_intel.market_data")

CANDLE_URL = "https://finnhub.io/api/v1/stock/candle"
LOOKBACK_BUFFER_DAYS = 7


def _unix(d: date, end_of_day: bool = False) -> int:
    t = time(23, 59, 59) if end_of_day else time(0, 0)
    return int(datetime.combine(d, t, tzinfo=timezone.utc).timestamp())


def parse_candles(payload: dict) -> pd.Series:
    """Close series from a Finnhub candle payload ({"s": "ok", "c": [...], "t": [...]})."""
    if payload.get("s") != "ok":
        return pd.Series(dtype=float)
    closes = payload.get("c") or []
    stamps = payload.get("t") or []
    if not closes or len(closes) != len(stamps):
        return pd.Series(dtype=float)
    index = pd.to_datetime(stamps, unit="s", utc=True).normalize().tz_localize(None)
    return pd.Series([float(c) for c in closes], index=index)


class FinnhubMarketDataProvider(MarketDataProvider):
    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker = market_data_breaker,
    ):
        self.api_key = api_key
        self._client = client
        self.breaker = breaker

    async def _get(self, params: dict) -> dict:
        if self._client is not None:
            resp = await self._client.get(CANDLE_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.get(CANDLE_URL, params=params)
        resp.raise_for_status()
        return resp.json()

    async def fetch_daily_returns(self, start: date, end: date, symbol: str) -> list[MarketReturn]:
        if not self.api_key:
            logger.warning("FINNHUB_API_KEY not configured, no market returns")
            return []
        if not self.breaker.can_execute():
            logger.warning("Market data circuit open, skipping Finnhub fetch for %s", symbol)
            return []

        params = {
            "symbol": symbol,
            "resolution": "D",
            "from": _unix(start - timedelta(days=LOOKBACK_BUFFER_DAYS)),
            "to": _unix(end, end_of_day=True),
            "token": self.api_key,
        }
        try:
            payload = await self._get(params)
        except (httpx.HTTPError, ValueError) as e:
            self.breaker.record_failure()
            logger.warning("Finnhub candle request failed for %s: %s", symbol, e)
            return []

        self.breaker.record_success()
        if payload.get("s") != "ok":
            logger.warning("Finnhub returned status %r for %s", payload.get("s"), symbol)
            return []
        return returns_from_closes(parse_candles(payload), symbol, start, end)

    @property
    def name(self) -> str:
        return "finnhub"
