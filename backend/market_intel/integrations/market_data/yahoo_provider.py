"""Yahoo Finance daily returns using yfinance."""

import asyncio
import logging
from datetime import date, timedelta

import pandas as pd
import yfinance as yf

from market_intel.core.circuit_breaker import CircuitBreaker, market_data_breaker
from market_intel.integrations.market_data.base import MarketDataProvider, returns_from_closes
from market_intel.schemas.validation import MarketReturn

logger = logging.getLogger("market_intel.market_data")

# Calendar days fetched before `start` so the first trading day has a prior close
LOOKBACK_BUFFER_DAYS = 7


class YahooMarketDataProvider(MarketDataProvider):
    """Yahoo Finance provider (no credentials required)."""

    def __init__(self, breaker: CircuitBreaker = market_data_breaker):
        self.breaker = breaker

    def _download_closes(self, symbol: str, start: date, end: date) -> pd.Series:
        df = yf.download(
            symbol,
            start=(start - timedelta(days=LOOKBACK_BUFFER_DAYS)).isoformat(),
            end=(end + timedelta(days=1)).isoformat(),  # yfinance end is exclusive
            interval="1d",
            auto_adjust=True,
            progress=False,
        )
        if df is None or df.empty:
            return pd.Series(dtype=float)

        df.columns = [c.lower() if isinstance(c, str) else c[0].lower() for c in df.columns]
        if "close" not in df.columns:
            logger.warning("Missing close column in Yahoo data for %s", symbol)
            return pd.Series(dtype=float)
        return df["close"]

    async def fetch_daily_returns(self, start: date, end: date, symbol: str) -> list[MarketReturn]:
        if not self.breaker.can_execute():
            logger.warning("Market data circuit open, skipping Yahoo fetch for %s", symbol)
            return []

        try:
            closes = await asyncio.to_thread(self._download_closes, symbol, start, end)
        except Exception as e:
            self.breaker.record_failure()
            logger.warning("Yahoo download failed for %s (%s → %s): %s", symbol, start, end, e)
            return []

        self.breaker.record_success()
        rows = returns_from_closes(closes, symbol, start, end)
        logger.info("Fetched %d daily returns for %s from Yahoo", len(rows), symbol)
        return rows

    @property
    def name(self) -> str:
        return "yahoo"

    @property
    def requires_credentials(self) -> bool:
        return False
