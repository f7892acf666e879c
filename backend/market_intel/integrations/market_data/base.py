"""Abstract base class for daily market-return providers."""

from abc import ABC, abstractmethod
from datetime import date

import pandas as pd

from market_intel.schemas.validation import MarketReturn


class MarketDataProvider(ABC):
    """Read-only daily return series for a reference instrument.

    Implementations never raise on upstream failure: they log and return an
    empty list, which the validator reports as an empty result.
    """

    @abstractmethod
    async def fetch_daily_returns(self, start: date, end: date, symbol: str) -> list[MarketReturn]:
        """Fetch daily close-to-close returns for trading days in [start, end].

        Returns:
            MarketReturn rows ordered by date, change_pct in percent.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def requires_credentials(self) -> bool:
        return True


def returns_from_closes(closes: pd.Series, symbol: str, start: date, end: date) -> list[MarketReturn]:
    """Turn a date-indexed close series into daily percentage returns.

    The series may start before `start` so the first in-range day has a
    previous close; rows without one are dropped.
    """
    closes = closes.dropna().sort_index()
    closes = closes[~closes.index.duplicated(keep="last")]
    changes = closes.pct_change() * 100

    rows: list[MarketReturn] = []
    for ts, close in closes.items():
        change = changes.loc[ts]
        if pd.isna(change):
            continue
        day = pd.Timestamp(ts).date()
        if day < start or day > end:
            continue
        rows.append(MarketReturn(
            date=day,
            symbol=symbol,
            close=round(float(close), 4),
            change_pct=round(float(change), 3),
        ))
    return rows
