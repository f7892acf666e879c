"""Correlation and direction-accuracy metrics for hindsight validation.

All functions are pure. Undefined correlations (too few samples or a
constant series) are returned as None, never NaN.
"""

from datetime import date

import numpy as np
import pandas as pd

MIN_CORRELATION_SAMPLES = 3
CORRELATION_DECIMALS = 4
ACCURACY_DECIMALS = 2

# Correlation strength bands (absolute r)
STRENGTH_BANDS = [
    (0.7, "Strong"),
    (0.4, "Moderate"),
    (0.2, "Weak"),
]


def _series_correlation(xs, ys) -> float | None:
    x = pd.Series(xs, dtype=float)
    y = pd.Series(ys, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"Series length mismatch: {len(x)} vs {len(y)}")
    if len(x) < MIN_CORRELATION_SAMPLES:
        return None
    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        return None
    # Zero variance leaves r undefined; pandas reports it as NaN
    if x.nunique() < 2 or y.nunique() < 2:
        return None

    r = x.corr(y)
    if pd.isna(r):
        return None
    return round(max(-1.0, min(1.0, float(r))), CORRELATION_DECIMALS)


def pearson_correlation(xs, ys) -> float | None:
    """Product-moment correlation of two equal-length series.

    Returns None when fewer than 3 samples or either series has zero variance.
    """
    return _series_correlation(xs, ys)


def average_ranks(values) -> np.ndarray:
    """1-based ranks; tied values share the mean of their positions."""
    return pd.Series(values, dtype=float).rank(method="average").to_numpy()


def spearman_correlation(xs, ys) -> float | None:
    """Pearson correlation of the average-tie ranks."""
    if len(xs) != len(ys):
        raise ValueError(f"Series length mismatch: {len(xs)} vs {len(ys)}")
    return _series_correlation(average_ranks(xs), average_ranks(ys))


def sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def direction_match(sentiment: float, market_return: float) -> bool:
    """Same non-zero sign on both sides; an exact 0 never matches."""
    s = sign(sentiment)
    return s != 0 and s == sign(market_return)


def direction_accuracy(matches: list[bool]) -> float:
    """Percent of matching days, 2 dp; 0 for an empty sample."""
    if not matches:
        return 0.0
    return round(100 * sum(1 for m in matches if m) / len(matches), ACCURACY_DECIMALS)


def align_next_trading_day(
    sentiment_by_date: dict[date, float],
    return_by_date: dict[date, float],
) -> list[tuple[date, float, float]]:
    """Pair sentiment on day D with the first trading-day return strictly after D.

    Returns (sentiment date, sentiment, next return) ordered by date. Sentiment
    days with no later trading day are dropped.
    """
    trading_days = sorted(return_by_date)
    if not trading_days:
        return []

    index = pd.DatetimeIndex([pd.Timestamp(d) for d in trading_days])
    aligned = []
    for day in sorted(sentiment_by_date):
        pos = int(index.searchsorted(pd.Timestamp(day), side="right"))
        if pos >= len(trading_days):
            continue
        aligned.append((day, sentiment_by_date[day], return_by_date[trading_days[pos]]))
    return aligned


def interpret_correlation(r: float | None) -> str:
    if r is None:
        return "Insufficient data for correlation"
    magnitude = abs(r)
    direction = "positive" if r >= 0 else "negative"
    for threshold, label in STRENGTH_BANDS:
        if magnitude >= threshold:
            return f"{label} {direction} correlation"
    return "No meaningful correlation"
