"""Hindsight validation: does daily sentiment predict the next trading day's return?

Flow: sentiment history → market returns → next-trading-day alignment →
direction accuracy + Pearson/Spearman + GPR correlation.
Missing upstream data produces an explicit empty result, not an error.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from market_intel.analysis.validation.correlation import (
    align_next_trading_day,
    direction_accuracy,
    direction_match,
    interpret_correlation,
    pearson_correlation,
    spearman_correlation,
)
from market_intel.config import get_settings
from market_intel.integrations.market_data.base import MarketDataProvider
from market_intel.schemas.intelligence import GPRDataPoint, SentimentHistoryRecord
from market_intel.schemas.validation import BacktestDataPoint, MarketReturn, ValidationResult

logger = logging.getLogger("market_intel.validation")

# Calendar days fetched past the period end so the last day has a next session
NEXT_SESSION_BUFFER_DAYS = 7


def daily_sentiment_series(history: list[SentimentHistoryRecord]) -> dict[date, float]:
    """Mean of category avg_sentiment per date, scaled to [-100, 100]."""
    grouped: dict[date, list[float]] = defaultdict(list)
    for record in history:
        grouped[record.date].append(record.avg_sentiment)
    return {
        day: round(100 * sum(values) / len(values), 2)
        for day, values in sorted(grouped.items())
    }


def _empty_result(period_start: date, period_end: date, message: str) -> ValidationResult:
    return ValidationResult(
        period_start=period_start,
        period_end=period_end,
        sample_size=0,
        data_points=[],
        calculated_at=datetime.now(timezone.utc),
        is_empty=True,
        message=message,
        interpretation=interpret_correlation(None),
    )


def build_validation_result(
    history: list[SentimentHistoryRecord],
    returns: list[MarketReturn],
    gpr_history: list[GPRDataPoint],
    period_start: date,
    period_end: date,
) -> ValidationResult:
    """Pure computation of a ValidationResult from already-fetched inputs."""
    sentiment_by_date = {
        d: s for d, s in daily_sentiment_series(history).items()
        if period_start <= d <= period_end
    }
    if not sentiment_by_date:
        return _empty_result(period_start, period_end, "No sentiment history for this period yet.")
    if not returns:
        return _empty_result(period_start, period_end, "Market return data is unavailable right now.")

    return_by_date = {r.date: r.change_pct for r in returns}
    aligned = align_next_trading_day(sentiment_by_date, return_by_date)
    if not aligned:
        return _empty_result(
            period_start, period_end,
            "No overlap between sentiment days and subsequent market sessions.",
        )

    gpr_by_date = {g.date: g.score for g in gpr_history}
    points = [
        BacktestDataPoint(
            date=day,
            sentiment_score=sentiment,
            market_return=market_return,
            direction_match=direction_match(sentiment, market_return),
            gpr_score=gpr_by_date.get(day),
        )
        for day, sentiment, market_return in aligned
    ]

    sentiments = [p.sentiment_score for p in points]
    market_returns = [p.market_return for p in points]
    with_gpr = [p for p in points if p.gpr_score is not None]
    gpr_correlation = pearson_correlation(
        [-p.gpr_score for p in with_gpr],  # high risk should pair with negative returns
        [p.market_return for p in with_gpr],
    )

    pearson = pearson_correlation(sentiments, market_returns)
    return ValidationResult(
        period_start=period_start,
        period_end=period_end,
        sentiment_accuracy=direction_accuracy([p.direction_match for p in points]),
        pearson_correlation=pearson,
        spearman_correlation=spearman_correlation(sentiments, market_returns),
        gpr_correlation=gpr_correlation,
        sample_size=len(points),
        data_points=points,
        calculated_at=datetime.now(timezone.utc),
        interpretation=interpret_correlation(pearson),
    )


async def validate_period(
    store,
    market_data: MarketDataProvider,
    period_start: date,
    period_end: date,
    symbol: str | None = None,
) -> ValidationResult:
    """Fetch inputs for [period_start, period_end] and compute, without persisting."""
    symbol = symbol or get_settings().reference_symbol
    history = await store.get_sentiment_history(period_start, period_end)
    returns = await market_data.fetch_daily_returns(
        period_start, period_end + timedelta(days=NEXT_SESSION_BUFFER_DAYS), symbol,
    )
    gpr_history = await store.get_gpr_history(period_start, period_end)
    return build_validation_result(history, returns, gpr_history, period_start, period_end)


async def run_backtest(
    store,
    market_data: MarketDataProvider,
    days: int | None = None,
    end: date | None = None,
    symbol: str | None = None,
) -> ValidationResult:
    """Backtest the trailing `days` window ending at `end` (default today) and persist it."""
    settings = get_settings()
    days = days or settings.backtest_default_days
    period_end = end or date.today()
    period_start = period_end - timedelta(days=days - 1)

    result = await validate_period(store, market_data, period_start, period_end, symbol)
    if result.is_empty:
        logger.info("Backtest %s → %s empty: %s", period_start, period_end, result.message)
        return result

    await store.save_backtest_result(result)
    logger.info(
        "Backtest %s → %s: n=%d accuracy=%.2f%% pearson=%s spearman=%s gpr=%s (%s)",
        period_start, period_end, result.sample_size, result.sentiment_accuracy,
        result.pearson_correlation, result.spearman_correlation, result.gpr_correlation,
        result.interpretation,
    )
    return result
