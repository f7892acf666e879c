"""Weekly scorecard: one letter grade per calendar week (Monday start)."""

import logging
from datetime import date, timedelta

from market_intel.analysis.validation.correlation import (
    direction_accuracy,
    pearson_correlation,
    spearman_correlation,
)
from market_intel.integrations.market_data.base import MarketDataProvider
from market_intel.schemas.validation import ValidationResult, WeeklyReport
from market_intel.services.hindsight_validator import validate_period

logger = logging.getLogger("market_intel.scorecard")

# (minimum direction accuracy, grade), checked top-down
GRADE_THRESHOLDS = [
    (70.0, "A"),
    (55.0, "B"),
    (45.0, "C"),
    (35.0, "D"),
]


def week_bounds(reference: date) -> tuple[date, date]:
    week_start = reference - timedelta(days=reference.weekday())
    return week_start, week_start + timedelta(days=6)


def grade_for(accuracy: float, sample_size: int) -> str:
    if sample_size == 0:
        return "N/A"
    for threshold, grade in GRADE_THRESHOLDS:
        if accuracy >= threshold:
            return grade
    return "F"


def build_weekly_report(result: ValidationResult, week_start: date) -> WeeklyReport:
    """Restrict a validation result to [week_start, week_start + 6] and grade it."""
    week_end = week_start + timedelta(days=6)
    points = [p for p in result.data_points if week_start <= p.date <= week_end]
    if not points:
        return WeeklyReport(week_start=week_start, week_end=week_end, grade="N/A")

    sentiments = [p.sentiment_score for p in points]
    returns = [p.market_return for p in points]
    accuracy = direction_accuracy([p.direction_match for p in points])
    return WeeklyReport(
        week_start=week_start,
        week_end=week_end,
        direction_accuracy=accuracy,
        pearson_r=pearson_correlation(sentiments, returns),
        spearman_r=spearman_correlation(sentiments, returns),
        sample_size=len(points),
        avg_sentiment=round(sum(sentiments) / len(points), 2),
        avg_return=round(sum(returns) / len(points), 4),
        grade=grade_for(accuracy, len(points)),
    )


async def generate_weekly_scorecard(
    store,
    market_data: MarketDataProvider,
    reference_date: date | None = None,
    symbol: str | None = None,
) -> WeeklyReport:
    """Grade the week containing `reference_date` and upsert it by week_start."""
    week_start, week_end = week_bounds(reference_date or date.today())
    result = await validate_period(store, market_data, week_start, week_end, symbol)
    report = build_weekly_report(result, week_start)
    await store.upsert_weekly_scorecard(report)
    logger.info(
        "Scorecard %s → %s: grade %s (accuracy %.2f%%, n=%d)",
        week_start, week_end, report.grade, report.direction_accuracy, report.sample_size,
    )
    return report
