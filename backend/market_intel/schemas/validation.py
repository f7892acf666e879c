"""Schemas for hindsight validation (backtest) and the weekly scorecard."""

from datetime import date as date_type, datetime
from typing import Literal

from pydantic import BaseModel

Grade = Literal["A", "B", "C", "D", "F", "N/A"]


class MarketReturn(BaseModel):
    date: date_type
    symbol: str
    close: float
    change_pct: float


class BacktestDataPoint(BaseModel):
    date: date_type
    sentiment_score: float
    market_return: float
    direction_match: bool
    gpr_score: int | None = None


class ValidationResult(BaseModel):
    period_start: date_type
    period_end: date_type
    sentiment_accuracy: float = 0.0
    pearson_correlation: float | None = None
    spearman_correlation: float | None = None
    gpr_correlation: float | None = None
    sample_size: int = 0
    data_points: list[BacktestDataPoint] = []
    calculated_at: datetime
    is_empty: bool = False
    message: str | None = None
    interpretation: str = ""


class WeeklyReport(BaseModel):
    week_start: date_type
    week_end: date_type
    direction_accuracy: float = 0.0
    pearson_r: float | None = None
    spearman_r: float | None = None
    sample_size: int = 0
    avg_sentiment: float = 0.0
    avg_return: float = 0.0
    grade: Grade = "N/A"

