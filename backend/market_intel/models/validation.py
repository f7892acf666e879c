"""Backtest result, weekly scorecard and GPR history models."""

from datetime import date

from sqlalchemy import Date, Float, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from market_intel.models.base import Base, UUIDMixin, TimestampMixin


class BacktestResultRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "backtest_results"
    __table_args__ = (
        UniqueConstraint("period_start", "period_end", name="uq_backtest_results_period"),
    )

    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    sentiment_accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pearson_correlation: Mapped[float | None] = mapped_column(Float)
    spearman_correlation: Mapped[float | None] = mapped_column(Float)
    gpr_correlation: Mapped[float | None] = mapped_column(Float)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Full ValidationResult including data points
    result: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)


class WeeklyScorecardRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "weekly_scorecards"

    week_start: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    direction_accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pearson_r: Mapped[float | None] = mapped_column(Float)
    spearman_r: Mapped[float | None] = mapped_column(Float)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_sentiment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_return: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    grade: Mapped[str] = mapped_column(String(4), nullable=False, default="N/A")


class GPRHistoryEntry(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "gpr_history"

    gpr_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    keyword_counts: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    top_keywords: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
