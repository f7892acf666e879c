"""Daily analysis, enriched article and sentiment history models."""

from datetime import date

from sqlalchemy import Date, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from market_intel.models.base import Base, UUIDMixin, TimestampMixin


class DailyAnalysisRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "daily_analyses"

    analysis_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    briefing: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # TrendReport / StrategistReport as serialized by the schemas
    trend_report: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    strategist_report: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class EnrichedArticleRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "enriched_articles"
    __table_args__ = (
        UniqueConstraint("article_date", "article_key", name="uq_enriched_articles_date_key"),
    )

    article_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    article_key: Mapped[str] = mapped_column(String(40), nullable=False)
    ticker: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    source: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    sentiment_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    impact_score: Mapped[float] = mapped_column(Float, nullable=False, default=50.0)
    key_entities: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    trend_direction: Mapped[str] = mapped_column(String(10), nullable=False, default="neutral")


class SentimentHistoryEntry(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "sentiment_history"
    __table_args__ = (
        UniqueConstraint("history_date", "category", name="uq_sentiment_history_date_category"),
    )

    history_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    avg_sentiment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_topics: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    trend_momentum: Mapped[str] = mapped_column(String(20), nullable=False, default="stable")
