"""Per-day article volume and entity sentiment rows."""

from datetime import date

from sqlalchemy import Date, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from market_intel.models.base import Base, UUIDMixin, TimestampMixin


class DailyVolumeEntry(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "daily_volumes"
    __table_args__ = (
        UniqueConstraint("volume_date", "category", name="uq_daily_volumes_date_category"),
    )

    volume_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class EntitySentimentEntry(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "entity_sentiment"
    __table_args__ = (
        UniqueConstraint("sentiment_date", "entity", name="uq_entity_sentiment_date_entity"),
    )

    sentiment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    entity: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    avg_sentiment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    article_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
