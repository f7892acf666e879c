"""Narrative thread model (one row per thread, replaced on every rollup)."""

from datetime import date

from sqlalchemy import Date, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from market_intel.models.base import Base, UUIDMixin, TimestampMixin


class NarrativeThreadRecord(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "narrative_threads"

    thread_id: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    first_seen: Mapped[date] = mapped_column(Date, nullable=False)
    last_seen: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cluster_ids: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    sentiment_arc: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    entities: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    keywords: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    categories: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    escalation: Mapped[str] = mapped_column(String(10), nullable=False, default="stable")
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")
