"""Schemas for volume anomalies, entity sentiment and the daily signal."""

from datetime import date as date_type
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CategoryVolume(BaseModel):
    date: date_type
    category: str
    article_count: int = Field(ge=0)


class AnomalyAlert(BaseModel):
    category: str
    date: date_type
    current_volume: int
    rolling_avg_7d: float
    standard_dev: float
    z_score: float
    is_anomaly: bool = True
    message: str


class EntitySentimentPoint(BaseModel):
    entity: str
    date: date_type
    avg_sentiment: float = Field(ge=-1, le=1)
    article_count: int


class TopEntity(BaseModel):
    entity: str
    total_mentions: int
    avg_sentiment: float
    days_seen: int
    last_seen: date_type


class TodaySignal(BaseModel):
    signal: str
    sentiment: Literal["bullish", "bearish", "neutral"]
    confidence: Literal["high", "medium", "low"]
    key_metric: str
    analysis_date: date_type | None = None
    timestamp: datetime
