"""Schemas for the daily intelligence pipeline (articles, stage reports, history)."""

import hashlib
from datetime import date as date_type
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

TrendDirection = Literal["bullish", "bearish", "neutral"]
Momentum = Literal["accelerating", "stable", "decelerating"]
TimeHorizon = Literal["short", "medium", "long"]
Severity = Literal["low", "medium", "high", "critical"]

CATEGORY_DISPLAY_NAMES = {
    "ai_compute_infra": "AI & Compute Infrastructure",
    "fintech_regtech": "FinTech & Payments",
    "rpa_enterprise_ai": "Enterprise AI & Automation",
    "semi_supply_chain": "Semiconductor Supply Chain",
    "cybersecurity": "Cybersecurity",
    "geopolitics": "Geopolitics",
    "macro_finance": "Macro & Finance",
}


def category_display_name(category: str) -> str:
    return CATEGORY_DISPLAY_NAMES.get(category, category.replace("_", " ").title())


class NewsArticle(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticker: str
    headline: str
    url: str = ""
    source: str = ""
    category: str

    @computed_field
    @property
    def article_key(self) -> str:
        """Stable identity of the article within a day: (url or headline, ticker, category)."""
        raw = "|".join([self.url or self.headline, self.ticker, self.category])
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:20]


class EnrichedArticle(NewsArticle):
    sentiment_score: float = Field(ge=-1, le=1)
    impact_score: float = Field(ge=0, le=100)
    key_entities: list[str] = []
    trend_direction: TrendDirection = "neutral"


class Trend(BaseModel):
    name: str = Field(min_length=1)
    sectors: list[str] = []
    momentum: Momentum
    analysis: str = ""
    confidence: float = Field(ge=0, le=100)


class TrendReport(BaseModel):
    trends: list[Trend]
    cross_category_insights: str = ""


class Opportunity(BaseModel):
    category: str
    score: float = Field(ge=0, le=100)
    insight: str = ""
    tickers: list[str] = []
    time_horizon: TimeHorizon


class Risk(BaseModel):
    factor: str = Field(min_length=1)
    severity: Severity
    affected_sectors: list[str] = []
    mitigation: str = ""


class MarketSentiment(BaseModel):
    overall: int = Field(ge=-100, le=100)
    by_category: dict[str, int] = {}


class StrategistReport(BaseModel):
    opportunities: list[Opportunity] = []
    risks: list[Risk] = []
    market_sentiment: MarketSentiment


class DailyAnalysis(BaseModel):
    date: date_type
    briefing: str
    trend_report: TrendReport
    strategist_report: StrategistReport
    enriched_articles: list[EnrichedArticle] = []


class SentimentHistoryRecord(BaseModel):
    date: date_type
    category: str
    avg_sentiment: float
    article_count: int
    top_topics: list[str] = []
    trend_momentum: Momentum = "stable"


class GPRDataPoint(BaseModel):
    date: date_type
    score: int = Field(ge=0, le=100)
    keyword_counts: dict[str, int] = {}
    top_keywords: list[str] = []
    article_count: int = 0


class GPRIndex(BaseModel):
    current: int
    trend: Literal["rising", "falling", "stable"]
    percent_change_7d: float
    history: list[GPRDataPoint]


class PipelineRunResponse(BaseModel):
    status: str
    date: date_type
    article_count: int
    trend_count: int
    overall_sentiment: int
