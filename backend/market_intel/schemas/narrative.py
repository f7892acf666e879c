"""Schemas for article clusters and multi-day narrative threads."""

from datetime import date as date_type
from typing import Literal

from pydantic import BaseModel

Escalation = Literal["rising", "stable", "declining"]
ThreadStatus = Literal["active", "resolved"]


class ArticleCluster(BaseModel):
    id: str
    date: date_type
    topic: str
    keywords: list[str] = []
    entities: list[str] = []
    categories: list[str] = []
    article_keys: list[str] = []
    aggregate_sentiment: float = 0.0
    aggregate_impact: float = 0.0
    article_count: int = 0


class NarrativeThread(BaseModel):
    id: str
    title: str
    first_seen: date_type
    last_seen: date_type
    duration_days: int = 1
    cluster_ids: list[str] = []
    sentiment_arc: list[float] = []
    entities: list[str] = []
    keywords: list[str] = []
    categories: list[str] = []
    escalation: Escalation = "stable"
    status: ThreadStatus = "active"


class NarrativeRollupResponse(BaseModel):
    start_date: date_type
    end_date: date_type
    threads: list[NarrativeThread]
    active_count: int
    resolved_count: int
