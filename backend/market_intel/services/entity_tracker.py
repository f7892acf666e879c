"""Per-entity daily sentiment from the Reader's extracted entities.

Names are cleaned and title-cased so "NVIDIA" and "Nvidia" land on the same
timeline. Entities mentioned by fewer than two articles on a day are dropped.
"""

import re
from collections import defaultdict
from datetime import date

from market_intel.schemas.intelligence import EnrichedArticle
from market_intel.schemas.signals import EntitySentimentPoint, TopEntity

MIN_DAILY_MENTIONS = 2
MIN_ENTITY_LENGTH = 3

_QUOTES = re.compile(r"['‘’]")
_BRACKETS = re.compile(r"[\[\]…]")
_EDGE_PUNCTUATION = re.compile(r"^[.,;:!?]|[.,;:!?]$")
_LEADING_DETERMINER = re.compile(r"^(a|an|the|some|any|no|my|his|her|its|our|your|their)\s", re.IGNORECASE)

GENERIC_TERMS = frozenset({
    "the", "a", "an", "it", "they", "we", "us", "our", "i",
    "today", "yesterday", "monday", "tuesday", "wednesday",
    "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
    "company", "companies", "market", "markets", "report", "reports",
    "price", "prices", "stock", "stocks", "share", "shares",
    "source", "sources", "data", "news", "article", "articles",
    "year", "years", "month", "months", "week", "weeks",
    "percent", "million", "billion", "trillion",
})


def normalize_entity(name: str) -> str | None:
    """Title-cased entity name, or None for noise."""
    trimmed = name.strip()
    if len(trimmed) < MIN_ENTITY_LENGTH:
        return None
    if _QUOTES.search(trimmed) or _BRACKETS.search(trimmed):
        return None
    if _EDGE_PUNCTUATION.search(trimmed) or _LEADING_DETERMINER.match(trimmed):
        return None
    if trimmed.lower() in GENERIC_TERMS:
        return None
    return " ".join(word[:1].upper() + word[1:].lower() for word in trimmed.split())


def track_entities(articles: list[EnrichedArticle], day: date) -> list[EntitySentimentPoint]:
    sentiments: dict[str, list[float]] = defaultdict(list)
    for article in articles:
        seen: set[str] = set()
        for raw in article.key_entities:
            entity = normalize_entity(raw)
            if entity is None or entity in seen:
                continue
            seen.add(entity)
            sentiments[entity].append(article.sentiment_score)

    points = [
        EntitySentimentPoint(
            entity=entity,
            date=day,
            avg_sentiment=round(sum(values) / len(values), 2),
            article_count=len(values),
        )
        for entity, values in sentiments.items()
        if len(values) >= MIN_DAILY_MENTIONS
    ]
    points.sort(key=lambda p: (-p.article_count, p.entity))
    return points


def top_entities(points: list[EntitySentimentPoint], limit: int = 10) -> list[TopEntity]:
    """Most-mentioned entities over a window; sentiment weighted by daily mentions."""
    by_entity: dict[str, list[EntitySentimentPoint]] = defaultdict(list)
    for point in points:
        by_entity[point.entity].append(point)

    ranked = []
    for entity, timeline in by_entity.items():
        total = sum(p.article_count for p in timeline)
        weighted = sum(p.avg_sentiment * p.article_count for p in timeline) / total
        ranked.append(TopEntity(
            entity=entity,
            total_mentions=total,
            avg_sentiment=round(weighted, 2),
            days_seen=len({p.date for p in timeline}),
            last_seen=max(p.date for p in timeline),
        ))

    ranked.sort(key=lambda e: (-e.total_mentions, e.entity))
    return ranked[:limit]
