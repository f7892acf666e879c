"""Geopolitical-risk (GPR) index from weighted keyword frequency in headlines."""

import re
from collections import Counter
from datetime import date

from market_intel.schemas.intelligence import EnrichedArticle, GPRDataPoint, GPRIndex

GPR_KEYWORDS: dict[str, list[str]] = {
    "military": [
        "war", "warfare", "military", "troops", "army", "missile", "nuclear", "invasion",
        "attack", "airstrike", "bombing", "casualties", "combat", "conflict", "battle",
        "defense", "weapon", "drone strike", "escalation",
    ],
    "economic": [
        "sanctions", "embargo", "tariff", "trade war", "blacklist", "export ban", "import duty",
        "economic warfare", "blockade", "currency manipulation", "capital controls",
        "asset freeze", "trade restrictions", "retaliatory",
    ],
    "political": [
        "coup", "overthrow", "regime change", "civil unrest", "protest", "riot", "martial law",
        "emergency powers", "authoritarian", "dictatorship", "political crisis", "impeachment",
        "assassination", "uprising",
    ],
    "security": [
        "terrorism", "terrorist", "extremist", "attack", "bombing", "hostage", "kidnapping",
        "assassination", "insurgent", "militia", "radicalization", "threat",
    ],
    "diplomatic": [
        "diplomatic crisis", "expel diplomats", "recall ambassador", "break relations", "condemn",
        "ultimatum", "denounce", "retaliate", "provocation", "hostile", "adversary",
        "confrontation", "standoff", "brinkmanship",
    ],
    "regional": [
        "taiwan strait", "south china sea", "north korea", "ukraine", "crimea", "gaza",
        "west bank", "iran nuclear", "syria", "yemen", "kashmir", "arctic dispute",
    ],
}

KEYWORD_WEIGHTS: dict[str, float] = {
    "nuclear": 3.0, "invasion": 3.0, "missile strike": 3.0,
    "sanctions": 2.0, "military deployment": 2.0, "coup": 2.0, "terrorism": 2.0,
    "tariff": 1.5, "trade war": 1.5, "diplomatic crisis": 1.5, "protests": 1.5,
}

NORMALIZATION_FACTOR = 2.5
TOP_KEYWORDS = 5
TREND_WINDOW = 7
TREND_THRESHOLD_PCT = 10.0

# Each keyword is counted once even when it sits in several categories
_VOCABULARY: list[str] = list(dict.fromkeys(w for words in GPR_KEYWORDS.values() for w in words))
_PATTERNS = {w: re.compile(rf"\b{re.escape(w)}\b", re.IGNORECASE) for w in _VOCABULARY}


def calculate_daily_gpr(articles: list[EnrichedArticle], target_date: date) -> GPRDataPoint:
    """Score = min(100, round(weighted matches / articles * 100 * 2.5))."""
    counts: Counter[str] = Counter()
    weighted = 0.0
    for article in articles:
        text = article.headline.lower()
        for word, pattern in _PATTERNS.items():
            hits = len(pattern.findall(text))
            if hits:
                counts[word] += hits
                weighted += hits * KEYWORD_WEIGHTS.get(word, 1.0)

    raw = (weighted / len(articles)) * 100 if articles else 0.0
    score = min(100, round(raw * NORMALIZATION_FACTOR))
    return GPRDataPoint(
        date=target_date,
        score=score,
        keyword_counts=dict(counts),
        top_keywords=[w for w, _ in counts.most_common(TOP_KEYWORDS)],
        article_count=len(articles),
    )


def gpr_index(history: list[GPRDataPoint]) -> GPRIndex:
    """Current score plus a 7-day vs prior-7-day trend (±10% band)."""
    ordered = sorted(history, key=lambda p: p.date)
    current = ordered[-1].score if ordered else 0
    trend = "stable"
    pct_change = 0.0

    if len(ordered) >= 2 * TREND_WINDOW:
        recent = ordered[-TREND_WINDOW:]
        previous = ordered[-2 * TREND_WINDOW:-TREND_WINDOW]
        recent_avg = sum(p.score for p in recent) / TREND_WINDOW
        previous_avg = sum(p.score for p in previous) / TREND_WINDOW
        if previous_avg > 0:
            pct_change = (recent_avg - previous_avg) / previous_avg * 100
            if pct_change > TREND_THRESHOLD_PCT:
                trend = "rising"
            elif pct_change < -TREND_THRESHOLD_PCT:
                trend = "falling"

    return GPRIndex(current=current, trend=trend, percent_change_7d=round(pct_change, 2), history=ordered)
