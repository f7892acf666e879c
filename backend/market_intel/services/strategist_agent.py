"""Strategist stage: opportunities, risks and aggregate market sentiment.

The market-sentiment fallback is an exact aggregation of the Reader output,
not a guess: overall = round(100 * mean of per-category mean sentiment).
"""

import logging
from collections import defaultdict

from pydantic import ValidationError

from market_intel.core.metrics import LLM_FALLBACKS_TOTAL
from market_intel.integrations.llm.base import LLMResponseError, TextGenerator
from market_intel.integrations.llm.generator import request_json
from market_intel.schemas.intelligence import (
    EnrichedArticle,
    MarketSentiment,
    Opportunity,
    Risk,
    StrategistReport,
    TrendReport,
    category_display_name,
)

logger = logging.getLogger("market_intel.strategist")

STRATEGIST_TEMPERATURE = 0.5
STRATEGIST_MAX_TOKENS = 2000
TOP_TICKERS = 5


def category_breakdown(articles: list[EnrichedArticle]) -> dict[str, dict]:
    """Mean sentiment/impact, bullish/bearish counts and top tickers per category."""
    grouped: dict[str, list[EnrichedArticle]] = defaultdict(list)
    for a in articles:
        grouped[a.category].append(a)

    breakdown = {}
    for category, items in sorted(grouped.items()):
        tickers: list[str] = []
        for a in items:
            if a.ticker and a.ticker not in tickers:
                tickers.append(a.ticker)
        breakdown[category] = {
            "avg_sentiment": sum(a.sentiment_score for a in items) / len(items),
            "avg_impact": sum(a.impact_score for a in items) / len(items),
            "bullish": sum(1 for a in items if a.trend_direction == "bullish"),
            "bearish": sum(1 for a in items if a.trend_direction == "bearish"),
            "count": len(items),
            "top_tickers": tickers[:TOP_TICKERS],
        }
    return breakdown


def _clamp_percent(value: float) -> int:
    return max(-100, min(100, round(value)))


def arithmetic_market_sentiment(articles: list[EnrichedArticle]) -> MarketSentiment:
    breakdown = category_breakdown(articles)
    if not breakdown:
        return MarketSentiment(overall=0, by_category={})
    means = [b["avg_sentiment"] for b in breakdown.values()]
    return MarketSentiment(
        overall=_clamp_percent(100 * (sum(means) / len(means))),
        by_category={c: _clamp_percent(100 * b["avg_sentiment"]) for c, b in breakdown.items()},
    )


def fallback_strategist_report(articles: list[EnrichedArticle]) -> StrategistReport:
    return StrategistReport(
        opportunities=[],
        risks=[],
        market_sentiment=arithmetic_market_sentiment(articles),
    )


def build_strategist_prompt(articles: list[EnrichedArticle], trend_report: TrendReport) -> str:
    lines = []
    for category, b in category_breakdown(articles).items():
        lines.append(
            f"- {category_display_name(category)} ({category}): {b['count']} articles, "
            f"sentiment {b['avg_sentiment']:+.2f}, impact {b['avg_impact']:.0f}, "
            f"{b['bullish']} bullish / {b['bearish']} bearish, tickers {', '.join(b['top_tickers'])}"
        )
    trend_lines = [
        f"- {t.name} ({t.momentum}, confidence {t.confidence:.0f}): {t.analysis}"
        for t in trend_report.trends
    ]
    return (
        "You are an investment strategist. Using the sector data and trends below, "
        "score opportunities and risks.\n\n"
        "Sector data:\n" + "\n".join(lines) + "\n\n"
        "Trends:\n" + "\n".join(trend_lines) + "\n\n"
        "Return ONLY JSON:\n"
        '{"opportunities": [{"category": "category_id", "score": 0-100, "insight": "...", '
        '"tickers": ["..."], "time_horizon": "short" | "medium" | "long"}], '
        '"risks": [{"factor": "...", "severity": "low" | "medium" | "high" | "critical", '
        '"affected_sectors": ["category_id"], "mitigation": "..."}], '
        '"market_sentiment": {"overall": -100 to 100, "by_category": {"category_id": -100 to 100}}}'
    )


def _validate_items(raw_items, model, label: str) -> list:
    items = []
    if not isinstance(raw_items, list):
        return items
    for raw in raw_items:
        try:
            items.append(model.model_validate(raw))
        except ValidationError as e:
            logger.debug("Dropping invalid %s %r: %s", label, raw, e)
    return items


def parse_strategist_report(payload, articles: list[EnrichedArticle]) -> StrategistReport:
    """Validate the model's report; sentiment gaps are filled arithmetically.

    Raises:
        LLMResponseError: when the payload is not a JSON object.
    """
    if not isinstance(payload, dict):
        raise LLMResponseError("Strategist expected a JSON object")

    opportunities = _validate_items(payload.get("opportunities"), Opportunity, "opportunity")
    risks = _validate_items(payload.get("risks"), Risk, "risk")

    arithmetic = arithmetic_market_sentiment(articles)
    raw_sentiment = payload.get("market_sentiment")
    try:
        sentiment = MarketSentiment.model_validate(raw_sentiment)
    except ValidationError:
        logger.warning("Strategist market_sentiment invalid, using arithmetic value")
        sentiment = arithmetic

    by_category = {
        c: v for c, v in sentiment.by_category.items() if -100 <= v <= 100
    }
    for category, value in arithmetic.by_category.items():
        by_category.setdefault(category, value)
    sentiment.by_category = by_category

    return StrategistReport(opportunities=opportunities, risks=risks, market_sentiment=sentiment)


async def run_strategist_agent(
    articles: list[EnrichedArticle],
    trend_report: TrendReport,
    generator: TextGenerator,
) -> StrategistReport:
    """Score opportunities and risks; never raises."""
    if not articles:
        return fallback_strategist_report(articles)

    try:
        payload = await request_json(
            generator,
            build_strategist_prompt(articles, trend_report),
            stage="strategist",
            temperature=STRATEGIST_TEMPERATURE,
            max_output_tokens=STRATEGIST_MAX_TOKENS,
        )
        report = parse_strategist_report(payload, articles)
    except Exception as e:
        LLM_FALLBACKS_TOTAL.labels(stage="strategist").inc()
        logger.warning("Strategist stage fell back to arithmetic sentiment: %s", e)
        return fallback_strategist_report(articles)

    logger.info(
        "Strategist produced %d opportunities, %d risks, overall sentiment %d",
        len(report.opportunities), len(report.risks), report.market_sentiment.overall,
    )
    return report
