"""Analyst stage: cross-category macro trends from the day's enriched articles."""

import logging
from collections import defaultdict

from pydantic import ValidationError

from market_intel.core.metrics import LLM_FALLBACKS_TOTAL
from market_intel.integrations.llm.base import LLMResponseError, TextGenerator
from market_intel.integrations.llm.generator import request_json
from market_intel.schemas.intelligence import (
    EnrichedArticle,
    Trend,
    TrendReport,
    category_display_name,
)

logger = logging.getLogger("market_intel.analyst")

ANALYST_TEMPERATURE = 0.6
ANALYST_MAX_TOKENS = 2000
MAX_TRENDS = 5

FALLBACK_TREND_NAME = "Market Activity"
FALLBACK_INSIGHTS = "Cross-category analysis temporarily unavailable."


def category_stats(articles: list[EnrichedArticle]) -> dict[str, dict]:
    """Per-category mean sentiment and article count, keyed in sorted order."""
    grouped: dict[str, list[float]] = defaultdict(list)
    for a in articles:
        grouped[a.category].append(a.sentiment_score)
    return {
        category: {"avg_sentiment": sum(scores) / len(scores), "count": len(scores)}
        for category, scores in sorted(grouped.items())
    }


def fallback_trend_report(articles: list[EnrichedArticle], briefing: str) -> TrendReport:
    categories = sorted({a.category for a in articles})
    return TrendReport(
        trends=[Trend(
            name=FALLBACK_TREND_NAME,
            sectors=categories,
            momentum="stable",
            analysis=f"Activity observed across {len(categories)} categories.",
            confidence=50,
        )],
        cross_category_insights=briefing or FALLBACK_INSIGHTS,
    )


def build_analyst_prompt(articles: list[EnrichedArticle], briefing: str) -> str:
    stats = category_stats(articles)
    stat_lines = [
        f"- {category_display_name(c)} ({c}): {s['count']} articles, "
        f"avg sentiment {s['avg_sentiment']:+.2f}"
        for c, s in stats.items()
    ]
    top = sorted(articles, key=lambda a: a.impact_score, reverse=True)[:15]
    headline_lines = [
        f"- [{a.category}] {a.headline} (sentiment {a.sentiment_score:+.2f}, impact {a.impact_score:.0f})"
        for a in top
    ]
    return (
        "You are a macro strategist looking for trends that cut across sectors.\n\n"
        "Category statistics:\n" + "\n".join(stat_lines) + "\n\n"
        "Highest-impact headlines:\n" + "\n".join(headline_lines) + "\n\n"
        f"Today's briefing:\n{briefing}\n\n"
        "Identify 3-5 cross-category trends. Return ONLY JSON:\n"
        '{"trends": [{"name": "...", "sectors": ["category_id"], '
        '"momentum": "accelerating" | "stable" | "decelerating", '
        '"analysis": "...", "confidence": 0-100}], '
        '"cross_category_insights": "..."}\n'
        "Use the category ids shown in parentheses for sectors."
    )


def parse_trend_report(payload) -> TrendReport:
    """Validate the model's trend report, dropping invalid trends.

    Raises:
        LLMResponseError: when the payload has no valid trend at all.
    """
    if not isinstance(payload, dict):
        raise LLMResponseError("Analyst expected a JSON object")

    raw_trends = payload.get("trends")
    if not isinstance(raw_trends, list):
        raise LLMResponseError("Analyst response has no trends list")

    trends: list[Trend] = []
    for raw in raw_trends:
        if isinstance(raw, dict) and isinstance(raw.get("momentum"), str):
            raw = {**raw, "momentum": raw["momentum"].strip().lower()}
        try:
            trends.append(Trend.model_validate(raw))
        except ValidationError as e:
            logger.debug("Dropping invalid trend %r: %s", raw, e)
    if not trends:
        raise LLMResponseError("Analyst response had no valid trends")

    insights = payload.get("cross_category_insights") or payload.get("crossCategoryInsights") or ""
    return TrendReport(trends=trends[:MAX_TRENDS], cross_category_insights=str(insights))


async def run_analyst_agent(
    articles: list[EnrichedArticle],
    briefing: str,
    generator: TextGenerator,
) -> TrendReport:
    """Detect cross-category trends; degrades to a single fallback trend, never raises."""
    if not articles:
        return fallback_trend_report(articles, briefing)

    try:
        payload = await request_json(
            generator,
            build_analyst_prompt(articles, briefing),
            stage="analyst",
            temperature=ANALYST_TEMPERATURE,
            max_output_tokens=ANALYST_MAX_TOKENS,
        )
        report = parse_trend_report(payload)
    except Exception as e:
        LLM_FALLBACKS_TOTAL.labels(stage="analyst").inc()
        logger.warning("Analyst stage fell back to default trend: %s", e)
        return fallback_trend_report(articles, briefing)

    if not report.cross_category_insights:
        report.cross_category_insights = briefing or FALLBACK_INSIGHTS
    logger.info("Analyst detected %d trends", len(report.trends))
    return report
