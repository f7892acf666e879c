"""Daily Market Intelligence pipeline.

Per date:
  1. Fetch articles grouped by category (article source)
  2. Briefing and Reader run concurrently on the raw articles
  3. Analyst (enriched articles + briefing) → cross-category trends
  4. Strategist (enriched articles + trends) → opportunities, risks, sentiment
  5. Sentiment history per category, the day's GPR score, category volumes
     and per-entity sentiment
  6. Persist everything, only after all stages are done, then check the
     stored volumes for anomalies

Each stage degrades to a deterministic fallback, so a run always produces a
DailyAnalysis. A day with no articles short-circuits to a templated analysis
without any model call.
"""

import asyncio
import logging
import time
from datetime import date

from market_intel.core.metrics import ANOMALIES_DETECTED, PIPELINE_DURATION
from market_intel.integrations.llm.base import TextGenerator
from market_intel.integrations.news.base import NewsSource
from market_intel.schemas.intelligence import (
    DailyAnalysis,
    EnrichedArticle,
    GPRDataPoint,
    NewsArticle,
    SentimentHistoryRecord,
)
from market_intel.schemas.signals import CategoryVolume, EntitySentimentPoint
from market_intel.services.analyst_agent import fallback_trend_report, run_analyst_agent
from market_intel.services.anomaly import category_volumes, detect_anomalies_for_date
from market_intel.services.briefing import fallback_briefing, generate_daily_briefing
from market_intel.services.entity_tracker import track_entities
from market_intel.services.gpr import calculate_daily_gpr
from market_intel.services.reader_agent import run_reader_agent
from market_intel.services.strategist_agent import fallback_strategist_report, run_strategist_agent

logger = logging.getLogger("market_intel.pipeline")

MOMENTUM_RATIO = 1.5
MAX_TOP_TOPICS = 5


def build_sentiment_history(articles: list[EnrichedArticle], target_date: date) -> list[SentimentHistoryRecord]:
    """One record per category, in first-seen category order."""
    by_category: dict[str, list[EnrichedArticle]] = {}
    for article in articles:
        by_category.setdefault(article.category, []).append(article)

    records = []
    for category, items in by_category.items():
        bullish = sum(1 for a in items if a.trend_direction == "bullish")
        bearish = sum(1 for a in items if a.trend_direction == "bearish")
        if bullish > MOMENTUM_RATIO * bearish:
            momentum = "accelerating"
        elif bearish > MOMENTUM_RATIO * bullish:
            momentum = "decelerating"
        else:
            momentum = "stable"

        topics: list[str] = []
        for article in items:
            for entity in article.key_entities:
                if entity not in topics:
                    topics.append(entity)

        records.append(SentimentHistoryRecord(
            date=target_date,
            category=category,
            avg_sentiment=round(sum(a.sentiment_score for a in items) / len(items), 4),
            article_count=len(items),
            top_topics=topics[:MAX_TOP_TOPICS],
            trend_momentum=momentum,
        ))
    return records


def _flatten(articles_by_category: dict[str, list[NewsArticle]]) -> list[NewsArticle]:
    flat = []
    for category in articles_by_category:
        flat.extend(articles_by_category[category])
    return flat


async def _persist(
    store,
    analysis: DailyAnalysis,
    history: list[SentimentHistoryRecord],
    gpr: GPRDataPoint | None = None,
    volumes: list[CategoryVolume] | None = None,
    entities: list[EntitySentimentPoint] | None = None,
) -> None:
    await store.save_daily_analysis(analysis)
    await store.save_enriched_articles(analysis.date, analysis.enriched_articles)
    await store.save_sentiment_history(analysis.date, history)
    if gpr is not None:
        await store.save_gpr(gpr)
    if volumes is not None:
        await store.save_daily_volumes(analysis.date, volumes)
    if entities is not None:
        await store.save_entity_sentiment(analysis.date, entities)


async def run_market_intelligence(
    articles_by_category: dict[str, list[NewsArticle]],
    target_date: date,
    generator: TextGenerator,
    store=None,
) -> DailyAnalysis:
    """Run every stage for one date and persist the result when a store is given."""
    start = time.perf_counter()
    articles = _flatten(articles_by_category)
    logger.info(
        "Starting market intelligence for %s (%d articles, %d categories)",
        target_date, len(articles), sum(1 for v in articles_by_category.values() if v),
    )

    if not articles:
        briefing = fallback_briefing({}, target_date)
        analysis = DailyAnalysis(
            date=target_date,
            briefing=briefing,
            trend_report=fallback_trend_report([], briefing),
            strategist_report=fallback_strategist_report([]),
            enriched_articles=[],
        )
        if store is not None:
            await _persist(store, analysis, [])
        logger.info("No articles for %s, saved templated analysis", target_date)
        PIPELINE_DURATION.observe(time.perf_counter() - start)
        return analysis

    briefing, enriched = await asyncio.gather(
        generate_daily_briefing(articles_by_category, target_date, generator),
        run_reader_agent(articles, generator),
    )
    trend_report = await run_analyst_agent(enriched, briefing, generator)
    strategist_report = await run_strategist_agent(enriched, trend_report, generator)

    analysis = DailyAnalysis(
        date=target_date,
        briefing=briefing,
        trend_report=trend_report,
        strategist_report=strategist_report,
        enriched_articles=enriched,
    )
    history = build_sentiment_history(enriched, target_date)
    gpr = calculate_daily_gpr(enriched, target_date)
    volumes = category_volumes(enriched, target_date)
    entities = track_entities(enriched, target_date)

    if store is not None:
        await _persist(store, analysis, history, gpr, volumes, entities)
        for alert in await detect_anomalies_for_date(store, target_date):
            ANOMALIES_DETECTED.labels(category=alert.category).inc()
            logger.warning("Volume anomaly for %s: %s (z=%.2f)", target_date, alert.message, alert.z_score)

    elapsed = time.perf_counter() - start
    PIPELINE_DURATION.observe(elapsed)
    logger.info(
        "Market intelligence for %s done in %.1fs: %d trends, sentiment %d, GPR %d",
        target_date, elapsed, len(trend_report.trends),
        strategist_report.market_sentiment.overall, gpr.score,
    )
    return analysis


async def run_daily_pipeline(
    news_source: NewsSource,
    generator: TextGenerator,
    store,
    target_date: date | None = None,
) -> DailyAnalysis:
    """Fetch the day's articles from the news source and run the pipeline.

    A failed fetch is not a quiet day: an analysis already saved for the date
    is returned untouched. Only when nothing is saved yet does the run fall
    through to the templated empty-day analysis.
    """
    target_date = target_date or date.today()
    try:
        articles_by_category = await news_source.fetch_articles(target_date)
    except Exception as e:
        logger.error("News fetch failed for %s: %s", target_date, e, exc_info=True)
        existing = await store.get_analysis(target_date) if store is not None else None
        if existing is not None:
            logger.warning("Keeping the saved analysis for %s, news source unavailable", target_date)
            return existing
        articles_by_category = {}
    return await run_market_intelligence(articles_by_category, target_date, generator, store)
