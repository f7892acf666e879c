"""Scheduled Celery tasks for the intelligence pipeline.

Each task runs its coroutine in a fresh event loop with its own NullPool
session factory, and reports failures as a status dict instead of raising.
"""

import asyncio
import logging
from datetime import date

from market_intel.config import get_settings
from market_intel.tasks.celery_app import celery_app

logger = logging.getLogger("market_intel.tasks")


def _build_store():
    from market_intel.db.session import create_task_session_factory
    from market_intel.services.intelligence_store import IntelligenceStore
    return IntelligenceStore(create_task_session_factory())


@celery_app.task(name="tasks.run_daily_pipeline", soft_time_limit=600, time_limit=660)
def run_daily_pipeline():
    """Fetch today's news and run Reader → Analyst → Strategist."""

    async def _run():
        from market_intel.integrations.llm.factory import build_text_generator
        from market_intel.integrations.news.factory import build_news_source
        from market_intel.services.market_intelligence import run_daily_pipeline as _pipeline

        analysis = await _pipeline(
            build_news_source(get_settings()), build_text_generator(get_settings()), _build_store(),
        )
        return {
            "status": "completed",
            "date": analysis.date.isoformat(),
            "article_count": len(analysis.enriched_articles),
            "overall_sentiment": analysis.strategist_report.market_sentiment.overall,
        }

    try:
        result = asyncio.run(_run())
        logger.info("Daily pipeline finished: %s", result)
        return result
    except Exception as e:
        logger.error("Daily pipeline failed: %s", e, exc_info=True)
        return {"status": "error", "message": str(e)}


@celery_app.task(name="tasks.run_narrative_rollup", soft_time_limit=300, time_limit=360)
def run_narrative_rollup():
    """Rebuild narrative threads over the configured window ending today."""

    async def _run():
        from market_intel.services.narrative_tracker import run_narrative_rollup as _rollup

        rollup = await _rollup(_build_store(), date.today())
        return {
            "status": "completed",
            "threads": len(rollup.threads),
            "active": rollup.active_count,
            "resolved": rollup.resolved_count,
        }

    try:
        result = asyncio.run(_run())
        logger.info("Narrative rollup finished: %s", result)
        return result
    except Exception as e:
        logger.error("Narrative rollup failed: %s", e, exc_info=True)
        return {"status": "error", "message": str(e)}


@celery_app.task(name="tasks.generate_weekly_scorecard", soft_time_limit=300, time_limit=360)
def generate_weekly_scorecard():
    """Grade the current week and refresh the trailing backtest."""

    async def _run():
        from market_intel.integrations.market_data.factory import build_market_data_provider
        from market_intel.services.hindsight_validator import run_backtest
        from market_intel.services.scorecard import generate_weekly_scorecard as _scorecard

        store = _build_store()
        market_data = build_market_data_provider(get_settings())
        report = await _scorecard(store, market_data)
        backtest = await run_backtest(store, market_data)
        return {
            "status": "completed",
            "week_start": report.week_start.isoformat(),
            "grade": report.grade,
            "backtest_sample_size": backtest.sample_size,
        }

    try:
        result = asyncio.run(_run())
        logger.info("Weekly scorecard finished: %s", result)
        return result
    except Exception as e:
        logger.error("Weekly scorecard failed: %s", e, exc_info=True)
        return {"status": "error", "message": str(e)}


@celery_app.task(name="tasks.send_daily_digest", soft_time_limit=120, time_limit=180)
def send_daily_digest():
    """Email today's analysis when GPR or article impact crosses the alert thresholds."""
    from market_intel.services.email_service import send_daily_digest as _send

    async def _load():
        store = _build_store()
        today = date.today()
        analysis = await store.get_analysis(today)
        gpr = await store.get_gpr_history(today, today)
        return analysis, (gpr[0] if gpr else None)

    try:
        analysis, gpr = asyncio.run(_load())
        if analysis is None:
            logger.info("No analysis for today, digest skipped")
            return {"status": "skipped", "sent": 0}
        sent = _send(analysis, gpr)
        return {"status": "completed", "sent": sent}
    except Exception as e:
        logger.error("Daily digest failed: %s", e, exc_info=True)
        return {"status": "error", "message": str(e)}
