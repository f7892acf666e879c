"""Tests for the daily market intelligence pipeline orchestration."""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_intel.core.metrics import ANOMALIES_DETECTED
from market_intel.integrations.news.base import NewsSource
from market_intel.schemas.signals import CategoryVolume
from market_intel.services.analyst_agent import FALLBACK_TREND_NAME
from market_intel.services.market_intelligence import (
    build_sentiment_history,
    run_daily_pipeline,
    run_market_intelligence,
)
from market_intel.services.reader_agent import NEUTRAL_IMPACT

DAY = date(2026, 3, 10)


def _store(volumes=(), existing=None):
    store = MagicMock()
    for name in (
        "save_daily_analysis", "save_enriched_articles", "save_sentiment_history",
        "save_gpr", "save_daily_volumes", "save_entity_sentiment",
    ):
        setattr(store, name, AsyncMock(return_value=True))
    store.get_daily_volumes = AsyncMock(return_value=list(volumes))
    store.get_analysis = AsyncMock(return_value=existing)
    return store


class _BrokenNews(NewsSource):
    async def fetch_articles(self, target_date):
        raise ConnectionError("feed down")


class TestPipelineWithModelDown:
    @pytest.mark.asyncio
    async def test_every_stage_falls_back(self, sample_articles, failing_generator):
        store = _store()
        analysis = await run_market_intelligence(sample_articles, DAY, failing_generator, store)

        assert len(analysis.enriched_articles) == 5
        assert all(a.sentiment_score == 0.0 for a in analysis.enriched_articles)
        assert all(a.impact_score == NEUTRAL_IMPACT for a in analysis.enriched_articles)
        assert analysis.briefing.startswith("Market intelligence briefing for 2026-03-10.")

        trend = analysis.trend_report.trends[0]
        assert trend.name == FALLBACK_TREND_NAME
        assert trend.sectors == ["ai_compute_infra", "cybersecurity"]
        assert analysis.strategist_report.market_sentiment.overall == 0
        assert analysis.strategist_report.opportunities == []

        store.save_daily_analysis.assert_awaited_once_with(analysis)
        store.save_enriched_articles.assert_awaited_once_with(DAY, analysis.enriched_articles)
        history = store.save_sentiment_history.await_args.args[1]
        assert [(r.category, r.article_count) for r in history] == [("ai_compute_infra", 3), ("cybersecurity", 2)]
        gpr = store.save_gpr.await_args.args[0]
        assert gpr.score == 0
        assert gpr.article_count == 5

    @pytest.mark.asyncio
    async def test_runs_without_store(self, sample_articles, failing_generator):
        analysis = await run_market_intelligence(sample_articles, DAY, failing_generator)
        assert analysis.date == DAY


class TestZeroArticleDay:
    @pytest.mark.asyncio
    async def test_templated_analysis_without_model_calls(self, failing_generator):
        store = _store()
        analysis = await run_market_intelligence({}, DAY, failing_generator, store)

        assert failing_generator.prompts == []
        assert analysis.briefing == (
            "Market intelligence briefing for 2026-03-10. No significant news to report today."
        )
        assert analysis.enriched_articles == []
        assert analysis.strategist_report.market_sentiment.overall == 0
        store.save_daily_analysis.assert_awaited_once()
        store.save_gpr.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_news_failure_without_saved_analysis_uses_template(self, failing_generator):
        store = _store()
        analysis = await run_daily_pipeline(_BrokenNews(), failing_generator, store, target_date=DAY)
        assert analysis.enriched_articles == []
        store.get_analysis.assert_awaited_once_with(DAY)
        store.save_daily_analysis.assert_awaited_once()


class TestNewsFailure:
    @pytest.mark.asyncio
    async def test_saved_analysis_kept_when_fetch_fails(self, failing_generator):
        saved = await run_market_intelligence({}, DAY, failing_generator)
        store = _store(existing=saved)

        analysis = await run_daily_pipeline(_BrokenNews(), failing_generator, store, target_date=DAY)

        assert analysis is saved
        for name in ("save_daily_analysis", "save_enriched_articles", "save_sentiment_history", "save_daily_volumes"):
            getattr(store, name).assert_not_awaited()

    @pytest.mark.asyncio
    async def test_quiet_day_still_overwrites(self, failing_generator):
        class _QuietNews(NewsSource):
            async def fetch_articles(self, target_date):
                return {}

        store = _store(existing=MagicMock())
        await run_daily_pipeline(_QuietNews(), failing_generator, store, target_date=DAY)
        store.get_analysis.assert_not_awaited()
        store.save_daily_analysis.assert_awaited_once()


class TestVolumesAndEntities:
    @pytest.mark.asyncio
    async def test_volumes_and_entities_saved(self, failing_generator, article_factory):
        store = _store()
        await run_market_intelligence(
            {"ai_compute_infra": [article_factory("Nvidia story one"), article_factory("Nvidia story two")]},
            DAY, failing_generator, store,
        )
        volumes = store.save_daily_volumes.await_args.args[1]
        assert [(v.category, v.article_count) for v in volumes] == [("ai_compute_infra", 2)]
        # The model is down, so the Reader extracts no entities
        assert store.save_entity_sentiment.await_args.args[1] == []

    @pytest.mark.asyncio
    async def test_spike_counted_as_anomaly(self, sample_articles, failing_generator):
        history = [
            CategoryVolume(date=DAY - timedelta(days=n), category="ai_compute_infra", article_count=c)
            for n, c in ((3, 1), (2, 1), (1, 2))
        ]
        today_rows = [
            CategoryVolume(date=DAY, category="ai_compute_infra", article_count=3),
            CategoryVolume(date=DAY, category="cybersecurity", article_count=2),
        ]
        store = _store(volumes=history + today_rows)
        counter = ANOMALIES_DETECTED.labels(category="ai_compute_infra")
        before = counter._value.get()

        await run_market_intelligence(sample_articles, DAY, failing_generator, store)

        store.get_daily_volumes.assert_awaited_once_with(DAY - timedelta(days=7), DAY)
        assert counter._value.get() == before + 1


class TestSentimentHistory:
    def test_average_and_momentum(self, enriched_factory):
        articles = [
            enriched_factory("a", sentiment=0.6, direction="bullish", entities=["Nvidia"]),
            enriched_factory("b", sentiment=0.2, direction="bullish", entities=["Nvidia", "TSMC"]),
            enriched_factory("c", sentiment=-0.1, direction="bearish"),
            enriched_factory("d", "CRWD", "cybersecurity", sentiment=-0.5, direction="bearish"),
        ]
        history = build_sentiment_history(articles, DAY)

        ai, cyber = history
        assert ai.avg_sentiment == 0.2333
        assert ai.article_count == 3
        assert ai.top_topics == ["Nvidia", "TSMC"]
        # 2 bullish vs 1 bearish: more than 1.5x
        assert ai.trend_momentum == "accelerating"
        assert cyber.trend_momentum == "decelerating"

    def test_balanced_is_stable(self, enriched_factory):
        articles = [
            enriched_factory("a", sentiment=0.3, direction="bullish"),
            enriched_factory("b", sentiment=-0.3, direction="bearish"),
            enriched_factory("c", sentiment=0.3, direction="bullish"),
            enriched_factory("d", sentiment=-0.3, direction="bearish"),
        ]
        assert build_sentiment_history(articles, DAY)[0].trend_momentum == "stable"
