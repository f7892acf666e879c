"""API tests for the intelligence router with the store and collaborators overridden.

No database, network or model access: every dependency is replaced through
FastAPI dependency overrides.
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from market_intel.api.v1.deps import get_market_data, get_news_source, get_store, get_text_generator
from market_intel.config import Settings
from market_intel.integrations.llm.generator import UnavailableGenerator
from market_intel.integrations.news.base import NewsSource
from market_intel.main import app, normalize_metric_path
from market_intel.schemas.intelligence import (
    DailyAnalysis,
    GPRDataPoint,
    MarketSentiment,
    StrategistReport,
    TrendReport,
)
from market_intel.schemas.signals import CategoryVolume, EntitySentimentPoint
from market_intel.schemas.validation import WeeklyReport

DAY = date(2026, 3, 10)
ADMIN_SETTINGS = "market_intel.api.v1.deps.get_settings"


class _EmptyNews(NewsSource):
    async def fetch_articles(self, target_date):
        return {}


def _analysis(day=DAY):
    return DailyAnalysis(
        date=day,
        briefing="A steady session for chips.",
        trend_report=TrendReport(trends=[]),
        strategist_report=StrategistReport(market_sentiment=MarketSentiment(overall=4)),
    )


@pytest.fixture
def store():
    s = MagicMock()
    s.get_latest_analysis = AsyncMock(return_value=None)
    s.get_analysis = AsyncMock(return_value=None)
    s.get_recent_analyses = AsyncMock(return_value=[])
    s.get_sentiment_history = AsyncMock(return_value=[])
    s.get_enriched_articles = AsyncMock(return_value={})
    s.get_gpr_history = AsyncMock(return_value=[])
    s.get_latest_backtest = AsyncMock(return_value=None)
    s.get_scorecard_history = AsyncMock(return_value=[])
    s.get_daily_volumes = AsyncMock(return_value=[])
    s.get_entity_sentiment = AsyncMock(return_value=[])
    for name in (
        "save_daily_analysis", "save_enriched_articles", "save_sentiment_history", "save_gpr",
        "upsert_narrative_threads", "save_backtest_result", "upsert_weekly_scorecard",
        "save_daily_volumes", "save_entity_sentiment",
    ):
        setattr(s, name, AsyncMock(return_value=True))
    return s


@pytest.fixture
def market_data():
    m = MagicMock()
    m.fetch_daily_returns = AsyncMock(return_value=[])
    return m


@pytest_asyncio.fixture
async def client(store, market_data):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_market_data] = lambda: market_data
    app.dependency_overrides[get_text_generator] = lambda: UnavailableGenerator("test")
    app.dependency_overrides[get_news_source] = lambda: _EmptyNews()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestReadEndpoints:
    @pytest.mark.asyncio
    async def test_latest_404_when_empty(self, client):
        resp = await client.get("/api/v1/intelligence/latest")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_analysis_by_date(self, client, store):
        store.get_analysis.return_value = _analysis()
        resp = await client.get("/api/v1/intelligence/analysis/2026-03-10")
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == "2026-03-10"
        assert body["strategist_report"]["market_sentiment"]["overall"] == 4
        store.get_analysis.assert_awaited_once_with(DAY)

    @pytest.mark.asyncio
    async def test_invalid_date_rejected(self, client):
        resp = await client.get("/api/v1/intelligence/analysis/not-a-date")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_history_window_validated(self, client):
        assert (await client.get("/api/v1/intelligence/history?days=0")).status_code == 422
        assert (await client.get("/api/v1/intelligence/history?days=7")).status_code == 200

    @pytest.mark.asyncio
    async def test_gpr_index(self, client, store):
        store.get_gpr_history.return_value = [GPRDataPoint(date=DAY, score=37)]
        resp = await client.get("/api/v1/intelligence/gpr?days=30")
        assert resp.status_code == 200
        assert resp.json()["current"] == 37
        assert resp.json()["trend"] == "stable"

    @pytest.mark.asyncio
    async def test_narratives_without_data(self, client, store):
        resp = await client.get("/api/v1/intelligence/narratives")
        assert resp.status_code == 200
        assert resp.json()["threads"] == []
        store.upsert_narrative_threads.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_backtest_without_data_is_empty_result(self, client, store):
        resp = await client.post("/api/v1/intelligence/backtest?days=14")
        assert resp.status_code == 200
        assert resp.json()["is_empty"] is True
        store.save_backtest_result.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_latest_backtest_404(self, client):
        assert (await client.get("/api/v1/intelligence/backtest/latest")).status_code == 404

    @pytest.mark.asyncio
    async def test_scorecard_history(self, client, store):
        store.get_scorecard_history.return_value = [WeeklyReport(
            week_start=date(2026, 3, 2), week_end=date(2026, 3, 8), direction_accuracy=60.0,
            sample_size=5, avg_sentiment=3.0, avg_return=0.1, grade="B",
        )]
        resp = await client.get("/api/v1/intelligence/scorecard/history?weeks=4")
        assert resp.status_code == 200
        assert resp.json()[0]["grade"] == "B"
        store.get_scorecard_history.assert_awaited_once_with(limit=4)


class TestSignalEndpoints:
    @pytest.mark.asyncio
    async def test_anomalies_default_to_latest_analysis(self, client, store):
        store.get_latest_analysis.return_value = _analysis()
        store.get_daily_volumes.return_value = [
            *(CategoryVolume(date=DAY - timedelta(days=n), category="cybersecurity", article_count=c)
              for n, c in ((4, 2), (3, 3), (2, 2), (1, 3))),
            CategoryVolume(date=DAY, category="cybersecurity", article_count=12),
        ]
        resp = await client.get("/api/v1/intelligence/anomalies")
        assert resp.status_code == 200
        body = resp.json()
        assert [(a["category"], a["current_volume"]) for a in body] == [("cybersecurity", 12)]
        assert body[0]["message"] == "4.8x normal coverage on Cybersecurity"
        store.get_daily_volumes.assert_awaited_once_with(DAY - timedelta(days=7), DAY)

    @pytest.mark.asyncio
    async def test_anomalies_empty_without_analysis(self, client, store):
        resp = await client.get("/api/v1/intelligence/anomalies")
        assert resp.json() == []
        store.get_daily_volumes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_anomalies_for_explicit_date(self, client, store):
        resp = await client.get("/api/v1/intelligence/anomalies", params={"date": "2026-03-09"})
        assert resp.status_code == 200
        store.get_daily_volumes.assert_awaited_once_with(date(2026, 3, 2), date(2026, 3, 9))

    @pytest.mark.asyncio
    async def test_top_entities(self, client, store):
        store.get_entity_sentiment.return_value = [
            EntitySentimentPoint(entity="Nvidia", date=DAY, avg_sentiment=0.5, article_count=3),
            EntitySentimentPoint(entity="Tsmc", date=DAY, avg_sentiment=-0.2, article_count=2),
            EntitySentimentPoint(entity="Nvidia", date=DAY - timedelta(days=1), avg_sentiment=0.1, article_count=1),
        ]
        resp = await client.get("/api/v1/intelligence/entities/top", params={"limit": 1})
        assert resp.status_code == 200
        assert resp.json() == [{
            "entity": "Nvidia", "total_mentions": 4, "avg_sentiment": 0.4,
            "days_seen": 2, "last_seen": "2026-03-10",
        }]

    @pytest.mark.asyncio
    async def test_top_entities_limit_validated(self, client):
        resp = await client.get("/api/v1/intelligence/entities/top", params={"limit": 0})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_entity_timeline_passes_name(self, client, store):
        resp = await client.get("/api/v1/intelligence/entity/Nvidia", params={"days": 14})
        assert resp.status_code == 200
        assert store.get_entity_sentiment.await_args.kwargs == {"entity": "Nvidia"}

    @pytest.mark.asyncio
    async def test_signal_without_analysis(self, client):
        resp = await client.get("/api/v1/intelligence/signal")
        assert resp.status_code == 200
        body = resp.json()
        assert body["sentiment"] == "neutral"
        assert body["confidence"] == "low"
        assert body["key_metric"] == "N/A"
        assert body["analysis_date"] is None

    @pytest.mark.asyncio
    async def test_signal_for_recent_analysis(self, client, store):
        store.get_latest_analysis.return_value = _analysis(date.today())
        resp = await client.get("/api/v1/intelligence/signal")
        body = resp.json()
        assert body["analysis_date"] == date.today().isoformat()
        assert body["signal"] == "Market sentiment is positive (+4.0) with GPR at 0/100."
        assert body["key_metric"] == "Sentiment: +4.0"


class TestExports:
    @pytest.mark.asyncio
    async def test_pdf_export(self, client, store):
        store.get_analysis.return_value = _analysis()
        resp = await client.get("/api/v1/intelligence/export/2026-03-10/pdf")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="market-intelligence-2026-03-10.pdf"' in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_pdf_export_404(self, client):
        assert (await client.get("/api/v1/intelligence/export/2026-03-10/pdf")).status_code == 404

    @pytest.mark.asyncio
    async def test_email_export_forces_send(self, client, store):
        store.get_analysis.return_value = _analysis()
        with patch(ADMIN_SETTINGS, return_value=Settings(_env_file=None, admin_token="secret")), \
                patch("market_intel.api.v1.intelligence.send_daily_digest", return_value=2) as send:
            resp = await client.post(
                "/api/v1/intelligence/export/2026-03-10/email", headers={"X-Admin-Token": "secret"},
            )
        assert resp.status_code == 200
        assert resp.json() == {"date": "2026-03-10", "sent": 2}
        assert send.call_args.args[3] is True


class TestAdminGuard:
    @pytest.mark.asyncio
    async def test_disabled_without_configured_token(self, client):
        with patch(ADMIN_SETTINGS, return_value=Settings(_env_file=None, admin_token="")):
            resp = await client.post("/api/v1/intelligence/run", headers={"X-Admin-Token": "anything"})
        assert resp.status_code == 503

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        with patch(ADMIN_SETTINGS, return_value=Settings(_env_file=None, admin_token="secret")):
            resp = await client.post("/api/v1/intelligence/run")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_token(self, client):
        with patch(ADMIN_SETTINGS, return_value=Settings(_env_file=None, admin_token="secret")):
            resp = await client.post("/api/v1/intelligence/run", headers={"X-Admin-Token": "nope"})
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_run_with_no_news_completes_on_fallbacks(self, client, store):
        with patch(ADMIN_SETTINGS, return_value=Settings(_env_file=None, admin_token="secret")):
            resp = await client.post("/api/v1/intelligence/run", headers={"X-Admin-Token": "secret"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "completed"
        assert body["article_count"] == 0
        assert body["overall_sentiment"] == 0
        store.save_daily_analysis.assert_awaited_once()
        store.save_gpr.assert_not_awaited()


class TestAppSurface:
    def test_metric_path_normalization(self):
        assert normalize_metric_path("/api/v1/intelligence/analysis/2026-03-10") == "/api/v1/intelligence/analysis/<date>"
        assert normalize_metric_path("/api/v1/intelligence/entity/Nvidia") == "/api/v1/intelligence/entity/<entity>"
        assert normalize_metric_path("/health") == "/health"

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, client):
        await client.get("/api/v1/intelligence/latest")
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "market_intel_http_requests_total" in resp.text

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        resp = await client.get("/api/v1/intelligence/latest")
        assert resp.headers["x-content-type-options"] == "nosniff"
        assert resp.headers["x-frame-options"] == "DENY"
